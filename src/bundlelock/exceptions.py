"""bundlelock exception hierarchy.

All public exceptions inherit from BundleLockError, giving callers a single
base class to catch when they want to handle any bundlelock-specific failure
without swallowing unrelated errors.

Scope conflicts and migration failures are *not* exceptions: they are
returned as ``ScopeConflict`` and ``MigrationResult`` values so the host can
decide on policy.
"""


class BundleLockError(Exception):
    """Base exception for all bundlelock errors."""


class ValidationError(BundleLockError):
    """Raised when lockfile input is malformed.

    Always raised before any storage I/O, so the on-disk lockfile is
    unchanged when this propagates.
    """


class LockfileError(BundleLockError):
    """Raised for lockfile persistence failures."""


class LockfileReadError(LockfileError):
    """Raised when an existing lockfile cannot be parsed.

    Only the strict loading path raises this; ``read()`` logs and returns
    None instead.
    """


class LockfileWriteError(LockfileError):
    """Raised when writing or renaming the lockfile fails.

    The temporary file has been removed (best effort) and the previous
    on-disk content is untouched.
    """


class CacheConfigurationError(BundleLockError, ValueError):
    """Raised when the version cache capacity is not a positive integer."""


class VersionError(BundleLockError, ValueError):
    """Raised for empty or over-long version strings and bundle ids."""


class VersionNotFoundError(BundleLockError):
    """Raised when a pinned version is not among the known versions."""


class InstallerError(BundleLockError):
    """Raised when the external installer fails or reports missing files.

    Nothing is recorded when this propagates.
    """


class ConfigError(BundleLockError):
    """Raised for invalid settings files or environment overrides."""
