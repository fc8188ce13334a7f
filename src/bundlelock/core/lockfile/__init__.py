"""Repository Lockfile --- durable record of repository-scope installations.

This package implements the ``prompt-registry.lock.json`` lockfile: which
bundles are installed at repository scope, at which version, from which
source, and the checksum of every installed file.

The package is split into focused submodules:

- ``models``: Data classes for the lockfile and its entries, plus operation
  inputs and results.
- ``storage``: Atomic temp-file + rename writes and the ``WriteQueue`` that
  serializes read-modify-write cycles.
- ``schema``: JSON schema validation of lockfile documents.
- ``repository``: ``LockfileRepository`` (reads, writes, drift detection,
  change events) and the path-keyed ``LockfileRepositoryRegistry``.

All public names are re-exported here.
"""

from bundlelock.core.lockfile.models import (
    COMMIT_MODES,
    LOCKFILE_SCHEMA_URL,
    LOCKFILE_SCHEMA_VERSION,
    BundleEntry,
    CreateOrUpdateOptions,
    FileEntry,
    HubEntry,
    Lockfile,
    LockfileValidationResult,
    ModifiedFileInfo,
    ProfileEntry,
    SourceEntry,
)
from bundlelock.core.lockfile.repository import (
    FileChangeKind,
    FileChangeNotifier,
    LockfileRepository,
    LockfileRepositoryRegistry,
    detect_drift,
    normalize_repository_path,
)
from bundlelock.core.lockfile.schema import (
    LOCKFILE_SCHEMA_PATH,
    JsonSchemaValidator,
    SchemaValidationResult,
    SchemaValidator,
)
from bundlelock.core.lockfile.storage import WriteQueue, atomic_write_text

__all__ = [
    "COMMIT_MODES",
    "LOCKFILE_SCHEMA_PATH",
    "LOCKFILE_SCHEMA_URL",
    "LOCKFILE_SCHEMA_VERSION",
    "BundleEntry",
    "CreateOrUpdateOptions",
    "FileChangeKind",
    "FileChangeNotifier",
    "FileEntry",
    "HubEntry",
    "JsonSchemaValidator",
    "Lockfile",
    "LockfileRepository",
    "LockfileRepositoryRegistry",
    "LockfileValidationResult",
    "ModifiedFileInfo",
    "ProfileEntry",
    "SchemaValidationResult",
    "SchemaValidator",
    "SourceEntry",
    "WriteQueue",
    "atomic_write_text",
    "detect_drift",
    "normalize_repository_path",
]
