"""Installation scopes --- conflict detection, migration, and scope stores."""

from bundlelock.core.scope.models import (
    ALL_SCOPES,
    InstallationScope,
    InstalledBundle,
    MigrationResult,
    ScopeConflict,
)
from bundlelock.core.scope.resolver import (
    InstallCallback,
    ScopeConflictResolver,
    UninstallCallback,
)
from bundlelock.core.scope.store import (
    InstalledBundleStore,
    JsonRecordStore,
    LockfileScopeStore,
    ScopedBundleStore,
    build_scoped_store,
    sanitize_filename,
)

__all__ = [
    "ALL_SCOPES",
    "InstallCallback",
    "InstallationScope",
    "InstalledBundle",
    "InstalledBundleStore",
    "JsonRecordStore",
    "LockfileScopeStore",
    "MigrationResult",
    "ScopeConflict",
    "ScopeConflictResolver",
    "ScopedBundleStore",
    "UninstallCallback",
    "build_scoped_store",
    "sanitize_filename",
]
