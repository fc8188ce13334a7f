"""Installation scopes and the value types of the scope protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from bundlelock.core.lockfile.models import FileEntry, SourceEntry


class InstallationScope(str, Enum):
    """Where a bundle is visible.

    USER is global to the user, WORKSPACE covers one project instance, and
    REPOSITORY is version-controlled and shared through the lockfile.
    """

    USER = "user"
    WORKSPACE = "workspace"
    REPOSITORY = "repository"


# Fixed order used for conflict lookup; the first hit wins.
ALL_SCOPES: tuple[InstallationScope, ...] = (
    InstallationScope.USER,
    InstallationScope.WORKSPACE,
    InstallationScope.REPOSITORY,
)

MigrationPhase = Literal["verify", "uninstall", "install"]


@dataclass
class InstalledBundle:
    """A bundle installed at one scope.

    Attributes:
        bundle_id: Bundle id (identity) the installation is recorded under.
        version: Installed version.
        scope: Scope holding the installation.
        source_id: Source the bundle was installed from.
        source_type: Type of that source.
        installed_at: ISO-8601 install time.
        install_path: Directory the files were placed in.
        files: Installed files with checksums.
        commit_mode: ``commit`` or ``local-only`` (repository scope).
        source: Source configuration, when known.
        checksum: Optional archive checksum.
    """

    bundle_id: str
    version: str
    scope: InstallationScope
    source_id: str = ""
    source_type: str = ""
    installed_at: str = ""
    install_path: str = ""
    files: list[FileEntry] = field(default_factory=list)
    commit_mode: str = "commit"
    source: SourceEntry | None = None
    checksum: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "bundleId": self.bundle_id,
            "version": self.version,
            "scope": self.scope.value,
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "installedAt": self.installed_at,
            "installPath": self.install_path,
            "commitMode": self.commit_mode,
            "files": [f.to_dict() for f in self.files],
        }
        if self.source is not None:
            out["source"] = self.source.to_dict()
        if self.checksum:
            out["checksum"] = self.checksum
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstalledBundle:
        source = data.get("source")
        return cls(
            bundle_id=data["bundleId"],
            version=data.get("version", ""),
            scope=InstallationScope(data["scope"]),
            source_id=data.get("sourceId", ""),
            source_type=data.get("sourceType", ""),
            installed_at=data.get("installedAt", ""),
            install_path=data.get("installPath", ""),
            files=[FileEntry.from_dict(f) for f in data.get("files", [])],
            commit_mode=data.get("commitMode", "commit"),
            source=SourceEntry.from_dict(source) if isinstance(source, dict) else None,
            checksum=data.get("checksum"),
        )


@dataclass(frozen=True)
class ScopeConflict:
    """The bundle already lives at another scope. Returned, never raised."""

    bundle_id: str
    existing_scope: InstallationScope
    target_scope: InstallationScope
    existing_version: str
    installed_bundle: InstalledBundle


@dataclass
class MigrationResult:
    """Outcome of moving a bundle between scopes.

    ``failed_phase`` tells callers what state they are in:

    - ``verify``: nothing happened.
    - ``uninstall``: the bundle is still at ``from_scope``.
    - ``install``: the bundle is at neither scope; recovery is the caller's.
    """

    success: bool
    bundle_id: str
    from_scope: InstallationScope
    to_scope: InstallationScope
    error: str | None = None
    failed_phase: MigrationPhase | None = None
