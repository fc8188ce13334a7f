"""BundleLifecycleCoordinator --- install, update, uninstall, and migrate.

The coordinator composes the consistency engine with the host's
collaborators. An install walks through four phases::

    REQUESTED -> CONFLICT_CHECKED -> VERSION_RESOLVED -> RECORDED

and is recorded only after the installer has reported success and every
placed file has been confirmed on disk and checksummed. Uninstall is
``REQUESTED -> REMOVED``.

Policy outcomes (a scope conflict, local modifications waiting for a
decision, a failed migration) are returned as ``LifecycleOutcome`` values.
Exceptions are reserved for failures: ``InstallerError``,
``VersionNotFoundError``, ``ValidationError`` and the lockfile errors.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any

from bundlelock.config import Settings
from bundlelock.core.integrity import ChecksumService, Sha256ChecksumService
from bundlelock.core.lifecycle.collaborators import (
    BundleCatalog,
    InstallPlan,
    Installer,
    ModificationDecision,
    ModificationPrompt,
)
from bundlelock.core.lockfile.models import (
    CreateOrUpdateOptions,
    FileEntry,
    HubEntry,
    ModifiedFileInfo,
    ProfileEntry,
    SourceEntry,
    utc_now_iso,
)
from bundlelock.core.lockfile.repository import detect_drift
from bundlelock.core.scope.models import InstallationScope, InstalledBundle, MigrationResult
from bundlelock.core.scope.resolver import ScopeConflictResolver
from bundlelock.core.scope.store import ScopedBundleStore, build_scoped_store
from bundlelock.core.versioning.consolidator import VersionConsolidator, build_consolidator
from bundlelock.core.versioning.models import BundleVersion, ConsolidatedBundle
from bundlelock.exceptions import (
    BundleLockError,
    InstallerError,
    ValidationError,
    VersionNotFoundError,
)

logger = logging.getLogger(__name__)


class InstallPhase(str, Enum):
    REQUESTED = "requested"
    CONFLICT_CHECKED = "conflict_checked"
    VERSION_RESOLVED = "version_resolved"
    RECORDED = "recorded"


class UninstallPhase(str, Enum):
    REQUESTED = "requested"
    REMOVED = "removed"


class OutcomeStatus(str, Enum):
    INSTALLED = "installed"
    UPDATED = "updated"
    UP_TO_DATE = "up_to_date"
    MIGRATED = "migrated"
    UNINSTALLED = "uninstalled"
    NOT_INSTALLED = "not_installed"
    CONFLICT = "conflict"
    NEEDS_DECISION = "needs_decision"
    ABORTED = "aborted"
    MIGRATION_FAILED = "migration_failed"


_SUCCESS_STATUSES = frozenset({
    OutcomeStatus.INSTALLED,
    OutcomeStatus.UPDATED,
    OutcomeStatus.UP_TO_DATE,
    OutcomeStatus.MIGRATED,
    OutcomeStatus.UNINSTALLED,
})


@dataclass(frozen=True)
class InstallRequest:
    """A request to install or update one bundle.

    Attributes:
        bundle_id: Bundle identity (or a listing id of one of its versions).
        scope: Target scope.
        version: Pinned version; the latest known version when None.
        migrate: Move the bundle from a conflicting scope instead of
            reporting the conflict.
        commit_mode: ``commit`` or ``local-only`` (repository scope).
        hub: Optional ``(hub_id, HubEntry)`` recorded with the bundle.
        profile: Optional ``(profile_id, ProfileEntry)`` recorded with it.
    """

    bundle_id: str
    scope: InstallationScope
    version: str | None = None
    migrate: bool = False
    commit_mode: str = "commit"
    hub: tuple[str, HubEntry] | None = None
    profile: tuple[str, ProfileEntry] | None = None


@dataclass
class LifecycleOutcome:
    """Result of a lifecycle operation.

    Attributes:
        status: What happened.
        bundle_id: Bundle the operation concerned.
        scope: Scope the operation targeted.
        phase: Last phase reached (``InstallPhase`` or ``UninstallPhase``).
        installed: The recorded installation, when one was made.
        previous_version: Version replaced by an update.
        conflict_scope: Scope holding the bundle on ``CONFLICT``.
        modified_files: Local modifications on ``NEEDS_DECISION``/``ABORTED``.
        migration: Migration details when a migration ran.
    """

    status: OutcomeStatus
    bundle_id: str
    scope: InstallationScope
    phase: InstallPhase | UninstallPhase
    installed: InstalledBundle | None = None
    previous_version: str | None = None
    conflict_scope: InstallationScope | None = None
    modified_files: list[ModifiedFileInfo] = field(default_factory=list)
    migration: MigrationResult | None = None

    @property
    def ok(self) -> bool:
        return self.status in _SUCCESS_STATUSES


@dataclass(frozen=True)
class _Resolved:
    consolidated: ConsolidatedBundle
    version: BundleVersion
    source: SourceEntry | None


def build_modification_warning(bundle_id: str, files: list[ModifiedFileInfo]) -> str:
    """Plain-text warning listing locally modified files of a bundle."""
    count = len(files)
    noun = "file has" if count == 1 else "files have"
    lines = [f'The bundle "{bundle_id}" has {count} {noun} been modified locally:', ""]
    for info in files:
        suffix = " (missing)" if info.modification_type == "missing" else ""
        lines.append(f"  - {info.path}{suffix}")
    lines.append("")
    lines.append("Updating will override your local changes.")
    return "\n".join(lines)


class BundleLifecycleCoordinator:
    """Runs bundle lifecycle operations across scopes.

    Args:
        store: Installed-bundle records for every scope.
        installer: Places and removes bundle files.
        catalog: Lists published bundles and describes sources.
        install_roots: Install directory per scope. The repository scope
            defaults to the lockfile's repository root so recorded file
            paths stay relative to it.
        consolidator: Resolves versions; a new one is created when omitted.
        resolver: Scope conflict resolver; defaults to one over ``store``.
        checksum_service: Checksums placed files.
        modification_prompt: Asked for a decision when an update would
            overwrite local modifications and the caller gave none.
    """

    def __init__(
        self,
        store: ScopedBundleStore,
        installer: Installer,
        catalog: BundleCatalog,
        *,
        install_roots: Mapping[InstallationScope, Path] | None = None,
        consolidator: VersionConsolidator | None = None,
        resolver: ScopeConflictResolver | None = None,
        checksum_service: ChecksumService | None = None,
        modification_prompt: ModificationPrompt | None = None,
    ) -> None:
        self._store = store
        self._installer = installer
        self._catalog = catalog
        self._install_roots = dict(install_roots or {})
        self._consolidator = consolidator or VersionConsolidator()
        self._resolver = resolver or ScopeConflictResolver(store)
        self._checksums = checksum_service or Sha256ChecksumService()
        self._modification_prompt = modification_prompt

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repo: Path,
        installer: Installer,
        catalog: BundleCatalog,
        **kwargs: Any,
    ) -> BundleLifecycleCoordinator:
        """Coordinator over the configured scope stores with a version cache
        sized by ``settings.max_cache_size``. ``kwargs`` go to ``__init__``."""
        kwargs.setdefault("consolidator", build_consolidator(settings))
        return cls(build_scoped_store(settings, repo), installer, catalog, **kwargs)

    @property
    def resolver(self) -> ScopeConflictResolver:
        return self._resolver

    @property
    def consolidator(self) -> VersionConsolidator:
        return self._consolidator

    def install_root(self, scope: InstallationScope) -> Path:
        root = self._install_roots.get(scope)
        if root is not None:
            return Path(root)
        repository = self._store.repository
        if scope is InstallationScope.REPOSITORY and repository is not None:
            return repository.repository_path
        raise ValidationError(f"No install root configured for {scope.value} scope")

    # -- Install ------------------------------------------------------------

    async def install(self, request: InstallRequest) -> LifecycleOutcome:
        """Install a bundle at ``request.scope``.

        Raises:
            VersionNotFoundError: If the bundle or pinned version is unknown.
            InstallerError: If the installer fails or a placed file is missing.
        """
        logger.info("Install requested: %s at %s", request.bundle_id, request.scope.value)
        match = await self._lookup(request.bundle_id)
        identity = match.identity if match is not None else request.bundle_id
        conflict = await self._resolver.check_conflict(identity, request.scope)
        if conflict is not None:
            if not request.migrate:
                return LifecycleOutcome(
                    status=OutcomeStatus.CONFLICT,
                    bundle_id=identity,
                    scope=request.scope,
                    phase=InstallPhase.CONFLICT_CHECKED,
                    conflict_scope=conflict.existing_scope,
                )
            return await self.migrate(
                identity,
                conflict.existing_scope,
                request.scope,
                version=request.version,
            )

        if match is None:
            raise VersionNotFoundError(f"Bundle {request.bundle_id} not found in catalog")
        resolved = await self._resolve_version(match, request.version, request.scope)
        installed = await self._install_resolved(request, resolved)
        return LifecycleOutcome(
            status=OutcomeStatus.INSTALLED,
            bundle_id=installed.bundle_id,
            scope=request.scope,
            phase=InstallPhase.RECORDED,
            installed=installed,
        )

    async def _lookup(self, bundle_id: str) -> ConsolidatedBundle | None:
        """Find the catalog bundle for an identity or a listing id of one of its versions."""
        listings = await self._catalog.list_bundles()
        consolidated = self._consolidator.consolidate_bundles(listings)
        match = next((c for c in consolidated if c.identity == bundle_id), None)
        if match is None:
            match = next(
                (c for c in consolidated
                 if any(v.bundle_id == bundle_id for v in c.available_versions)),
                None,
            )
        return match

    async def identity_of(self, bundle_id: str) -> str:
        """Identity a bundle is recorded under; unknown ids are returned unchanged."""
        match = await self._lookup(bundle_id)
        return match.identity if match is not None else bundle_id

    async def _resolve(
        self, bundle_id: str, version: str | None, scope: InstallationScope
    ) -> _Resolved:
        match = await self._lookup(bundle_id)
        if match is None:
            raise VersionNotFoundError(f"Bundle {bundle_id} not found in catalog")
        return await self._resolve_version(match, version, scope)

    async def _resolve_version(
        self, match: ConsolidatedBundle, version: str | None, scope: InstallationScope
    ) -> _Resolved:
        if version is None:
            resolved_version = match.available_versions[0]
        else:
            found = self._consolidator.get_bundle_version(match.identity, version)
            if found is None:
                raise VersionNotFoundError(
                    f"Version {version} of bundle {match.identity} not found. "
                    f"Available: {', '.join(match.version_strings)}"
                )
            resolved_version = found

        source = await self._catalog.get_source(match.source_id)
        if source is None and scope is InstallationScope.REPOSITORY:
            raise ValidationError(f"Unknown source {match.source_id!r} for {match.identity}")
        logger.debug("Resolved %s to version %s", match.identity, resolved_version.version)
        return _Resolved(consolidated=match, version=resolved_version, source=source)

    def _relative_path(self, root: Path, placed: str) -> str:
        path = Path(placed)
        if path.is_absolute():
            try:
                path = path.relative_to(root)
            except ValueError:
                raise InstallerError(f"Installed file outside install root: {placed}") from None
        return PurePosixPath(*path.parts).as_posix()

    async def _install_resolved(
        self, request: InstallRequest, resolved: _Resolved
    ) -> InstalledBundle:
        root = self.install_root(request.scope)
        listing = resolved.consolidated.bundle
        plan = InstallPlan(
            bundle_id=resolved.consolidated.identity,
            listing=listing,
            version=resolved.version,
            scope=request.scope,
            install_root=root,
        )
        try:
            placed = await self._installer.install(plan)
        except BundleLockError:
            raise
        except Exception as exc:
            raise InstallerError(f"Installer failed for {plan.bundle_id}: {exc}") from exc

        files: list[FileEntry] = []
        for item in placed:
            relative = self._relative_path(root, item)
            full_path = root / relative
            if not await asyncio.to_thread(full_path.is_file):
                raise InstallerError(f"Installed file missing for {plan.bundle_id}: {relative}")
            try:
                checksum = await self._checksums.checksum(full_path)
            except OSError as exc:
                raise InstallerError(f"Cannot checksum {relative}: {exc}") from exc
            files.append(FileEntry(path=relative, checksum=checksum))

        installed = InstalledBundle(
            bundle_id=plan.bundle_id,
            version=resolved.version.version,
            scope=request.scope,
            source_id=listing.source_id,
            source_type=self._consolidator.source_type_of(listing),
            installed_at=utc_now_iso(),
            install_path=str(root),
            files=files,
            commit_mode=request.commit_mode,
            source=resolved.source,
        )
        repository = self._store.repository
        has_extras = request.hub is not None or request.profile is not None
        if request.scope is InstallationScope.REPOSITORY and repository is not None and has_extras:
            await repository.create_or_update(CreateOrUpdateOptions(
                bundle_id=installed.bundle_id,
                version=installed.version,
                source_id=installed.source_id,
                source_type=installed.source_type,
                commit_mode=installed.commit_mode,
                files=installed.files,
                source=installed.source,
                hub=request.hub,
                profile=request.profile,
            ))
        else:
            await self._store.record_installation(installed)
        logger.info(
            "Installed %s@%s at %s (%d files)",
            installed.bundle_id, installed.version, request.scope.value, len(files),
        )
        return installed

    # -- Update -------------------------------------------------------------

    async def detect_modified_files(self, installed: InstalledBundle) -> list[ModifiedFileInfo]:
        """Drift of an installation's files since they were recorded."""
        repository = self._store.repository
        if installed.scope is InstallationScope.REPOSITORY and repository is not None:
            return await repository.detect_modified_files(installed.bundle_id)
        return await detect_drift(Path(installed.install_path), installed.files, self._checksums)

    async def update(
        self,
        request: InstallRequest,
        decision: ModificationDecision | None = None,
    ) -> LifecycleOutcome:
        """Update an installed bundle to ``request.version`` (or the latest).

        Local modifications stop the update unless ``decision`` (or the
        configured prompt) is ``OVERRIDE``. The installer is expected to
        replace the previous files.
        """
        request = replace(request, bundle_id=await self.identity_of(request.bundle_id))
        installed = await self._store.get_installed_bundle(request.bundle_id, request.scope)
        if installed is None:
            return LifecycleOutcome(
                status=OutcomeStatus.NOT_INSTALLED,
                bundle_id=request.bundle_id,
                scope=request.scope,
                phase=InstallPhase.REQUESTED,
            )

        modified = await self.detect_modified_files(installed)
        if modified:
            if decision is None and self._modification_prompt is not None:
                decision = await self._modification_prompt(request.bundle_id, modified)
            if decision is None:
                logger.info("Update of %s needs a decision: %d modified files",
                            request.bundle_id, len(modified))
                return LifecycleOutcome(
                    status=OutcomeStatus.NEEDS_DECISION,
                    bundle_id=request.bundle_id,
                    scope=request.scope,
                    phase=InstallPhase.CONFLICT_CHECKED,
                    modified_files=modified,
                )
            if decision is ModificationDecision.ABORT:
                logger.info("Update of %s aborted by user", request.bundle_id)
                return LifecycleOutcome(
                    status=OutcomeStatus.ABORTED,
                    bundle_id=request.bundle_id,
                    scope=request.scope,
                    phase=InstallPhase.CONFLICT_CHECKED,
                    modified_files=modified,
                )
            logger.warning("Overriding %d local modifications of %s",
                           len(modified), request.bundle_id)

        resolved = await self._resolve(request.bundle_id, request.version, request.scope)
        if resolved.version.version == installed.version and not modified:
            return LifecycleOutcome(
                status=OutcomeStatus.UP_TO_DATE,
                bundle_id=request.bundle_id,
                scope=request.scope,
                phase=InstallPhase.VERSION_RESOLVED,
                installed=installed,
            )

        updated = await self._install_resolved(request, resolved)
        return LifecycleOutcome(
            status=OutcomeStatus.UPDATED,
            bundle_id=updated.bundle_id,
            scope=request.scope,
            phase=InstallPhase.RECORDED,
            installed=updated,
            previous_version=installed.version,
            modified_files=modified,
        )

    # -- Uninstall ----------------------------------------------------------

    async def _uninstall_installed(self, installed: InstalledBundle) -> None:
        try:
            await self._installer.uninstall(installed)
        except BundleLockError:
            raise
        except Exception as exc:
            raise InstallerError(f"Uninstall failed for {installed.bundle_id}: {exc}") from exc
        await self._store.remove_installation(installed.bundle_id, installed.scope)

    async def uninstall(self, bundle_id: str, scope: InstallationScope) -> LifecycleOutcome:
        """Remove a bundle's files and its record at ``scope``.

        A bundle not installed at ``scope`` is a no-op.
        """
        bundle_id = await self.identity_of(bundle_id)
        installed = await self._store.get_installed_bundle(bundle_id, scope)
        if installed is None:
            logger.debug("Bundle %s not installed at %s", bundle_id, scope.value)
            return LifecycleOutcome(
                status=OutcomeStatus.NOT_INSTALLED,
                bundle_id=bundle_id,
                scope=scope,
                phase=UninstallPhase.REQUESTED,
            )
        await self._uninstall_installed(installed)
        logger.info("Uninstalled %s from %s", bundle_id, scope.value)
        return LifecycleOutcome(
            status=OutcomeStatus.UNINSTALLED,
            bundle_id=bundle_id,
            scope=scope,
            phase=UninstallPhase.REMOVED,
            previous_version=installed.version,
        )

    # -- Migration ----------------------------------------------------------

    async def migrate(
        self,
        bundle_id: str,
        from_scope: InstallationScope,
        to_scope: InstallationScope,
        *,
        version: str | None = None,
    ) -> LifecycleOutcome:
        """Move a bundle between scopes.

        The target installation uses ``version`` when given, otherwise the
        version installed at ``from_scope``. A failed migration is returned
        as ``MIGRATION_FAILED`` with the ``MigrationResult`` attached. The
        target version is resolved before anything is uninstalled, so a
        version the catalog no longer publishes fails at ``verify`` and
        leaves the source installation untouched.
        """
        bundle_id = await self.identity_of(bundle_id)
        recorded: list[InstalledBundle] = []
        resolved: _Resolved | None = None

        source = await self._store.get_installed_bundle(bundle_id, from_scope)
        if source is not None:
            try:
                resolved = await self._resolve(bundle_id, version or source.version, to_scope)
            except (VersionNotFoundError, ValidationError) as exc:
                logger.error("Migration of %s aborted before uninstall: %s", bundle_id, exc)
                return LifecycleOutcome(
                    status=OutcomeStatus.MIGRATION_FAILED,
                    bundle_id=bundle_id,
                    scope=to_scope,
                    phase=InstallPhase.CONFLICT_CHECKED,
                    conflict_scope=from_scope,
                    migration=MigrationResult(
                        success=False,
                        bundle_id=bundle_id,
                        from_scope=from_scope,
                        to_scope=to_scope,
                        error=str(exc),
                        failed_phase="verify",
                    ),
                )

        async def _uninstall(installed: InstalledBundle) -> None:
            await self._uninstall_installed(installed)

        async def _install(installed: InstalledBundle, scope: InstallationScope) -> None:
            request = InstallRequest(
                bundle_id=bundle_id,
                scope=scope,
                version=version or installed.version,
                commit_mode=installed.commit_mode,
            )
            target = resolved
            if target is None:
                target = await self._resolve(bundle_id, request.version, scope)
            recorded.append(await self._install_resolved(request, target))

        result = await self._resolver.migrate_bundle(
            bundle_id, from_scope, to_scope, _uninstall, _install,
        )
        if not result.success:
            return LifecycleOutcome(
                status=OutcomeStatus.MIGRATION_FAILED,
                bundle_id=bundle_id,
                scope=to_scope,
                phase=InstallPhase.CONFLICT_CHECKED,
                conflict_scope=from_scope,
                migration=result,
            )
        return LifecycleOutcome(
            status=OutcomeStatus.MIGRATED,
            bundle_id=bundle_id,
            scope=to_scope,
            phase=InstallPhase.RECORDED,
            installed=recorded[-1] if recorded else None,
            conflict_scope=from_scope,
            migration=result,
        )
