"""Installed-bundle stores, one per scope.

- ``JsonRecordStore`` keeps one JSON record per bundle in a directory and
  backs the user and workspace scopes.
- ``LockfileScopeStore`` presents the repository lockfile as the repository
  scope store.
- ``ScopedBundleStore`` routes each scope to its store and is what the
  ``ScopeConflictResolver`` and lifecycle coordinator talk to.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Protocol

from bundlelock.config import Settings
from bundlelock.core.lockfile.models import CreateOrUpdateOptions
from bundlelock.core.lockfile.repository import LockfileRepository
from bundlelock.core.lockfile.storage import atomic_write_text, delete_file
from bundlelock.core.scope.models import ALL_SCOPES, InstallationScope, InstalledBundle

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(bundle_id: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", bundle_id)


class InstalledBundleStore(Protocol):
    """Answers "is this bundle installed at this scope?"."""

    async def get_installed_bundle(
        self, bundle_id: str, scope: InstallationScope
    ) -> InstalledBundle | None: ...


class JsonRecordStore:
    """Directory of ``<bundle>.json`` installation records for one scope."""

    def __init__(self, root: Path, scope: InstallationScope) -> None:
        self._root = Path(root)
        self._scope = scope

    @property
    def root(self) -> Path:
        return self._root

    def _record_path(self, bundle_id: str) -> Path:
        return self._root / f"{sanitize_filename(bundle_id)}.json"

    def _get_sync(self, bundle_id: str) -> InstalledBundle | None:
        path = self._record_path(bundle_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return InstalledBundle.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning("Skipping unreadable installation record %s", path, exc_info=True)
            return None

    async def get(self, bundle_id: str) -> InstalledBundle | None:
        return await asyncio.to_thread(self._get_sync, bundle_id)

    async def record(self, bundle: InstalledBundle) -> None:
        payload = json.dumps(bundle.to_dict(), indent=2) + "\n"
        await asyncio.to_thread(atomic_write_text, self._record_path(bundle.bundle_id), payload)
        logger.debug("Recorded %s at %s scope", bundle.bundle_id, self._scope.value)

    async def remove(self, bundle_id: str) -> bool:
        return await asyncio.to_thread(delete_file, self._record_path(bundle_id))

    def _list_sync(self) -> list[InstalledBundle]:
        if not self._root.is_dir():
            return []
        bundles: list[InstalledBundle] = []
        for path in sorted(self._root.glob("*.json")):
            try:
                bundles.append(InstalledBundle.from_dict(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError, KeyError, TypeError):
                logger.warning("Skipping unreadable installation record %s", path, exc_info=True)
        return bundles

    async def list(self) -> list[InstalledBundle]:
        return await asyncio.to_thread(self._list_sync)


class LockfileScopeStore:
    """Repository-scope view over a ``LockfileRepository``."""

    def __init__(self, repository: LockfileRepository) -> None:
        self._repository = repository

    @property
    def repository(self) -> LockfileRepository:
        return self._repository

    async def get(self, bundle_id: str) -> InstalledBundle | None:
        lockfile = await self._repository.read()
        if lockfile is None:
            return None
        entry = lockfile.bundles.get(bundle_id)
        if entry is None:
            return None
        return InstalledBundle(
            bundle_id=bundle_id,
            version=entry.version,
            scope=InstallationScope.REPOSITORY,
            source_id=entry.source_id,
            source_type=entry.source_type,
            installed_at=entry.installed_at,
            install_path=str(self._repository.repository_path),
            files=list(entry.files),
            commit_mode=entry.commit_mode,
            source=lockfile.sources.get(entry.source_id),
            checksum=entry.checksum,
        )

    async def record(self, bundle: InstalledBundle) -> None:
        """Write ``bundle`` to the lockfile.

        Raises:
            ValidationError: If the bundle lacks a source or other required
                lockfile fields.
        """
        await self._repository.create_or_update(CreateOrUpdateOptions(
            bundle_id=bundle.bundle_id,
            version=bundle.version,
            source_id=bundle.source_id,
            source_type=bundle.source_type,
            commit_mode=bundle.commit_mode,
            files=bundle.files,
            source=bundle.source,
            checksum=bundle.checksum,
        ))

    async def remove(self, bundle_id: str) -> bool:
        existed = await self._repository.get_bundle(bundle_id) is not None
        await self._repository.remove(bundle_id)
        return existed

    async def list(self) -> list[InstalledBundle]:
        bundles = await self._repository.list_bundles()
        found = [await self.get(bundle_id) for bundle_id in sorted(bundles)]
        return [b for b in found if b is not None]


class ScopedBundleStore:
    """Routes every scope to the store that holds it.

    A scope without a configured store reports nothing installed and
    refuses writes.
    """

    def __init__(
        self,
        user: JsonRecordStore | None = None,
        workspace: JsonRecordStore | None = None,
        repository: LockfileScopeStore | None = None,
    ) -> None:
        self._stores: dict[InstallationScope, JsonRecordStore | LockfileScopeStore | None] = {
            InstallationScope.USER: user,
            InstallationScope.WORKSPACE: workspace,
            InstallationScope.REPOSITORY: repository,
        }

    def _store(self, scope: InstallationScope) -> JsonRecordStore | LockfileScopeStore:
        store = self._stores[scope]
        if store is None:
            raise ValueError(f"No store configured for {scope.value} scope")
        return store

    def supports(self, scope: InstallationScope) -> bool:
        return self._stores[scope] is not None

    @property
    def repository(self) -> LockfileRepository | None:
        """The lockfile behind the repository scope, if configured."""
        store = self._stores[InstallationScope.REPOSITORY]
        if isinstance(store, LockfileScopeStore):
            return store.repository
        return None

    async def get_installed_bundle(
        self, bundle_id: str, scope: InstallationScope
    ) -> InstalledBundle | None:
        store = self._stores[scope]
        if store is None:
            return None
        return await store.get(bundle_id)

    async def record_installation(self, bundle: InstalledBundle) -> None:
        await self._store(bundle.scope).record(bundle)

    async def remove_installation(self, bundle_id: str, scope: InstallationScope) -> bool:
        return await self._store(scope).remove(bundle_id)

    async def list_installed(
        self, scope: InstallationScope | None = None
    ) -> list[InstalledBundle]:
        scopes = ALL_SCOPES if scope is None else (scope,)
        bundles: list[InstalledBundle] = []
        for s in scopes:
            store = self._stores[s]
            if store is not None:
                bundles.extend(await store.list())
        return bundles


def build_scoped_store(settings: Settings, repo: Path) -> ScopedBundleStore:
    """Store for all three scopes: JSON records under the configured user and
    workspace directories, the lockfile at ``repo`` for the repository scope."""
    repository = LockfileRepository(
        repo,
        lockfile_name=settings.lockfile_name,
        generated_by=settings.generated_by,
    )
    return ScopedBundleStore(
        user=JsonRecordStore(settings.user_dir, InstallationScope.USER),
        workspace=JsonRecordStore(settings.workspace_dir, InstallationScope.WORKSPACE),
        repository=LockfileScopeStore(repository),
    )
