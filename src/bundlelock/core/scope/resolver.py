"""ScopeConflictResolver --- at most one scope per bundle.

A bundle may be installed at user, workspace, or repository scope, but never
at two of them at once. The resolver reports conflicts as values and moves
bundles between scopes with an uninstall-then-install protocol:

1. **verify** the bundle is installed at the source scope (no side effects);
2. **uninstall** it there (on failure it is still at the source scope);
3. **install** it at the target scope (on failure it is at *neither* scope).

No rollback is attempted after a failed install; ``MigrationResult`` tells
the caller which phase failed so it can recover.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from bundlelock.core.scope.models import (
    ALL_SCOPES,
    InstallationScope,
    InstalledBundle,
    MigrationResult,
    ScopeConflict,
)
from bundlelock.core.scope.store import InstalledBundleStore

logger = logging.getLogger(__name__)

UninstallCallback = Callable[[InstalledBundle], Awaitable[None]]
InstallCallback = Callable[[InstalledBundle, InstallationScope], Awaitable[None]]


class ScopeConflictResolver:
    """Detects and resolves cross-scope duplicates.

    Args:
        store: Answers whether a bundle is installed at a given scope.
    """

    def __init__(self, store: InstalledBundleStore) -> None:
        self._store = store

    async def check_conflict(
        self, bundle_id: str, target_scope: InstallationScope
    ) -> ScopeConflict | None:
        """Find the bundle at a scope other than ``target_scope``.

        Installing where the bundle already lives (reinstall, update) is not
        a conflict. If several other scopes hold it, the first in
        ``ALL_SCOPES`` order is reported.
        """
        logger.debug("Checking conflict for bundle %s at scope %s", bundle_id, target_scope.value)
        for scope in ALL_SCOPES:
            if scope is target_scope:
                continue
            installed = await self._store.get_installed_bundle(bundle_id, scope)
            if installed is not None:
                logger.info(
                    "Conflict detected: bundle %s exists at %s, target is %s",
                    bundle_id, scope.value, target_scope.value,
                )
                return ScopeConflict(
                    bundle_id=bundle_id,
                    existing_scope=scope,
                    target_scope=target_scope,
                    existing_version=installed.version,
                    installed_bundle=installed,
                )
        logger.debug("No conflict for bundle %s", bundle_id)
        return None

    async def has_conflict(self, bundle_id: str, target_scope: InstallationScope) -> bool:
        return await self.check_conflict(bundle_id, target_scope) is not None

    async def get_conflicting_scopes(self, bundle_id: str) -> list[InstallationScope]:
        """Every scope currently holding ``bundle_id``, in scope order."""
        scopes: list[InstallationScope] = []
        for scope in ALL_SCOPES:
            if await self._store.get_installed_bundle(bundle_id, scope) is not None:
                scopes.append(scope)
        return scopes

    async def migrate_bundle(
        self,
        bundle_id: str,
        from_scope: InstallationScope,
        to_scope: InstallationScope,
        uninstall_callback: UninstallCallback,
        install_callback: InstallCallback,
    ) -> MigrationResult:
        """Move ``bundle_id`` from ``from_scope`` to ``to_scope``.

        Never raises for callback or store failures; they are reported in
        the returned ``MigrationResult``.
        """
        logger.info("Migrating bundle %s from %s to %s", bundle_id, from_scope.value, to_scope.value)
        result = MigrationResult(
            success=False, bundle_id=bundle_id, from_scope=from_scope, to_scope=to_scope,
        )

        try:
            installed = await self._store.get_installed_bundle(bundle_id, from_scope)
        except Exception as exc:
            result.error = f"Migration failed: {exc}"
            result.failed_phase = "verify"
            logger.error("%s", result.error, exc_info=True)
            return result

        if installed is None:
            result.error = f"Bundle {bundle_id} is not installed at {from_scope.value} scope"
            result.failed_phase = "verify"
            logger.warning("%s", result.error)
            return result

        logger.debug("Uninstalling bundle %s from %s", bundle_id, from_scope.value)
        try:
            await uninstall_callback(installed)
        except Exception as exc:
            result.error = f"Failed to uninstall from {from_scope.value}: {exc}"
            result.failed_phase = "uninstall"
            logger.error("%s", result.error, exc_info=True)
            return result

        logger.debug("Installing bundle %s at %s", bundle_id, to_scope.value)
        try:
            await install_callback(installed, to_scope)
        except Exception as exc:
            # The bundle is now installed at neither scope.
            result.error = f"Failed to install at {to_scope.value}: {exc}"
            result.failed_phase = "install"
            logger.error("%s", result.error, exc_info=True)
            return result

        result.success = True
        logger.info(
            "Successfully migrated bundle %s from %s to %s",
            bundle_id, from_scope.value, to_scope.value,
        )
        return result
