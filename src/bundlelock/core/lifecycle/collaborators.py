"""Protocols for the host-provided collaborators of the lifecycle coordinator.

The coordinator never fetches, unpacks, or asks the user anything itself.
It delegates those to:

- ``Installer``: places bundle files under an install root and removes them.
- ``BundleCatalog``: lists the bundles the configured sources publish and
  describes each source.
- ``ModificationPrompt``: asks whether locally modified files may be
  overwritten by an update.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from bundlelock.core.lockfile.models import ModifiedFileInfo, SourceEntry
from bundlelock.core.scope.models import InstallationScope, InstalledBundle
from bundlelock.core.versioning.models import BundleListing, BundleVersion


class ModificationDecision(str, Enum):
    """Answer to "overwrite my local changes?"."""

    OVERRIDE = "override"
    ABORT = "abort"


@dataclass(frozen=True)
class InstallPlan:
    """Everything an ``Installer`` needs to place one bundle version.

    Attributes:
        bundle_id: Identity the installation is recorded under.
        listing: Canonical listing of the identity (source information).
        version: The resolved version to install.
        scope: Target scope.
        install_root: Directory files must be placed under. Paths returned
            by the installer are relative to it.
    """

    bundle_id: str
    listing: BundleListing
    version: BundleVersion
    scope: InstallationScope
    install_root: Path


class Installer(Protocol):
    async def install(self, plan: InstallPlan) -> list[str]:
        """Place the bundle files and return their paths relative to
        ``plan.install_root``."""
        ...

    async def uninstall(self, bundle: InstalledBundle) -> None: ...


class BundleCatalog(Protocol):
    async def list_bundles(self) -> list[BundleListing]: ...

    async def get_source(self, source_id: str) -> SourceEntry | None: ...


class ModificationPrompt(Protocol):
    async def __call__(
        self, bundle_id: str, files: list[ModifiedFileInfo]
    ) -> ModificationDecision: ...
