"""Bundle lifecycle --- install, update, uninstall, and scope migration.

- ``collaborators``: protocols the host implements (``Installer``,
  ``BundleCatalog``, ``ModificationPrompt``) and ``InstallPlan``.
- ``coordinator``: ``BundleLifecycleCoordinator`` and its request and
  outcome types.
"""

from bundlelock.core.lifecycle.collaborators import (
    BundleCatalog,
    InstallPlan,
    Installer,
    ModificationDecision,
    ModificationPrompt,
)
from bundlelock.core.lifecycle.coordinator import (
    BundleLifecycleCoordinator,
    InstallPhase,
    InstallRequest,
    LifecycleOutcome,
    OutcomeStatus,
    UninstallPhase,
    build_modification_warning,
)

__all__ = [
    "BundleCatalog",
    "BundleLifecycleCoordinator",
    "InstallPhase",
    "InstallPlan",
    "InstallRequest",
    "Installer",
    "LifecycleOutcome",
    "ModificationDecision",
    "ModificationPrompt",
    "OutcomeStatus",
    "UninstallPhase",
    "build_modification_warning",
]
