"""Factories and in-memory collaborators shared by the bundlelock tests."""

from __future__ import annotations

import hashlib
from pathlib import Path

from bundlelock.core.lifecycle import InstallPlan
from bundlelock.core.lockfile import (
    CreateOrUpdateOptions,
    FileEntry,
    LockfileRepository,
    SourceEntry,
)
from bundlelock.core.scope import (
    InstallationScope,
    InstalledBundle,
    JsonRecordStore,
    LockfileScopeStore,
    ScopedBundleStore,
)
from bundlelock.core.versioning import BundleListing


def sha256(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def write_files(root: Path, files: dict[str, str]) -> list[FileEntry]:
    """Write ``files`` (relative path -> content) under ``root``."""
    entries: list[FileEntry] = []
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        entries.append(FileEntry(path=rel, checksum=sha256(content)))
    return entries


def make_options(
    bundle_id: str = "acme-tool",
    version: str = "1.0.0",
    source_id: str = "github-acme",
    source_type: str = "github",
    commit_mode: str = "commit",
    files: object = None,
    source: object = None,
    **kwargs: object,
) -> CreateOrUpdateOptions:
    """Convenience factory for valid ``CreateOrUpdateOptions``."""
    if files is None:
        files = [FileEntry(path="prompts/a.md", checksum=sha256("a"))]
    if source is None:
        source = SourceEntry(type="github", url="https://github.com/acme/tools")
    return CreateOrUpdateOptions(
        bundle_id=bundle_id,
        version=version,
        source_id=source_id,
        source_type=source_type,
        commit_mode=commit_mode,
        files=files,
        source=source,
        **kwargs,  # type: ignore[arg-type]
    )


def make_listing(
    listing_id: str,
    version: str,
    source_id: str = "github-acme",
    last_updated: str = "",
    source_type: str | None = None,
) -> BundleListing:
    return BundleListing(
        id=listing_id,
        name=listing_id,
        version=version,
        source_id=source_id,
        last_updated=last_updated,
        source_type=source_type,
    )


def make_installed(
    bundle_id: str = "acme-tool",
    scope: InstallationScope = InstallationScope.USER,
    version: str = "1.0.0",
) -> InstalledBundle:
    return InstalledBundle(
        bundle_id=bundle_id,
        version=version,
        scope=scope,
        source_id="github-acme",
        source_type="github",
        installed_at="2024-01-01T00:00:00.000Z",
        source=SourceEntry(type="github", url="https://github.com/acme/tools"),
    )


def make_scoped_store(tmp_path: Path) -> ScopedBundleStore:
    """User, workspace and repository stores rooted under ``tmp_path``."""
    repo_root = tmp_path / "repo"
    repo_root.mkdir(exist_ok=True)
    return ScopedBundleStore(
        user=JsonRecordStore(tmp_path / "user-records", InstallationScope.USER),
        workspace=JsonRecordStore(tmp_path / "workspace-records", InstallationScope.WORKSPACE),
        repository=LockfileScopeStore(LockfileRepository(repo_root)),
    )


class FakeInstaller:
    """Writes ``<bundle>/prompt.md`` under the install root.

    Set ``fail_install`` or ``fail_uninstall`` to make the next call raise,
    or ``skip_write`` to report a file without creating it.
    """

    def __init__(self) -> None:
        self.installed: list[InstallPlan] = []
        self.uninstalled: list[InstalledBundle] = []
        self.fail_install = False
        self.fail_uninstall = False
        self.skip_write = False

    async def install(self, plan: InstallPlan) -> list[str]:
        if self.fail_install:
            raise RuntimeError("download failed")
        rel = f"{plan.bundle_id}/prompt.md"
        if not self.skip_write:
            target = plan.install_root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(f"{plan.bundle_id} {plan.version.version}\n", encoding="utf-8")
        self.installed.append(plan)
        return [rel]

    async def uninstall(self, bundle: InstalledBundle) -> None:
        if self.fail_uninstall:
            raise RuntimeError("files locked")
        for entry in bundle.files:
            (Path(bundle.install_path) / entry.path).unlink(missing_ok=True)
        self.uninstalled.append(bundle)


class FakeCatalog:
    def __init__(self, listings: list[BundleListing], sources: dict[str, SourceEntry] | None = None):
        self.listings = listings
        self.sources = sources if sources is not None else {
            "github-acme": SourceEntry(type="github", url="https://github.com/acme/tools"),
        }

    async def list_bundles(self) -> list[BundleListing]:
        return list(self.listings)

    async def get_source(self, source_id: str) -> SourceEntry | None:
        return self.sources.get(source_id)
