"""Tests for LockfileRepository reads, writes and drift detection.

Verifies:
    - create-then-read round trip and idempotent re-writes.
    - Atomic writes: a failed rename leaves the old file and no temp file.
    - Removal semantics, including deleting the file with the last bundle.
    - Orphaned source cleanup.
    - Input validation before any I/O.
    - Corrupt file handling on the lenient and strict read paths.
    - Drift detection (modified, missing).
    - Write serialization under concurrency.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

from bundlelock.core.lockfile import (
    FileEntry,
    HubEntry,
    LockfileRepository,
    ProfileEntry,
    SourceEntry,
)
from bundlelock.exceptions import LockfileReadError, LockfileWriteError, ValidationError
from tests.helpers import make_options, sha256, write_files


def _strip_timestamps(data: dict) -> dict:
    data = dict(data)
    data.pop("generatedAt", None)
    for entry in data.get("bundles", {}).values():
        entry.pop("installedAt", None)
    return data


# ===========================================================================
# Round trip and idempotence
# ===========================================================================


class TestCreateAndRead:
    """Recorded bundles read back exactly."""

    def test_read_absent_returns_none(self, repository: LockfileRepository) -> None:
        assert asyncio.run(repository.read()) is None
        assert asyncio.run(repository.load()) is None

    def test_round_trip(self, repository: LockfileRepository) -> None:
        """A recorded bundle reads back with the same fields and file order."""
        files = [
            FileEntry(path="prompts/b.md", checksum=sha256("b")),
            FileEntry(path="prompts/a.md", checksum=sha256("a")),
        ]
        asyncio.run(repository.create_or_update(make_options(files=files)))

        lockfile = asyncio.run(repository.read())
        assert lockfile is not None
        entry = lockfile.bundles["acme-tool"]
        assert entry.version == "1.0.0"
        assert entry.source_id == "github-acme"
        assert entry.source_type == "github"
        assert entry.commit_mode == "commit"
        assert entry.files == files
        assert lockfile.sources["github-acme"] == SourceEntry(
            type="github", url="https://github.com/acme/tools"
        )
        assert lockfile.generated_by == "bundlelock@test"

    def test_file_is_pretty_printed_json(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options()))
        text = repository.lockfile_path.read_text(encoding="utf-8")
        assert text.endswith("\n")
        assert json.loads(text)["bundles"]["acme-tool"]["sourceId"] == "github-acme"

    def test_files_accept_mappings(self, repository: LockfileRepository) -> None:
        options = make_options(files=[{"path": "x.md", "checksum": sha256("x")}])
        lockfile = asyncio.run(repository.create_or_update(options))
        assert lockfile.bundles["acme-tool"].files == [FileEntry("x.md", sha256("x"))]

    def test_idempotent_create(self, repository: LockfileRepository) -> None:
        """Applying the same options twice yields the same document modulo timestamps."""
        asyncio.run(repository.create_or_update(make_options()))
        first = json.loads(repository.lockfile_path.read_text(encoding="utf-8"))
        asyncio.run(repository.create_or_update(make_options()))
        second = json.loads(repository.lockfile_path.read_text(encoding="utf-8"))
        assert _strip_timestamps(first) == _strip_timestamps(second)

    def test_update_replaces_entry(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options(version="1.0.0")))
        asyncio.run(repository.create_or_update(make_options(version="2.0.0")))
        entry = asyncio.run(repository.get_bundle("acme-tool"))
        assert entry is not None
        assert entry.version == "2.0.0"

    def test_hub_and_profile_recorded(self, repository: LockfileRepository) -> None:
        options = make_options(
            hub=("main", HubEntry(name="Main", url="https://hub.example")),
            profile=("dev", ProfileEntry(name="Dev", bundle_ids=("acme-tool",))),
        )
        lockfile = asyncio.run(repository.create_or_update(options))
        assert lockfile.hubs == {"main": HubEntry(name="Main", url="https://hub.example")}
        assert lockfile.profiles is not None
        assert lockfile.profiles["dev"].bundle_ids == ("acme-tool",)

    def test_list_bundles(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options(bundle_id="a")))
        asyncio.run(repository.create_or_update(make_options(bundle_id="b")))
        assert sorted(asyncio.run(repository.list_bundles())) == ["a", "b"]


# ===========================================================================
# Atomicity
# ===========================================================================


class TestAtomicWrites:
    """A failed rename never leaves a torn or temporary file behind."""

    def test_rename_failure_preserves_previous_content(
        self, repository: LockfileRepository, repo_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        asyncio.run(repository.create_or_update(make_options(version="1.0.0")))
        before = repository.lockfile_path.read_bytes()

        def _fail(src: object, dst: object) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("bundlelock.core.lockfile.storage.os.replace", _fail)
        with pytest.raises(LockfileWriteError):
            asyncio.run(repository.create_or_update(make_options(version="2.0.0")))

        assert repository.lockfile_path.read_bytes() == before
        assert list(repo_root.glob("*.tmp")) == []
        assert [p.name for p in repo_root.iterdir()] == [repository.lockfile_path.name]

    def test_failed_write_releases_queue(
        self, repository: LockfileRepository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A write queued after a failing write still runs."""
        real_replace = os.replace
        calls = {"n": 0}

        def _fail_once(src: object, dst: object) -> None:
            calls["n"] += 1
            if calls["n"] == 1:
                raise OSError("transient")
            real_replace(src, dst)  # type: ignore[arg-type]

        monkeypatch.setattr("bundlelock.core.lockfile.storage.os.replace", _fail_once)

        async def _run() -> list[object]:
            return await asyncio.gather(
                repository.create_or_update(make_options(bundle_id="a")),
                repository.create_or_update(make_options(bundle_id="b")),
                return_exceptions=True,
            )

        results = asyncio.run(_run())
        assert isinstance(results[0], LockfileWriteError)
        lockfile = asyncio.run(repository.read())
        assert lockfile is not None
        assert list(lockfile.bundles) == ["b"]


# ===========================================================================
# Removal
# ===========================================================================


class TestRemove:
    """Removing entries and deleting the file."""

    def test_remove_absent_lockfile_is_noop(self, repository: LockfileRepository) -> None:
        assert asyncio.run(repository.remove("nothing")) is None
        assert not repository.lockfile_path.exists()

    def test_remove_unknown_bundle_is_noop(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options()))
        before = repository.lockfile_path.read_text(encoding="utf-8")
        asyncio.run(repository.remove("unknown"))
        assert repository.lockfile_path.read_text(encoding="utf-8") == before

    def test_removing_last_bundle_deletes_file(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options()))
        assert asyncio.run(repository.remove("acme-tool")) is None
        assert not repository.lockfile_path.exists()

    def test_remove_keeps_other_bundles(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options(bundle_id="a")))
        asyncio.run(repository.create_or_update(make_options(bundle_id="b")))
        remaining = asyncio.run(repository.remove("a"))
        assert remaining is not None
        assert list(remaining.bundles) == ["b"]
        assert "github-acme" in remaining.sources

    def test_remove_drops_orphaned_source(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options(bundle_id="a", source_id="s1")))
        asyncio.run(repository.create_or_update(make_options(bundle_id="b", source_id="s2")))
        remaining = asyncio.run(repository.remove("a"))
        assert remaining is not None
        assert set(remaining.sources) == {"s2"}


class TestOrphanedSourceOnUpdate:
    def test_changing_source_drops_old_source(self, repository: LockfileRepository) -> None:
        """Moving the only bundle of a source to another source removes the old one."""
        asyncio.run(repository.create_or_update(make_options(source_id="old-src")))
        lockfile = asyncio.run(repository.create_or_update(make_options(source_id="new-src")))
        assert set(lockfile.sources) == {"new-src"}

    def test_shared_source_is_kept(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options(bundle_id="a", source_id="shared")))
        asyncio.run(repository.create_or_update(make_options(bundle_id="b", source_id="shared")))
        lockfile = asyncio.run(repository.create_or_update(make_options(bundle_id="a", source_id="other")))
        assert set(lockfile.sources) == {"shared", "other"}


# ===========================================================================
# Validation before I/O
# ===========================================================================


class TestInputValidation:
    """Malformed input raises ValidationError and touches nothing."""

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"bundle_id": ""}, "bundleId is required and must be a non-empty string"),
            ({"version": "  "}, "version is required and must be a non-empty string"),
            ({"files": "a.md"}, "files must be an array"),
            ({"source": {"type": "github"}}, "source must have type and url properties"),
            ({"commit_mode": "push"}, 'commitMode must be either "commit" or "local-only"'),
        ],
    )
    def test_rejected_without_io(
        self, repository: LockfileRepository, overrides: dict, message: str
    ) -> None:
        with pytest.raises(ValidationError, match=message):
            asyncio.run(repository.create_or_update(make_options(**overrides)))
        assert not repository.lockfile_path.exists()

    def test_local_only_commit_mode_accepted(self, repository: LockfileRepository) -> None:
        lockfile = asyncio.run(repository.create_or_update(make_options(commit_mode="local-only")))
        assert lockfile.bundles["acme-tool"].commit_mode == "local-only"


# ===========================================================================
# Corrupt lockfile
# ===========================================================================


class TestCorruptLockfile:
    """A corrupt file is never silently replaced."""

    def test_read_returns_none(self, repository: LockfileRepository) -> None:
        repository.lockfile_path.write_text("{not json", encoding="utf-8")
        assert asyncio.run(repository.read()) is None

    def test_load_raises(self, repository: LockfileRepository) -> None:
        repository.lockfile_path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(LockfileReadError):
            asyncio.run(repository.load())

    def test_write_refuses_to_clobber(self, repository: LockfileRepository) -> None:
        repository.lockfile_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(LockfileReadError):
            asyncio.run(repository.create_or_update(make_options()))
        assert repository.lockfile_path.read_text(encoding="utf-8") == "{not json"

    def test_remove_refuses_to_clobber(self, repository: LockfileRepository) -> None:
        repository.lockfile_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(LockfileReadError):
            asyncio.run(repository.remove("acme-tool"))
        assert repository.lockfile_path.exists()


# ===========================================================================
# Drift detection
# ===========================================================================


class TestDetectModifiedFiles:
    """Recorded checksums against on-disk content."""

    def test_no_drift(self, repository: LockfileRepository, repo_root: Path) -> None:
        files = write_files(repo_root, {"p/a.md": "alpha", "p/b.md": "beta"})
        asyncio.run(repository.create_or_update(make_options(files=files)))
        assert asyncio.run(repository.detect_modified_files("acme-tool")) == []

    def test_modified_and_missing(self, repository: LockfileRepository, repo_root: Path) -> None:
        files = write_files(repo_root, {"p/a.md": "alpha", "p/b.md": "beta"})
        asyncio.run(repository.create_or_update(make_options(files=files)))

        (repo_root / "p/a.md").write_text("edited", encoding="utf-8")
        (repo_root / "p/b.md").unlink()

        drift = asyncio.run(repository.detect_modified_files("acme-tool"))
        by_path = {info.path: info for info in drift}
        assert by_path["p/a.md"].modification_type == "modified"
        assert by_path["p/a.md"].original_checksum == sha256("alpha")
        assert by_path["p/a.md"].current_checksum == sha256("edited")
        assert by_path["p/b.md"].modification_type == "missing"
        assert by_path["p/b.md"].current_checksum == ""

    def test_checksum_failure_reported_missing(
        self, repo_root: Path
    ) -> None:
        class _Broken:
            async def checksum(self, path: Path) -> str:
                raise OSError("permission denied")

        repository = LockfileRepository(repo_root, checksum_service=_Broken())
        files = write_files(repo_root, {"a.md": "alpha"})
        asyncio.run(repository.create_or_update(make_options(files=files)))
        drift = asyncio.run(repository.detect_modified_files("acme-tool"))
        assert [(d.path, d.modification_type) for d in drift] == [("a.md", "missing")]

    def test_unknown_bundle_or_lockfile(self, repository: LockfileRepository) -> None:
        assert asyncio.run(repository.detect_modified_files("acme-tool")) == []
        asyncio.run(repository.create_or_update(make_options()))
        assert asyncio.run(repository.detect_modified_files("other")) == []


# ===========================================================================
# Concurrency
# ===========================================================================


class TestSerializedWrites:
    """Concurrent writers never lose each other's updates."""

    def test_concurrent_creates_all_recorded(self, repository: LockfileRepository) -> None:
        async def _run() -> None:
            await asyncio.gather(*(
                repository.create_or_update(make_options(bundle_id=f"bundle-{i}"))
                for i in range(10)
            ))

        asyncio.run(_run())
        lockfile = asyncio.run(repository.read())
        assert lockfile is not None
        assert len(lockfile.bundles) == 10

    def test_concurrent_create_and_remove(self, repository: LockfileRepository) -> None:
        asyncio.run(repository.create_or_update(make_options(bundle_id="keep")))
        asyncio.run(repository.create_or_update(make_options(bundle_id="drop")))

        async def _run() -> None:
            await asyncio.gather(
                repository.remove("drop"),
                repository.create_or_update(make_options(bundle_id="new")),
            )

        asyncio.run(_run())
        lockfile = asyncio.run(repository.read())
        assert lockfile is not None
        assert sorted(lockfile.bundles) == ["keep", "new"]
