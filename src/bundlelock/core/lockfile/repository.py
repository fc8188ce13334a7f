"""LockfileRepository --- durable, serialized lockfile storage for one repository.

A repository owns exactly one lockfile path. It provides:

- **Reads:** ``read()`` (lenient: absent or corrupt both yield None) and
  ``load()`` (strict: corrupt raises ``LockfileReadError``).
- **Writes:** ``create_or_update()`` and ``remove()``. Each runs its whole
  read-modify-write cycle inside the repository's ``WriteQueue``, and every
  write is an atomic temp-file + rename.
- **Drift detection:** ``detect_modified_files()`` compares recorded file
  checksums against current on-disk content.
- **Change events:** listeners receive the new ``Lockfile`` after each write,
  ``None`` after the file is deleted, and re-read state on external changes
  reported by a ``FileChangeNotifier``. External events never cause writes.

Reads are not queued. Because writes are atomic, a concurrent reader sees the
pre- or post-write file, possibly a stale snapshot, never a torn one.

No locking is attempted across processes: two processes writing the same
lockfile each perform a valid atomic rename and the last writer wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Mapping, Sequence
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from bundlelock import _GENERATED_BY
from bundlelock.config import DEFAULT_LOCKFILE_NAME
from bundlelock.core.integrity import ChecksumService, Sha256ChecksumService
from bundlelock.core.lockfile.models import (
    COMMIT_MODES,
    BundleEntry,
    CreateOrUpdateOptions,
    FileEntry,
    Lockfile,
    LockfileValidationResult,
    ModifiedFileInfo,
    SourceEntry,
    utc_now_iso,
)
from bundlelock.core.lockfile.schema import (
    LOCKFILE_SCHEMA_PATH,
    JsonSchemaValidator,
    SchemaValidator,
)
from bundlelock.core.lockfile.storage import WriteQueue, atomic_write_text, delete_file
from bundlelock.exceptions import LockfileReadError, ValidationError

logger = logging.getLogger(__name__)

LockfileListener = Callable[[Lockfile | None], None]


class FileChangeKind(str, Enum):
    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"


class FileChangeNotifier(Protocol):
    """Reports external changes to a single file.

    ``watch`` returns a callable that stops watching. Callbacks are expected
    on the event loop thread.
    """

    def watch(
        self, path: Path, callback: Callable[[FileChangeKind], None]
    ) -> Callable[[], None]: ...


# ---------------------------------------------------------------------------
# Input validation (no I/O)
# ---------------------------------------------------------------------------


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required and must be a non-empty string")
    return value


def _normalize_files(files: object) -> list[FileEntry]:
    if isinstance(files, (str, bytes)) or not isinstance(files, Sequence):
        raise ValidationError("files must be an array")
    entries: list[FileEntry] = []
    for index, item in enumerate(files):
        if isinstance(item, FileEntry):
            entries.append(item)
            continue
        if not isinstance(item, Mapping):
            raise ValidationError(f"files[{index}] must be an object with path and checksum")
        path = item.get("path")
        checksum = item.get("checksum")
        if not isinstance(path, str) or not path or not isinstance(checksum, str):
            raise ValidationError(f"files[{index}] must have string path and checksum")
        entries.append(FileEntry(path=path, checksum=checksum))
    return entries


def _normalize_source(source: object) -> SourceEntry:
    if isinstance(source, SourceEntry):
        entry = source
    elif isinstance(source, Mapping):
        entry = SourceEntry(
            type=source.get("type", ""),
            url=source.get("url", ""),
            branch=source.get("branch"),
        )
    else:
        raise ValidationError("source is required and must be an object")
    if not entry.type or not entry.url:
        raise ValidationError("source must have type and url properties")
    return entry


def validate_options(options: CreateOrUpdateOptions) -> tuple[list[FileEntry], SourceEntry]:
    """Check every required field of ``options``.

    Returns:
        The normalized file list and source entry.

    Raises:
        ValidationError: On the first invalid field.
    """
    _require_str(options.bundle_id, "bundleId")
    _require_str(options.version, "version")
    _require_str(options.source_id, "sourceId")
    _require_str(options.source_type, "sourceType")
    files = _normalize_files(options.files)
    source = _normalize_source(options.source)
    if options.commit_mode not in COMMIT_MODES:
        raise ValidationError('commitMode must be either "commit" or "local-only"')
    return files, source


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LockfileRepository:
    """Durable lockfile state for one repository path.

    Obtain instances from a ``LockfileRepositoryRegistry`` so that every
    caller working on the same path shares one write queue.

    Args:
        repository_path: Repository root; the lockfile lives directly in it.
        lockfile_name: File name of the lockfile.
        generated_by: ``<tool>@<version>`` recorded in new lockfiles.
        checksum_service: Used by drift detection.
        schema_validator: Used by ``validate()``.
        write_queue: Serializes read-modify-write cycles.
        schema_path: Schema file passed to the validator.
    """

    def __init__(
        self,
        repository_path: Path,
        *,
        lockfile_name: str = DEFAULT_LOCKFILE_NAME,
        generated_by: str = _GENERATED_BY,
        checksum_service: ChecksumService | None = None,
        schema_validator: SchemaValidator | None = None,
        write_queue: WriteQueue | None = None,
        schema_path: Path = LOCKFILE_SCHEMA_PATH,
    ) -> None:
        self._repository_path = Path(repository_path)
        self._lockfile_path = self._repository_path / lockfile_name
        self._generated_by = generated_by
        self._checksums = checksum_service or Sha256ChecksumService()
        self._schema_validator = schema_validator or JsonSchemaValidator()
        self._queue = write_queue or WriteQueue(str(self._lockfile_path))
        self._schema_path = schema_path
        self._listeners: list[LockfileListener] = []
        self._unwatch: Callable[[], None] | None = None
        self._refresh_tasks: set[asyncio.Task[None]] = set()

    @property
    def repository_path(self) -> Path:
        return self._repository_path

    @property
    def lockfile_path(self) -> Path:
        return self._lockfile_path

    # -- Change events ------------------------------------------------------

    def subscribe(self, listener: LockfileListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            A callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, state: Lockfile | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.warning("Lockfile listener failed", exc_info=True)

    def watch(self, notifier: FileChangeNotifier) -> None:
        """Follow external changes to the lockfile through ``notifier``."""
        if self._unwatch is not None:
            self._unwatch()
        self._unwatch = notifier.watch(self._lockfile_path, self._on_external_change)

    def _on_external_change(self, kind: FileChangeKind) -> None:
        if kind is FileChangeKind.DELETED:
            logger.debug("Lockfile deleted externally: %s", self._lockfile_path)
            self._emit(None)
            return
        logger.debug("Lockfile %s externally: %s", kind.value, self._lockfile_path)
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def refresh(self) -> Lockfile | None:
        """Re-read the lockfile and emit the result to listeners."""
        lockfile = await self.read()
        self._emit(lockfile)
        return lockfile

    def dispose(self) -> None:
        """Stop watching and drop all listeners."""
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        for task in list(self._refresh_tasks):
            task.cancel()
        self._listeners.clear()

    # -- Reads --------------------------------------------------------------

    def _load_sync(self) -> Lockfile | None:
        try:
            text = self._lockfile_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LockfileReadError(f"Cannot read {self._lockfile_path}: {exc}") from exc
        try:
            return Lockfile.from_json(text)
        except (ValueError, TypeError, AttributeError) as exc:
            raise LockfileReadError(f"Corrupt lockfile {self._lockfile_path}: {exc}") from exc

    async def load(self) -> Lockfile | None:
        """Strictly read the lockfile.

        Returns:
            The parsed lockfile, or None if the file does not exist.

        Raises:
            LockfileReadError: If the file exists but cannot be parsed.
        """
        return await asyncio.to_thread(self._load_sync)

    async def read(self) -> Lockfile | None:
        """Read the lockfile, treating a corrupt file like an absent one.

        A corrupt file is logged at error level. Use ``load()`` to tell the
        two cases apart.
        """
        try:
            return await self.load()
        except LockfileReadError:
            logger.error("Failed to read lockfile %s", self._lockfile_path, exc_info=True)
            return None

    async def get_bundle(self, bundle_id: str) -> BundleEntry | None:
        lockfile = await self.read()
        if lockfile is None:
            return None
        return lockfile.bundles.get(bundle_id)

    async def list_bundles(self) -> dict[str, BundleEntry]:
        lockfile = await self.read()
        return dict(lockfile.bundles) if lockfile else {}

    async def validate(self) -> LockfileValidationResult:
        """Validate the lockfile against the packaged JSON schema.

        Absence and corruption are reported as errors, never raised.
        """
        try:
            text = await asyncio.to_thread(self._lockfile_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return LockfileValidationResult(valid=False, errors=["Lockfile does not exist"])
        except OSError as exc:
            return LockfileValidationResult(
                valid=False, errors=[f"Lockfile could not be read: {exc}"]
            )

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            return LockfileValidationResult(
                valid=False, errors=[f"Lockfile is not valid JSON: {exc}"]
            )

        schema_version = data.get("version") if isinstance(data, dict) else None
        try:
            result = await self._schema_validator.validate(data, self._schema_path)
        except Exception as exc:
            return LockfileValidationResult(
                valid=False,
                errors=[f"Validation error: {exc}"],
                schema_version=schema_version,
            )

        warnings = list(result.warnings)
        try:
            lockfile = Lockfile.from_dict(data)
        except (ValueError, TypeError, AttributeError):
            lockfile = None
        if lockfile is not None:
            for source_id in lockfile.orphaned_sources():
                warnings.append(f"Source {source_id!r} is not referenced by any bundle")
            for bundle_id, entry in sorted(lockfile.bundles.items()):
                if entry.source_id not in lockfile.sources:
                    warnings.append(
                        f"Bundle {bundle_id!r} references unknown source {entry.source_id!r}"
                    )

        return LockfileValidationResult(
            valid=result.valid,
            errors=list(result.errors),
            warnings=warnings,
            schema_version=schema_version,
        )

    # -- Writes -------------------------------------------------------------

    async def _write(self, lockfile: Lockfile) -> None:
        await asyncio.to_thread(atomic_write_text, self._lockfile_path, lockfile.to_json())
        logger.debug("Lockfile written: %s", self._lockfile_path)

    async def create_or_update(self, options: CreateOrUpdateOptions) -> Lockfile:
        """Insert or replace a bundle entry and its source.

        Args:
            options: Bundle, source, and optional hub/profile data.

        Returns:
            The lockfile as written.

        Raises:
            ValidationError: If ``options`` is malformed (no I/O performed).
            LockfileReadError: If the existing lockfile is corrupt.
            LockfileWriteError: If the atomic write fails.
        """
        files, source = validate_options(options)

        async with self._queue.slot():
            lockfile = await self.load()
            if lockfile is None:
                lockfile = Lockfile.empty(self._generated_by)

            previous = lockfile.bundles.get(options.bundle_id)
            lockfile.bundles[options.bundle_id] = BundleEntry(
                version=options.version,
                source_id=options.source_id,
                source_type=options.source_type,
                installed_at=utc_now_iso(),
                commit_mode=options.commit_mode,  # type: ignore[arg-type]
                files=files,
                checksum=options.checksum or None,
            )
            lockfile.sources[options.source_id] = source
            if previous is not None and previous.source_id != options.source_id:
                lockfile.drop_source_if_orphaned(previous.source_id)

            if options.hub is not None:
                hub_id, hub_entry = options.hub
                if lockfile.hubs is None:
                    lockfile.hubs = {}
                lockfile.hubs[hub_id] = hub_entry
            if options.profile is not None:
                profile_id, profile_entry = options.profile
                if lockfile.profiles is None:
                    lockfile.profiles = {}
                lockfile.profiles[profile_id] = profile_entry

            lockfile.touch()
            await self._write(lockfile)
            logger.info(
                "Recorded bundle %s@%s in %s",
                options.bundle_id, options.version, self._lockfile_path,
            )
            self._emit(lockfile)
            return lockfile

    async def remove(self, bundle_id: str) -> Lockfile | None:
        """Remove a bundle entry; delete the file when no bundles remain.

        A missing lockfile or bundle entry is a no-op.

        Returns:
            The remaining lockfile, or None if the file is gone.

        Raises:
            LockfileReadError: If the existing lockfile is corrupt.
            LockfileWriteError: If the rewrite or delete fails.
        """
        async with self._queue.slot():
            lockfile = await self.load()
            if lockfile is None:
                logger.debug("No lockfile, nothing to remove for bundle %s", bundle_id)
                return None
            entry = lockfile.bundles.pop(bundle_id, None)
            if entry is None:
                logger.debug("Bundle %s not found in lockfile", bundle_id)
                return lockfile

            lockfile.drop_source_if_orphaned(entry.source_id)

            if not lockfile.bundles:
                await asyncio.to_thread(delete_file, self._lockfile_path)
                logger.info("Removed last bundle %s; deleted %s", bundle_id, self._lockfile_path)
                self._emit(None)
                return None

            lockfile.touch()
            await self._write(lockfile)
            logger.info("Removed bundle %s from %s", bundle_id, self._lockfile_path)
            self._emit(lockfile)
            return lockfile

    # -- Drift detection ----------------------------------------------------

    async def detect_modified_files(self, bundle_id: str) -> list[ModifiedFileInfo]:
        """List tracked files of ``bundle_id`` that drifted since install.

        Returns an empty list when the lockfile or the bundle is absent.
        """
        entry = await self.get_bundle(bundle_id)
        if entry is None:
            return []
        return await detect_drift(self._repository_path, entry.files, self._checksums)


async def detect_drift(
    root: Path, files: Sequence[FileEntry], checksums: ChecksumService
) -> list[ModifiedFileInfo]:
    """Compare recorded file checksums under ``root`` with current content.

    Files that are absent, or whose checksum cannot be computed, are
    ``missing`` with an empty current checksum. Files with a different
    checksum are ``modified``. Matching files are omitted.
    """
    modified: list[ModifiedFileInfo] = []
    for file_entry in files:
        full_path = root / file_entry.path
        if not await asyncio.to_thread(full_path.is_file):
            modified.append(ModifiedFileInfo(
                path=file_entry.path,
                original_checksum=file_entry.checksum,
                current_checksum="",
                modification_type="missing",
            ))
            continue
        try:
            current = await checksums.checksum(full_path)
        except Exception:
            logger.warning("Failed to check file %s", file_entry.path, exc_info=True)
            modified.append(ModifiedFileInfo(
                path=file_entry.path,
                original_checksum=file_entry.checksum,
                current_checksum="",
                modification_type="missing",
            ))
            continue
        if current != file_entry.checksum:
            modified.append(ModifiedFileInfo(
                path=file_entry.path,
                original_checksum=file_entry.checksum,
                current_checksum=current,
                modification_type="modified",
            ))
    return modified


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


RepositoryFactory = Callable[[Path], LockfileRepository]


def normalize_repository_path(path: Path | str) -> Path:
    return Path(os.path.normpath(os.path.abspath(os.fspath(path))))


class LockfileRepositoryRegistry:
    """Host-owned map of repository path -> ``LockfileRepository``.

    Paths are normalized, so ``/repo`` and ``/repo/./`` share one instance
    and therefore one write queue.

    Args:
        factory: Builds a repository for a normalized path. Defaults to
            ``LockfileRepository(path)``.
    """

    def __init__(self, factory: RepositoryFactory | None = None) -> None:
        self._factory = factory or LockfileRepository
        self._instances: dict[Path, LockfileRepository] = {}

    def get(self, repository_path: Path | str) -> LockfileRepository:
        if not os.fspath(repository_path):
            raise ValueError("Repository path required")
        key = normalize_repository_path(repository_path)
        repo = self._instances.get(key)
        if repo is None:
            repo = self._factory(key)
            self._instances[key] = repo
        return repo

    def reset(self, repository_path: Path | str | None = None) -> None:
        """Dispose one repository, or all of them when no path is given."""
        if repository_path is None:
            for repo in self._instances.values():
                repo.dispose()
            self._instances.clear()
            return
        repo = self._instances.pop(normalize_repository_path(repository_path), None)
        if repo is not None:
            repo.dispose()

    def __contains__(self, repository_path: object) -> bool:
        if not isinstance(repository_path, (str, Path)):
            return False
        return normalize_repository_path(repository_path) in self._instances

    def __len__(self) -> int:
        return len(self._instances)
