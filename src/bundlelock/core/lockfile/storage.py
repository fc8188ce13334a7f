"""Storage primitives --- atomic file replacement and the write queue.

``atomic_write_text`` writes the full content to a temporary file beside the
target and renames it over the target with ``os.replace``. The rename is the
only observable state transition: readers see either the old or the new
file, never a partial one.

``WriteQueue`` serializes read-modify-write cycles for one lockfile. It is a
FIFO async mutex: a queued cycle starts only after every earlier cycle has
settled, and a failed cycle releases the queue like a successful one.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from bundlelock.exceptions import LockfileWriteError

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, text: str, *, fsync: bool = True) -> None:
    """Atomically replace ``path`` with ``text`` (UTF-8).

    Raises:
        LockfileWriteError: If the temp write or the rename fails. The temp
            file is removed and ``path`` keeps its previous content.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            if fsync:
                os.fsync(handle.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as exc:
        raise LockfileWriteError(f"Failed to write {path}: {exc}") from exc
    finally:
        if tmp_path is not None:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove temp file %s", tmp_path, exc_info=True)


def delete_file(path: Path) -> bool:
    """Delete ``path`` if present.

    Returns:
        True if a file was removed.

    Raises:
        LockfileWriteError: If the file exists but cannot be removed.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise LockfileWriteError(f"Failed to delete {path}: {exc}") from exc
    return True


class WriteQueue:
    """FIFO async mutex for one resource.

    Example::

        queue = WriteQueue("repo")
        async with queue.slot():
            data = await read()
            await write(modify(data))
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._lock = asyncio.Lock()
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of cycles holding or waiting for the queue."""
        return self._pending

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        self._pending += 1
        try:
            async with self._lock:
                logger.debug("Write slot acquired for %s", self._name)
                yield
        finally:
            self._pending -= 1
