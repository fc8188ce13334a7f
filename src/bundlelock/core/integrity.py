"""File integrity --- SHA-256 checksums of installed bundle files.

Checksums are plain lowercase hex digests (no algorithm prefix), matching the
``files[].checksum`` field of the lockfile.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Protocol

_CHUNK_SIZE = 64 * 1024


class ChecksumService(Protocol):
    """Computes a content hash for a file path."""

    async def checksum(self, path: Path) -> str: ...


def compute_file_checksum(path: Path) -> str:
    """Compute the SHA-256 hex digest of a file's content.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_content_checksum(content: str | bytes) -> str:
    """SHA-256 hex digest of in-memory content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


class Sha256ChecksumService:
    """Default checksum service; hashing runs off the event loop."""

    async def checksum(self, path: Path) -> str:
        return await asyncio.to_thread(compute_file_checksum, path)
