"""Shared fixtures for lockfile tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from bundlelock.core.lockfile import LockfileRepository


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    """An empty repository directory."""
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def repository(repo_root: Path) -> LockfileRepository:
    return LockfileRepository(repo_root, generated_by="bundlelock@test")
