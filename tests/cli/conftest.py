"""Shared fixtures for CLI tests.

Every CLI test runs in an empty working directory with the user and
workspace record directories redirected under ``tmp_path``, so no real
``~/.bundlelock`` or ``./bundlelock.yaml`` is ever read.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
from click.testing import CliRunner

from bundlelock.core.lockfile import LockfileRepository
from tests.helpers import make_options, write_files


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in ``tmp_path`` with scope record dirs under it."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("BUNDLELOCK_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("BUNDLELOCK_USER_DIR", str(tmp_path / "user-records"))
    monkeypatch.setenv("BUNDLELOCK_WORKSPACE_DIR", str(tmp_path / "workspace-records"))
    return tmp_path


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A repository with ``acme-tool`` recorded and its file on disk."""
    root = tmp_path / "repo"
    root.mkdir()
    files = write_files(root, {"prompts/acme.md": "# acme\n"})
    asyncio.run(LockfileRepository(root).create_or_update(make_options(files=files)))
    return root
