"""Shared fixtures: a scripted git double and throwaway real repositories."""
from __future__ import annotations

import shutil

import pytest

from gitrewind.history import HistoryModel
from tests.helpers import FakeGit, make_repo


@pytest.fixture
def fake_git():
    return FakeGit(count=10)


@pytest.fixture
def history(fake_git, tmp_path):
    """Ten commits, four per page: pages of 4, 4 and 2."""
    return HistoryModel(str(tmp_path), 4, runner=fake_git)


@pytest.fixture
def git_repo(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    return make_repo(tmp_path / "repo", 7)


@pytest.fixture
def anyio_backend():
    # Textual runs on asyncio only
    return "asyncio"
