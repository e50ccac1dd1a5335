"""
Working-tree status summary, read straight from the repository with pygit2.

This is what `reset_to` is about to stash, shown in the header so the user
knows whether a rewind will touch pending edits.
"""
from __future__ import annotations

import logging
import os
import traceback
from dataclasses import dataclass
from typing import Optional

import pygit2

logger = logging.getLogger(__name__)

_STAGED = (
    getattr(pygit2, "GIT_STATUS_INDEX_NEW", 0)
    | getattr(pygit2, "GIT_STATUS_INDEX_MODIFIED", 0)
    | getattr(pygit2, "GIT_STATUS_INDEX_DELETED", 0)
    | getattr(pygit2, "GIT_STATUS_INDEX_RENAMED", 0)
    | getattr(pygit2, "GIT_STATUS_INDEX_TYPECHANGE", 0)
)
_MODIFIED = (
    getattr(pygit2, "GIT_STATUS_WT_MODIFIED", 0)
    | getattr(pygit2, "GIT_STATUS_WT_DELETED", 0)
    | getattr(pygit2, "GIT_STATUS_WT_RENAMED", 0)
    | getattr(pygit2, "GIT_STATUS_WT_TYPECHANGE", 0)
)
_UNTRACKED = getattr(pygit2, "GIT_STATUS_WT_NEW", 0)
_CONFLICTED = getattr(pygit2, "GIT_STATUS_CONFLICTED", 0)
_IGNORED = getattr(pygit2, "GIT_STATUS_IGNORED", 0)


@dataclass(frozen=True)
class WorkingTreeStatus:
    staged: int = 0
    modified: int = 0
    untracked: int = 0
    conflicted: int = 0

    @property
    def clean(self) -> bool:
        return not (self.staged or self.modified or self.untracked or self.conflicted)

    def describe(self) -> str:
        if self.clean:
            return "clean"
        parts = []
        for count, label in (
            (self.conflicted, "conflicted"),
            (self.staged, "staged"),
            (self.modified, "modified"),
            (self.untracked, "untracked"),
        ):
            if count:
                parts.append(f"{count} {label}")
        return ", ".join(parts)


def summarize(status_map: dict[str, int]) -> WorkingTreeStatus:
    """Count paths per category from a pygit2 ``Repository.status()`` mapping.

    A path that is both staged and modified again counts in both.
    """
    staged = modified = untracked = conflicted = 0
    for flags in status_map.values():
        flags = int(flags)
        if flags & _IGNORED:
            continue
        if flags & _CONFLICTED:
            conflicted += 1
            continue
        if flags & _STAGED:
            staged += 1
        if flags & _MODIFIED:
            modified += 1
        if flags & _UNTRACKED:
            untracked += 1
    return WorkingTreeStatus(staged, modified, untracked, conflicted)


def discover_root(path: str) -> Optional[str]:
    """Return the working-tree root of the repository containing `path`."""
    try:
        gitdir = pygit2.discover_repository(path)
        if not gitdir:
            return None
        workdir = pygit2.Repository(gitdir).workdir
        if not workdir:
            return None
        return os.path.abspath(workdir)
    except Exception as e:
        logger.debug(f"discover_root: exception for {path}: {e}")
        logger.debug(traceback.format_exc())
        return None


def scan_working_tree(path: str) -> Optional[WorkingTreeStatus]:
    """Best-effort status scan; None if `path` is not inside a readable repository."""
    try:
        gitdir = pygit2.discover_repository(path)
        if not gitdir:
            return None
        repo = pygit2.Repository(gitdir)
        if repo.is_bare:
            return None
        return summarize(repo.status())
    except Exception as e:
        logger.debug(f"scan_working_tree: exception for {path}: {e}")
        logger.debug(traceback.format_exc())
        return None
