"""
Paginated view over a repository's commit log.

`HistoryModel` pins every log query to the HEAD revision seen at startup so
that pages stay stable while the user resets the working tree around, and
asks git for the live HEAD separately when it needs to know what is checked
out right now.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from gitrewind.git import GitCommandError, GitRunner

logger = logging.getLogger(__name__)

# shortHash|author|relative time|subject, newest first
LOG_FORMAT = "--format=%h|%an|%cr|%s"
LINE_COUNTER = ["wc", "-l"]


class LogParseError(ValueError):
    """A log line did not have the four `|`-separated fields."""


class RepositoryError(Exception):
    """The working directory cannot be browsed (not a repository, no git, no HEAD)."""

    def __init__(self, cwd: str, cause: Exception) -> None:
        super().__init__(f"cannot open {cwd}: {cause}")
        self.cwd = cwd
        self.cause = cause


@dataclass(frozen=True)
class CommitRecord:
    """One commit as shown in the history list. Identity is the short hash."""

    short_hash: str
    author: str = field(compare=False)
    relative_time: str = field(compare=False)
    subject: str = field(compare=False)

    @classmethod
    def parse(cls, line: str) -> "CommitRecord":
        """Parse one ``hash|author|time|subject`` log line.

        The subject is everything after the third delimiter, so a subject
        containing `|` is kept intact.
        """
        fields = line.split("|", 3)
        if len(fields) != 4:
            raise LogParseError(f"expected 4 fields, got {len(fields)}: {line!r}")
        short_hash, author, relative_time, subject = fields
        if not short_hash:
            raise LogParseError(f"missing commit hash: {line!r}")
        return cls(short_hash, author, relative_time, subject)

    def __str__(self) -> str:
        return f"{self.short_hash} {self.relative_time} {self.author}: {self.subject}"


def pages_for(entry_count: int, page_size: int) -> int:
    """Number of pages needed to show `entry_count` entries."""
    return -(-entry_count // page_size)


class HistoryModel:
    """Commit history of one working directory, served a page at a time."""

    def __init__(self, cwd: str, page_size: int, runner: Optional[GitRunner] = None) -> None:
        self.cwd = os.path.abspath(cwd)
        self.runner = runner or GitRunner()
        self.page_size = max(1, page_size)
        self.stash_pending = False
        self.last_error: Optional[str] = None
        try:
            self.head_revision = self.runner.rev_short_sha(self.cwd, "HEAD")
        except GitCommandError as exc:
            raise RepositoryError(self.cwd, exc) from exc
        logger.debug(f"HistoryModel: cwd={self.cwd} head={self.head_revision} page_size={self.page_size}")

    def entry_count(self) -> Optional[int]:
        """Count commits reachable from the pinned head, or None if git failed."""
        try:
            out = self.runner.pipe(["log", LOG_FORMAT, self.head_revision], self.cwd, LINE_COUNTER)
        except GitCommandError as exc:
            logger.debug(f"HistoryModel.entry_count: {exc}")
            return None
        words = out.split()
        try:
            return int(words[-1])
        except (IndexError, ValueError):
            logger.debug(f"HistoryModel.entry_count: unparseable count {out!r}")
            return None

    def page_count(self) -> Optional[int]:
        count = self.entry_count()
        if count is None:
            return None
        return pages_for(count, self.page_size)

    def resize(self, page_size: int) -> None:
        self.page_size = max(1, page_size)

    def get_page(self, index: int) -> Optional[list[CommitRecord]]:
        """Return the records on page `index`.

        Pages past the end come back empty. Lines that do not parse are
        dropped with a warning. None means the git command itself failed.
        """
        if index < 0:
            return []
        args = [
            "log",
            LOG_FORMAT,
            f"--skip={index * self.page_size}",
            f"--max-count={self.page_size}",
            self.head_revision,
        ]
        try:
            out = self.runner.run(self.cwd, args)
        except GitCommandError as exc:
            logger.debug(f"HistoryModel.get_page({index}): {exc}")
            return None

        records: list[CommitRecord] = []
        for line in out.splitlines():
            if not line.strip():
                continue
            try:
                records.append(CommitRecord.parse(line))
            except LogParseError as exc:
                logger.warning(f"HistoryModel.get_page({index}): dropping line: {exc}")
        return records

    def current_commit(self) -> Optional[str]:
        """Short hash of the commit checked out right now (not the pinned head)."""
        try:
            return self.runner.rev_short_sha(self.cwd, "HEAD")
        except GitCommandError as exc:
            logger.debug(f"HistoryModel.current_commit: {exc}")
            return None

    def is_current_commit(self, record: CommitRecord) -> bool:
        return self.current_commit() == record.short_hash

    def stash(self) -> bool:
        """Stash pending changes, untracked files included.

        A clean tree stashes nothing and still counts as success;
        `stash_pending` turns on whenever git created an entry, even if the
        stash command itself then reported a failure.
        """
        try:
            before = self.runner.stash_ref(self.cwd)
        except GitCommandError as exc:
            self._fail(f"stash failed: {exc}")
            return False
        try:
            self.runner.stash(self.cwd)
        except GitCommandError as exc:
            if self._stash_created(before):
                self._fail(f"stash failed after saving an entry: {exc}")
            else:
                self._fail(f"stash failed: {exc}")
            return False
        try:
            after = self.runner.stash_ref(self.cwd)
        except GitCommandError as exc:
            self._fail(f"stash state unknown, check `git stash list`: {exc}")
            return False
        if after is not None and after != before:
            self.stash_pending = True
            logger.info(f"HistoryModel.stash: stashed pending changes as {after}")
        else:
            logger.info("HistoryModel.stash: nothing to stash")
        self.last_error = None
        return True

    def _stash_created(self, before: Optional[str]) -> bool:
        """Mark the stash pending if a new entry appeared since `before`."""
        try:
            after = self.runner.stash_ref(self.cwd)
        except GitCommandError as exc:
            logger.debug(f"HistoryModel._stash_created: {exc}")
            return False
        if after is not None and after != before:
            self.stash_pending = True
            return True
        return False

    def reset_to(self, record: CommitRecord) -> bool:
        """Stash pending changes, then hard-reset the working tree to `record`.

        The reset never runs if the stash did not succeed.
        """
        if not self.stash():
            logger.warning(f"HistoryModel.reset_to({record.short_hash}): stash failed, reset skipped")
            return False
        try:
            self.runner.reset_hard(self.cwd, record.short_hash)
        except GitCommandError as exc:
            self._fail(f"reset to {record.short_hash} failed: {exc}")
            return False
        logger.info(f"HistoryModel.reset_to: working tree now at {record.short_hash}")
        self.last_error = None
        return True

    def unstash(self) -> bool:
        """Re-apply the stash created by `stash` (the entry is kept, not dropped)."""
        if not self.stash_pending:
            logger.info("HistoryModel.unstash: no stash from this session to apply")
            return True
        try:
            self.runner.unstash(self.cwd)
        except GitCommandError as exc:
            self._fail(f"stash apply failed: {exc}")
            return False
        self.stash_pending = False
        self.last_error = None
        logger.info("HistoryModel.unstash: pending changes restored")
        return True

    def _fail(self, message: str) -> None:
        logger.warning(f"HistoryModel: {message}")
        self.last_error = message
