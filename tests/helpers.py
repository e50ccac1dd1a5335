"""Test doubles and repository builders shared by the test modules."""
from __future__ import annotations

import os
import shutil
import subprocess

import pytest

from gitrewind.git import GitExitError, GitLaunchError, GitRunner


class FakeGit(GitRunner):
    """Answers the git commands HistoryModel issues from an in-memory history.

    Commits are named ``c0010`` (newest) down to ``c0001`` (oldest). Every
    call is recorded in `calls`. Command names listed in `fail` exit 128, those
    in `launch_fail` cannot be started at all. With `fail_after_save` set,
    `stash push` saves an entry and then exits 128 anyway.
    """

    def __init__(self, count: int = 10) -> None:
        super().__init__("git")
        self.commits = [f"c{n:04d}" for n in range(count, 0, -1)]
        self.head = self.commits[0] if self.commits else "0000000"
        self.dirty = True
        self.stash_entries: list[str] = []
        self.fail: set[str] = set()
        self.launch_fail: set[str] = set()
        self.fail_after_save = False
        self.log_output: str | None = None
        self.count_output: str | None = None
        self.calls: list[list[str]] = []

    @staticmethod
    def line(short_hash: str) -> str:
        n = int(short_hash[1:])
        return f"{short_hash}|Author {n}|{n} days ago|Commit number {n}"

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def _check(self, key: str, args: list[str]) -> None:
        if key in self.launch_fail:
            raise GitLaunchError(["git", *args], FileNotFoundError(2, "No such file or directory"))
        if key in self.fail:
            raise GitExitError(["git", *args], 128, f"fatal: simulated {key} failure\n")

    def run(self, cwd, args):
        args = list(args)
        self.calls.append(args)
        key = "apply" if args[:2] == ["stash", "apply"] else args[0]
        self._check(key, args)

        if args[:2] == ["rev-parse", "--short"]:
            return self.head + "\n"
        if args[:3] == ["rev-parse", "-q", "--verify"]:
            if not self.stash_entries:
                raise GitExitError(["git", *args], 1, "")
            return self.stash_entries[-1] + "\n"
        if args[0] == "log":
            if self.log_output is not None:
                return self.log_output
            skip = next(int(a.split("=", 1)[1]) for a in args if a.startswith("--skip="))
            limit = next(int(a.split("=", 1)[1]) for a in args if a.startswith("--max-count="))
            start = self.commits.index(args[-1]) + skip
            lines = [self.line(h) for h in self.commits[start:start + limit]]
            return "".join(line + "\n" for line in lines)
        if args[:2] == ["stash", "push"]:
            if not self.dirty:
                return "No local changes to save\n"
            self.stash_entries.append(f"stash{len(self.stash_entries)}")
            self.dirty = False
            if self.fail_after_save:
                raise GitExitError(["git", *args], 128, "fatal: could not reset working tree\n")
            return "Saved working directory and index state\n"
        if args[:2] == ["stash", "apply"]:
            if not self.stash_entries:
                raise GitExitError(["git", *args], 1, "No stash entries found.\n")
            self.dirty = True
            return ""
        if args[0] == "reset":
            self.head = args[-1]
            return f"HEAD is now at {self.head}\n"
        raise AssertionError(f"unexpected git call: {args}")

    def pipe(self, args, cwd, consumer):
        args = list(args)
        self.calls.append(["pipe", *args])
        self._check("count", args)
        if self.count_output is not None:
            return self.count_output
        total = len(self.commits) - self.commits.index(args[-1])
        return f"{total:>8}\n"


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")


def git(repo, *args: str) -> str:
    proc = subprocess.run(["git", *args], cwd=repo, capture_output=True, text=True, check=True)
    return proc.stdout


def make_repo(path, commits: int) -> str:
    """Create a repository with a README and `commits` linear commits."""
    repo = str(path)
    os.makedirs(repo, exist_ok=True)
    git(repo, "init", "-q")
    git(repo, "config", "user.name", "Test Author")
    git(repo, "config", "user.email", "author@example.com")
    git(repo, "config", "commit.gpgsign", "false")
    with open(os.path.join(repo, "README"), "w") as fh:
        fh.write("readme\n")
    for n in range(1, commits + 1):
        with open(os.path.join(repo, f"file{n}.txt"), "w") as fh:
            fh.write(f"content {n}\n")
        git(repo, "add", "-A")
        git(repo, "commit", "-q", "-m", f"Commit {n}")
    return repo

