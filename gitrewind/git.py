"""
Thin wrapper around the git binary.

Every git interaction in gitrewind goes through :class:`GitRunner`, which
either returns the captured stdout of a successful command or raises a
:class:`GitCommandError` describing what went wrong.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import traceback
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class GitCommandError(Exception):
    """Base class for failures running a git command."""

    def __init__(self, argv: Sequence[str], message: str) -> None:
        super().__init__(message)
        self.argv = list(argv)


class GitLaunchError(GitCommandError):
    """The process could not be started at all (missing binary, bad cwd)."""

    def __init__(self, argv: Sequence[str], cause: OSError) -> None:
        super().__init__(argv, f"failed to launch {argv[0]}: {cause}")
        self.cause = cause


class GitExitError(GitCommandError):
    """The process ran but exited with a nonzero status."""

    def __init__(self, argv: Sequence[str], exit_code: int, output: str) -> None:
        detail = output.strip()
        message = f"`{' '.join(argv)}` exited with code {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(argv, message)
        self.exit_code = exit_code
        self.output = output


def default_git_bin() -> str:
    """Return the git binary, honouring the GIT_BIN_PATH directory override."""
    bin_dir = os.environ.get("GIT_BIN_PATH")
    if bin_dir:
        return os.path.join(bin_dir, "git")
    return "git"


def _decode(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _read_back(fh) -> bytes:
    fh.seek(0)
    return fh.read()


class GitRunner:
    """Runs git commands synchronously in a given working directory."""

    def __init__(self, git_bin: Optional[str] = None) -> None:
        self.git_bin = git_bin or default_git_bin()

    def run(self, cwd: str, args: Sequence[str]) -> str:
        """Run ``git <args>`` in `cwd` and return its stdout.

        Raises `GitLaunchError` if git cannot be spawned and `GitExitError`
        (carrying stdout + stderr) if it exits nonzero.
        """
        argv = [self.git_bin, *args]
        logger.debug(f"GitRunner.run: cwd={cwd} argv={argv}")
        try:
            proc = subprocess.run(argv, cwd=cwd, capture_output=True)
        except OSError as exc:
            logger.debug(f"GitRunner.run: launch failed: {exc}")
            raise GitLaunchError(argv, exc) from exc

        out = _decode(proc.stdout)
        if proc.returncode != 0:
            err = _decode(proc.stderr)
            logger.debug(f"GitRunner.run: code={proc.returncode} stdout={out!r} stderr={err!r}")
            raise GitExitError(argv, proc.returncode, out + err)
        logger.debug(f"GitRunner.run: success out={out!r}")
        return out

    def pipe(self, args: Sequence[str], cwd: str, consumer: Sequence[str]) -> str:
        """Run ``git <args>`` and feed its stdout to the `consumer` process.

        The producer's output is copied completely into the consumer before
        either exit status is collected. Both processes must exit 0; the
        returned text is the consumer's stdout. Everything except the copied
        stream goes to temporary files, so a chatty stderr cannot stall the
        copy.
        """
        argv = [self.git_bin, *args]
        consumer = list(consumer)
        logger.debug(f"GitRunner.pipe: cwd={cwd} argv={argv} through {consumer}")
        with tempfile.TemporaryFile() as producer_err, \
                tempfile.TemporaryFile() as sink_out, \
                tempfile.TemporaryFile() as sink_err:
            try:
                producer = subprocess.Popen(
                    argv,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=producer_err,
                )
            except OSError as exc:
                logger.debug(f"GitRunner.pipe: producer launch failed: {exc}")
                raise GitLaunchError(argv, exc) from exc

            try:
                sink = subprocess.Popen(
                    consumer,
                    cwd=cwd,
                    stdin=subprocess.PIPE,
                    stdout=sink_out,
                    stderr=sink_err,
                )
            except OSError as exc:
                logger.debug(f"GitRunner.pipe: consumer launch failed: {exc}")
                producer.kill()
                producer.stdout.close()
                producer.wait()
                raise GitLaunchError(consumer, exc) from exc

            try:
                with producer.stdout, sink.stdin:
                    shutil.copyfileobj(producer.stdout, sink.stdin)
            except BrokenPipeError:
                # consumer stopped reading early; its exit status decides the outcome
                logger.debug(f"GitRunner.pipe: {consumer[0]} closed its input early")
            except (OSError, ValueError) as exc:
                logger.debug(f"GitRunner.pipe: copy failed: {exc}")
                logger.debug(traceback.format_exc())
                for proc in (producer, sink):
                    proc.kill()
                    proc.wait()
                raise GitCommandError(argv, f"failed to pipe {argv[0]} into {consumer[0]}: {exc}") from exc

            sink.wait()
            producer.wait()
            out = _decode(_read_back(sink_out))
            err = _decode(_read_back(producer_err)) + _decode(_read_back(sink_err))

        # a consumer that died first can take the producer down with SIGPIPE
        if sink.returncode != 0:
            logger.debug(f"GitRunner.pipe: consumer code={sink.returncode} stderr={err!r}")
            raise GitExitError(consumer, sink.returncode, out + err)
        if producer.returncode != 0:
            logger.debug(f"GitRunner.pipe: producer code={producer.returncode} stderr={err!r}")
            raise GitExitError(argv, producer.returncode, out + err)
        logger.debug(f"GitRunner.pipe: success out={out!r}")
        return out

    # Named git operations used by the history model.

    def rev_short_sha(self, cwd: str, rev: str) -> str:
        return self.run(cwd, ["rev-parse", "--short", rev]).strip()

    def stash_ref(self, cwd: str) -> Optional[str]:
        """Return the object id of the newest stash entry, or None if there is none."""
        try:
            return self.run(cwd, ["rev-parse", "-q", "--verify", "refs/stash"]).strip() or None
        except GitExitError:
            return None

    def stash(self, cwd: str) -> str:
        return self.run(cwd, ["stash", "push", "--include-untracked"])

    def unstash(self, cwd: str) -> str:
        return self.run(cwd, ["stash", "apply"])

    def reset_hard(self, cwd: str, commit: str) -> str:
        return self.run(cwd, ["reset", "--hard", commit])
