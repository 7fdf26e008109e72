"""Git command runner with timeout handling."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from patchrelease.errors import ErrorKind, MaintenanceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


@dataclass
class GitResult:
    """Result of a git command."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for error reporting."""
        return (self.stdout + self.stderr).strip()


class GitError(MaintenanceError):
    """A git command exited non-zero or timed out."""

    def __init__(self, args: list[str], cwd: Path, result: GitResult):
        self.args_list = args
        self.cwd = cwd
        self.result = result
        reason = "timed out" if result.timed_out else f"exited {result.returncode}"
        super().__init__(
            ErrorKind.EXTERNAL_OPERATION_FAILED,
            f"git {' '.join(args)} {reason} in {cwd}: {result.stderr.strip()}",
            repo=cwd.name,
        )


def run_git(
    args: list[str],
    cwd: Path,
    timeout: int = DEFAULT_TIMEOUT,
) -> GitResult:
    """
    Run a git command with timeout handling.

    Args:
        args: Git command arguments (e.g., ["status", "--porcelain"])
        cwd: Working copy for the command
        timeout: Timeout in seconds

    Returns:
        GitResult with returncode, stdout, stderr, and timed_out flag
    """
    cmd = ["git", "-C", str(cwd)] + args
    logger.debug("running %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return GitResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    except subprocess.TimeoutExpired:
        return GitResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            timed_out=True,
        )


def run_git_checked(args: list[str], cwd: Path, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Run a git command and raise GitError unless it succeeds."""
    result = run_git(args, cwd, timeout=timeout)
    if not result.success:
        raise GitError(args, cwd, result)
    return result
