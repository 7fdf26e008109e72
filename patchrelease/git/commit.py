"""Git commit operations."""

from pathlib import Path

from patchrelease.git.runner import DEFAULT_TIMEOUT, run_git, GitResult


def stage_files(worktree: Path, files: list[str], timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Stage specific files."""
    return run_git(["add", "--"] + files, worktree, timeout=timeout)


def commit(worktree: Path, message: str, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Create a commit with the given message."""
    return run_git(["commit", "-m", message], worktree, timeout=timeout)


def cherry_pick(worktree: Path, sha: str, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Apply the changes of a single commit onto HEAD."""
    return run_git(["cherry-pick", sha], worktree, timeout=timeout)


def abort_cherry_pick(worktree: Path, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Back out of a cherry-pick that stopped on a conflict."""
    return run_git(["cherry-pick", "--abort"], worktree, timeout=timeout)


def merge_ff_only(worktree: Path, ref: str, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Advance the current branch to ref, failing if that is not a fast-forward."""
    return run_git(["merge", "--ff-only", ref], worktree, timeout=timeout)
