"""Git remote operations."""

from pathlib import Path

from patchrelease.git.runner import run_git, GitResult

# Network commands get longer than local ones
NETWORK_TIMEOUT = 120
CLONE_TIMEOUT = 600


def fetch(repo: Path, remote: str = "origin", branch: str | None = None, timeout: int = NETWORK_TIMEOUT) -> GitResult:
    """Fetch from remote."""
    args = ["fetch", remote]
    if branch:
        args.append(branch)
    return run_git(args, repo, timeout=timeout)


def pull(repo: Path, timeout: int = NETWORK_TIMEOUT) -> GitResult:
    """Pull the current branch."""
    return run_git(["pull"], repo, timeout=timeout)


def push(repo: Path, remote: str, branch: str, timeout: int = NETWORK_TIMEOUT) -> GitResult:
    """Push a branch and set upstream tracking."""
    return run_git(["push", "-u", remote, branch], repo, timeout=timeout)


def get_remote_url(repo: Path, remote: str = "origin") -> str | None:
    """Get the URL a remote points at, or None if it is not configured."""
    result = run_git(["remote", "get-url", remote], repo)
    if result.success:
        return result.stdout.strip() or None
    return None


def clone(url: str, dest: Path, timeout: int = CLONE_TIMEOUT) -> GitResult:
    """Clone url into dest (dest's parent must exist)."""
    return run_git(["clone", url, dest.name], dest.parent, timeout=timeout)
