"""Git branch and ref operations."""

from pathlib import Path

from patchrelease.git.runner import DEFAULT_TIMEOUT, run_git, GitResult


def list_branches(repo: Path, remote: str = "origin", timeout: int = DEFAULT_TIMEOUT) -> list[str]:
    """
    List branch names known locally or on the remote.

    Remote-tracking names are reported without the remote prefix, so
    "origin/1.2" and a local "1.2" collapse into one entry.
    """
    result = run_git(
        ["for-each-ref", "--format=%(refname)", "refs/heads", f"refs/remotes/{remote}"],
        repo,
        timeout=timeout,
    )
    if not result.success:
        return []

    names = []
    remote_prefix = f"refs/remotes/{remote}/"
    for line in result.stdout.splitlines():
        ref = line.strip()
        if ref.startswith("refs/heads/"):
            name = ref[len("refs/heads/"):]
        elif ref.startswith(remote_prefix):
            name = ref[len(remote_prefix):]
        else:
            continue
        if name != "HEAD" and name not in names:
            names.append(name)
    return names


def commit_exists(worktree: Path, sha: str, timeout: int = DEFAULT_TIMEOUT) -> bool:
    """Check if a commit SHA exists."""
    result = run_git(["cat-file", "-t", sha], worktree, timeout=timeout)
    return result.success and result.stdout.strip() == "commit"


def is_ancestor(worktree: Path, ancestor: str, descendant: str, timeout: int = DEFAULT_TIMEOUT) -> bool:
    """Check if ancestor is an ancestor of descendant."""
    result = run_git(["merge-base", "--is-ancestor", ancestor, descendant], worktree, timeout=timeout)
    return result.success


def checkout(repo: Path, ref: str, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Checkout a branch or commit."""
    return run_git(["checkout", ref], repo, timeout=timeout)


def create_branch(repo: Path, branch: str, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Create a branch at HEAD and switch to it."""
    return run_git(["checkout", "-b", branch], repo, timeout=timeout)


def show_file(repo: Path, ref: str, path: str, timeout: int = DEFAULT_TIMEOUT) -> str | None:
    """Return the contents of a file at a ref, or None if it isn't there."""
    result = run_git(["show", f"{ref}:{path}"], repo, timeout=timeout)
    if result.success:
        return result.stdout
    return None
