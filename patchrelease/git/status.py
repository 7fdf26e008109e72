"""Git status operations."""

from pathlib import Path

from patchrelease.git.runner import DEFAULT_TIMEOUT, run_git


def has_uncommitted_changes(worktree: Path, timeout: int = DEFAULT_TIMEOUT) -> bool:
    """Check if worktree has any uncommitted changes (staged, unstaged, or untracked)."""
    result = run_git(["status", "--porcelain"], worktree, timeout=timeout)
    return bool(result.stdout.strip())


def get_changed_files(worktree: Path, timeout: int = DEFAULT_TIMEOUT) -> list[str]:
    """Get list of changed files (staged + unstaged + untracked).

    Uses -z for null-separated output to handle filenames with spaces/special chars.
    Returns empty list on git failure (e.g., not a repo).
    """
    result = run_git(["status", "--porcelain", "-z"], worktree, timeout=timeout)
    if not result.success or not result.stdout:
        return []

    files = []
    # -z format: "XY filename\0" or "XY old\0new\0" for renames
    entries = result.stdout.split('\0')
    i = 0
    while i < len(entries):
        entry = entries[i]
        if len(entry) < 3:
            i += 1
            continue

        status = entry[:2]
        if status[0] in ('R', 'C') and i + 1 < len(entries):
            files.append(entries[i + 1])
            i += 2
        else:
            files.append(entry[3:])
            i += 1

    return files
