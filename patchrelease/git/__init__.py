"""Git operations for patchrelease.

Return type conventions:
- Functions returning GitResult: Caller must check .success before using output.
  Examples: checkout(), pull(), push(), cherry_pick()
- Functions returning bool: True on success/condition met, False otherwise.
  Examples: has_uncommitted_changes(), commit_exists(), is_ancestor()
- Functions returning parsed values (str, list): Return None/empty on failure.
  Examples: show_file() -> None, list_branches() -> []

GitRepos wraps these for named repositories and raises GitError instead.
"""

from patchrelease.git.status import (
    has_uncommitted_changes,
    get_changed_files,
)
from patchrelease.git.branch import (
    list_branches,
    commit_exists,
    is_ancestor,
    checkout,
    create_branch,
    show_file,
)
from patchrelease.git.commit import (
    stage_files,
    commit,
    cherry_pick,
    abort_cherry_pick,
    merge_ff_only,
)
from patchrelease.git.remote import (
    fetch,
    pull,
    push,
    get_remote_url,
    clone,
)
from patchrelease.git.runner import GitError, GitResult, run_git
from patchrelease.git.repos import GitRepos

__all__ = [
    # status
    "has_uncommitted_changes",
    "get_changed_files",
    # branch
    "list_branches",
    "commit_exists",
    "is_ancestor",
    "checkout",
    "create_branch",
    "show_file",
    # commit
    "stage_files",
    "commit",
    "cherry_pick",
    "abort_cherry_pick",
    "merge_ff_only",
    # remote
    "fetch",
    "pull",
    "push",
    "get_remote_url",
    "clone",
    # runner
    "GitError",
    "GitResult",
    "run_git",
    "GitRepos",
]
