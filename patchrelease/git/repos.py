"""Named-repository facade over the git helpers.

Maintenance code refers to repositories by name ("sim-a", "chipper"); every
repository is a sibling working copy under one root directory. GitRepos maps
names to paths and turns failed commands into GitError, so the workflow layer
can treat any git failure as an external operation failure.

`timeout` bounds every local command. Network commands (pull, push) get at
least NETWORK_TIMEOUT.
"""

import logging
from pathlib import Path

from patchrelease.git.branch import (
    checkout,
    commit_exists,
    create_branch,
    is_ancestor,
    list_branches,
    show_file,
)
from patchrelease.git.commit import (
    abort_cherry_pick,
    cherry_pick,
    commit,
    merge_ff_only,
    stage_files,
)
from patchrelease.git.remote import NETWORK_TIMEOUT, pull, push
from patchrelease.git.runner import DEFAULT_TIMEOUT, GitError, GitResult, run_git, run_git_checked
from patchrelease.git.status import get_changed_files, has_uncommitted_changes

logger = logging.getLogger(__name__)


class GitRepos:
    """Version-control operations on the working copies under one root."""

    def __init__(self, root: Path, remote: str = "origin", timeout: int = DEFAULT_TIMEOUT):
        self.root = Path(root)
        self.remote = remote
        self.timeout = timeout

    @property
    def network_timeout(self) -> int:
        return max(self.timeout, NETWORK_TIMEOUT)

    def path(self, repo: str) -> Path:
        return self.root / repo

    def _check(self, repo: str, args: list[str], result: GitResult) -> GitResult:
        if not result.success:
            raise GitError(args, self.path(repo), result)
        return result

    def checkout(self, repo: str, ref: str) -> None:
        logger.info(f"git checkout {ref} on {repo}")
        self._check(repo, ["checkout", ref], checkout(self.path(repo), ref, timeout=self.timeout))

    def pull(self, repo: str) -> None:
        logger.info(f"git pull on {repo}")
        self._check(repo, ["pull"], pull(self.path(repo), timeout=self.network_timeout))

    def create_branch(self, repo: str, name: str) -> None:
        logger.info(f"git checkout -b {name} on {repo}")
        self._check(repo, ["checkout", "-b", name], create_branch(self.path(repo), name, timeout=self.timeout))

    def push(self, repo: str, branch: str) -> None:
        logger.info(f"git push {self.remote} {branch} on {repo}")
        self._check(
            repo,
            ["push", self.remote, branch],
            push(self.path(repo), self.remote, branch, timeout=self.network_timeout),
        )

    def cherry_pick(self, repo: str, sha: str) -> bool:
        """
        Cherry-pick a commit onto HEAD.

        Returns False (after aborting) when the pick does not apply cleanly.
        Raises GitError if the abort itself fails, since the working copy is
        then left mid-pick.
        """
        logger.info(f"git cherry-pick {sha} on {repo}")
        if cherry_pick(self.path(repo), sha, timeout=self.timeout).success:
            return True
        logger.info(f"git cherry-pick failed (aborting): {sha} on {repo}")
        self._check(repo, ["cherry-pick", "--abort"], abort_cherry_pick(self.path(repo), timeout=self.timeout))
        return False

    def rev_parse(self, repo: str, ref: str) -> str:
        return run_git_checked(["rev-parse", ref], self.path(repo), self.timeout).stdout.strip()

    def list_branches(self, repo: str) -> list[str]:
        return list_branches(self.path(repo), remote=self.remote, timeout=self.timeout)

    def run_raw(self, repo: str, args: list[str]) -> GitResult:
        """Run an arbitrary git command without raising on failure."""
        return run_git(args, self.path(repo), self.timeout)

    def commit(self, repo: str, message: str) -> None:
        logger.info(f"git commit on {repo}: {message}")
        self._check(repo, ["commit"], commit(self.path(repo), message, timeout=self.timeout))

    def add(self, repo: str, path: str) -> None:
        self._check(repo, ["add", path], stage_files(self.path(repo), [path], timeout=self.timeout))

    def is_clean(self, repo: str) -> bool:
        return not has_uncommitted_changes(self.path(repo), timeout=self.timeout)

    def dirty_files(self, repo: str) -> list[str]:
        return get_changed_files(self.path(repo), timeout=self.timeout)

    def commit_exists(self, repo: str, sha: str) -> bool:
        return commit_exists(self.path(repo), sha, timeout=self.timeout)

    def is_ancestor(self, repo: str, ancestor: str, descendant: str) -> bool:
        return is_ancestor(self.path(repo), ancestor, descendant, timeout=self.timeout)

    def merge_ff(self, repo: str, ref: str) -> None:
        logger.info(f"git merge --ff-only {ref} on {repo}")
        self._check(repo, ["merge", "--ff-only", ref], merge_ff_only(self.path(repo), ref, timeout=self.timeout))

    def show_file(self, repo: str, ref: str, path: str) -> str | None:
        return show_file(self.path(repo), ref, path, timeout=self.timeout)
