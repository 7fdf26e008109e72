"""
Release branch discovery and per-branch operations.

Every release branch gets its own checkout directory under checkouts_dir,
holding fresh clones of the branch repo and each of its dependencies at the
commits its manifest records. Builds and page-load checks run there, so they
never touch the shared working copies under repos_root and can run in
parallel for different branches.
"""

import json
import logging
import re
from pathlib import Path

from patchrelease.build import run_command
from patchrelease.errors import ErrorKind, MaintenanceError, external_failure
from patchrelease.git import remote as git_remote
from patchrelease.git.branch import checkout as git_checkout
from patchrelease.git.repos import GitRepos
from patchrelease.git.runner import GitError
from patchrelease.lib import validate
from patchrelease.lib.command_templates import is_configured, options_to_args, render_command
from patchrelease.manifest import ManifestFiles, dependency_sha
from patchrelease.models import ReleaseBranch

logger = logging.getLogger(__name__)

RELEASE_BRANCH_PATTERN = re.compile(r'^(\d+)\.(\d+)$')

DEFAULT_BUILD_OPTIONS = {
    "allHTML": True,
    "debugHTML": True,
    "lint": False,
    "locales": "*",
}


def branch_version(branch: str) -> tuple[int, int] | None:
    match = RELEASE_BRANCH_PATTERN.match(branch)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def combine_branches(branches: list[ReleaseBranch]) -> list[ReleaseBranch]:
    """Merge entries for the same (repo, branch) by concatenating brands.

    Returns a new list sorted by (repo, branch).
    """
    combined: dict[tuple[str, str], ReleaseBranch] = {}
    for release_branch in branches:
        existing = combined.get(release_branch.key)
        if existing is None:
            combined[release_branch.key] = ReleaseBranch(
                repo=release_branch.repo,
                branch=release_branch.branch,
                brands=list(release_branch.brands),
                is_released=release_branch.is_released,
            )
        else:
            existing.brands.extend(b for b in release_branch.brands if b not in existing.brands)
    return sorted(combined.values(), key=lambda rb: rb.key)


class ReleaseBranches:
    """Queries and operations on release branches."""

    def __init__(
        self,
        git: GitRepos,
        manifests: ManifestFiles,
        commands: dict[str, str],
        checkouts_dir: Path,
        main_branch: str = "main",
        active_repos: list[str] | None = None,
        ignored_repos: list[str] | None = None,
        default_brands: list[str] | None = None,
        released_branches_file: Path | None = None,
    ):
        self.git = git
        self.manifests = manifests
        self.commands = commands
        self.checkouts_dir = Path(checkouts_dir)
        self.main_branch = main_branch
        self.active_repos = active_repos or []
        self.ignored_repos = set(ignored_repos or [])
        self.default_brands = default_brands or ["phet"]
        self.released_branches_file = released_branches_file

    # Discovery

    def released_branches(self) -> list[ReleaseBranch]:
        """Published branches from the released-branches metadata file."""
        if self.released_branches_file is None:
            return []
        try:
            entries = validate.validate_file(self.released_branches_file, "released-branches")
        except validate.ValidationError as e:
            raise MaintenanceError(ErrorKind.INVALID_STATE, str(e)) from e

        branches = []
        for entry in entries:
            if entry["repo"] in self.ignored_repos:
                continue
            branches.append(ReleaseBranch(
                repo=entry["repo"],
                branch=entry["branch"],
                brands=list(entry.get("brands") or self.default_brands),
                is_released=True,
            ))
        return branches

    def unreleased_branches(self, released: list[ReleaseBranch]) -> list[ReleaseBranch]:
        """Release-shaped branches newer than anything published for their repo."""
        branches = []
        for repo in self.active_repos:
            if repo in self.ignored_repos:
                continue
            published = {rb.branch for rb in released if rb.repo == repo}
            newest = max(
                (branch_version(b) for b in published if branch_version(b)),
                default=None,
            )
            for branch in self.git.list_branches(repo):
                version = branch_version(branch)
                if version is None or branch in published:
                    continue
                if newest is not None and version <= newest:
                    continue
                branches.append(ReleaseBranch(repo, branch, list(self.default_brands), is_released=False))
        return branches

    def discover_all(self) -> list[ReleaseBranch]:
        """Every maintained release branch, released or not."""
        released = self.released_branches()
        branches = combine_branches(released + self.unreleased_branches(released))
        logger.info(f"Discovered {len(branches)} release branches")
        return branches

    # Per-branch checkout directories

    def checkout_dir(self, release_branch: ReleaseBranch) -> Path:
        return self.checkouts_dir / f"{release_branch.repo}-{release_branch.branch}"

    def _clone_or_fetch(self, repo: str, checkout_dir: Path) -> Path:
        dest = checkout_dir / repo
        if dest.exists():
            result = git_remote.fetch(dest)
            if not result.success:
                raise GitError(["fetch"], dest, result)
            return dest
        url = git_remote.get_remote_url(self.git.path(repo), self.git.remote)
        if url is None:
            raise external_failure(f"No {self.git.remote} remote configured for {repo}", repo=repo)
        result = git_remote.clone(url, dest)
        if not result.success:
            raise GitError(["clone", url], dest, result)
        return dest

    def _checkout_in(self, path: Path, ref: str) -> None:
        result = git_checkout(path, ref)
        if not result.success:
            raise GitError(["checkout", ref], path, result)

    def update_checkout(self, release_branch: ReleaseBranch, overrides: dict[str, str] | None = None) -> Path:
        """Bring the branch's checkout directory to the branch tip and its dependencies."""
        logger.info(f"Updating checkout for {release_branch}")
        overrides = overrides or {}
        checkout_dir = self.checkout_dir(release_branch)
        checkout_dir.mkdir(parents=True, exist_ok=True)

        repo_dir = self._clone_or_fetch(release_branch.repo, checkout_dir)
        self._checkout_in(repo_dir, release_branch.branch)
        result = git_remote.pull(repo_dir)
        if not result.success:
            raise GitError(["pull"], repo_dir, result)

        manifest = json.loads((repo_dir / self.manifests.filename).read_text())
        dependencies = [
            name for name, entry in manifest.items()
            if name != release_branch.repo and isinstance(entry, dict)
        ]
        dependencies += [name for name in overrides if name not in dependencies and name != release_branch.repo]
        for dependency in dependencies:
            dependency_dir = self._clone_or_fetch(dependency, checkout_dir)
            self._checkout_in(dependency_dir, overrides.get(dependency) or dependency_sha(manifest, dependency))

        if is_configured(self.commands, "install"):
            run_command(render_command(self.commands, "install", {"repo": release_branch.repo}), repo_dir)
        return checkout_dir

    def transpile(self, release_branch: ReleaseBranch) -> None:
        logger.info(f"Transpiling {release_branch}")
        command = render_command(self.commands, "transpile", {"repo": release_branch.repo})
        run_command(command, self.checkout_dir(release_branch) / release_branch.repo)

    def build(self, release_branch: ReleaseBranch, options: dict | None = None) -> None:
        logger.info(f"Building {release_branch}")
        command = render_command(
            self.commands,
            "build",
            {"repo": release_branch.repo, "brands": ",".join(release_branch.brands)},
            options_to_args({**DEFAULT_BUILD_OPTIONS, **(options or {})}),
        )
        run_command(command, self.checkout_dir(release_branch) / release_branch.repo)

    def _check(self, step: str, release_branch: ReleaseBranch) -> str | None:
        if not is_configured(self.commands, step):
            raise MaintenanceError(ErrorKind.NOT_FOUND, f"No {step} command configured in maintenance.yaml")
        checkout_dir = self.checkout_dir(release_branch)
        command = render_command(self.commands, step, {
            "repo": release_branch.repo,
            "branch": release_branch.branch,
            "brands": ",".join(release_branch.brands),
            "path": str(checkout_dir),
        })
        try:
            run_command(command, checkout_dir)
        except MaintenanceError as e:
            return f"[ERROR] Failure to check {release_branch}: {e}"
        return None

    def check_unbuilt(self, release_branch: ReleaseBranch) -> str | None:
        """Load the unbuilt branch; returns an error string, or None if it loads."""
        return self._check("check_unbuilt", release_branch)

    def check_built(self, release_branch: ReleaseBranch) -> str | None:
        """Load the built branch; returns an error string, or None if it loads."""
        return self._check("check_built", release_branch)

    # Queries against the shared working copies

    def _recorded_sha(self, release_branch: ReleaseBranch, repo: str) -> str | None:
        self.git.checkout(release_branch.repo, release_branch.branch)
        try:
            entry = self.manifests.read(release_branch.repo).get(repo)
        finally:
            self.git.checkout(release_branch.repo, self.main_branch)
        if isinstance(entry, dict):
            return entry.get("sha")
        return None

    def includes_sha(self, release_branch: ReleaseBranch, repo: str, sha: str) -> bool:
        """Whether the branch already builds against a commit containing sha."""
        current = self._recorded_sha(release_branch, repo)
        if current is None:
            return False
        return sha == current or self.git.is_ancestor(repo, sha, current)

    def is_missing_sha(self, release_branch: ReleaseBranch, repo: str, sha: str) -> bool:
        """Whether the branch depends on repo but not on a commit containing sha."""
        current = self._recorded_sha(release_branch, repo)
        if current is None:
            return False
        return sha != current and not self.git.is_ancestor(repo, sha, current)

    def status_lines(self, release_branch: ReleaseBranch) -> list[str]:
        """Consistency report for one branch: own manifest entry and dependency branches."""
        lines = []
        repo = release_branch.repo
        manifest = self.manifests.read_at(repo, release_branch.branch)

        if isinstance(manifest.get(repo), dict):
            try:
                current = self.git.rev_parse(repo, release_branch.branch)
                previous = self.git.rev_parse(repo, f"{current}^")
                if manifest[repo].get("sha") != previous:
                    lines.append("[INFO] Potential changes (dependency is not previous commit)")
                    lines.append(f"[INFO] {current} {previous} {manifest[repo].get('sha')}")
            except GitError as e:
                lines.append(f"[ERROR] Failure to check current/previous commit: {e}")
        else:
            lines.append("[WARNING] Own repository not included in dependencies")

        for dependency, entry in manifest.items():
            if dependency == repo or not isinstance(entry, dict):
                continue
            ref = f"{self.git.remote}/{release_branch.dependency_branch}"
            result = self.git.run_raw(dependency, ["rev-parse", "--verify", "--quiet", ref])
            if result.success and result.stdout.strip() != entry.get("sha"):
                lines.append(
                    f"[WARNING] Dependency mismatch for {dependency} on branch {release_branch.dependency_branch}"
                )
        return lines
