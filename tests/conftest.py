"""Shared fixtures: in-memory stand-ins for git, manifests, build tools and release queries, and real git repositories."""

import copy
import shutil
import subprocess
import threading
import time
from pathlib import Path

import pytest

from patchrelease.context import Context
from patchrelease.errors import external_failure
from patchrelease.git.runner import GitError, GitResult
from patchrelease.models import ReleaseBranch, Version
from patchrelease.store import MemoryStore


class FakeGit:
    """Tracks checkouts, branches and commits per repo without running git."""

    remote = "origin"

    def __init__(self, root: Path):
        self.root = root
        self.heads: dict[str, str] = {}                  # repo -> checked out ref
        self.branches: dict[str, dict[str, str]] = {}    # repo -> branch -> tip SHA
        self.commits: dict[str, set[str]] = {}           # repo -> known SHAs
        self.failing_picks: set[tuple[str, str]] = set()  # (repo, sha) that conflict
        self.failing: set[tuple[str, str]] = set()       # (operation, repo) that raise
        self.ancestors: set[tuple[str, str, str]] = set()  # (repo, ancestor, descendant)
        self.dirty: set[str] = set()
        self.files: dict[tuple[str, str, str], str] = {}  # (repo, ref, path) -> content
        self.calls: list[tuple] = []
        self._counter = 0

    def _maybe_fail(self, operation: str, repo: str) -> None:
        if (operation, repo) in self.failing:
            raise GitError([operation], self.path(repo), GitResult(1, "", f"{operation} failed"))

    def _new_sha(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter:04d}"

    def resolve(self, repo: str, ref: str) -> str:
        """SHA a ref points at (branch tip, or the ref itself)."""
        return self.branches.get(repo, {}).get(ref, ref)

    def add_branch(self, repo: str, branch: str, sha: str) -> None:
        self.branches.setdefault(repo, {})[branch] = sha
        self.commits.setdefault(repo, set()).add(sha)

    def path(self, repo: str) -> Path:
        return self.root / repo

    def checkout(self, repo: str, ref: str) -> None:
        self.calls.append(("checkout", repo, ref))
        self._maybe_fail("checkout", repo)
        self.heads[repo] = ref

    def pull(self, repo: str) -> None:
        self.calls.append(("pull", repo))
        self._maybe_fail("pull", repo)

    def create_branch(self, repo: str, name: str) -> None:
        self.calls.append(("create_branch", repo, name))
        self.add_branch(repo, name, self.resolve(repo, self.heads[repo]))
        self.heads[repo] = name

    def push(self, repo: str, branch: str) -> None:
        self.calls.append(("push", repo, branch))
        self._maybe_fail("push", repo)

    def cherry_pick(self, repo: str, sha: str) -> bool:
        self.calls.append(("cherry_pick", repo, sha))
        self._maybe_fail("cherry_pick", repo)
        if (repo, sha) in self.failing_picks:
            return False
        new_sha = self._new_sha(f"{sha}-picked-")
        self.commits.setdefault(repo, set()).add(new_sha)
        head = self.heads.get(repo)
        if head in self.branches.get(repo, {}):
            self.branches[repo][head] = new_sha
        else:
            self.heads[repo] = new_sha
        return True

    def rev_parse(self, repo: str, ref: str) -> str:
        self._maybe_fail("rev_parse", repo)
        if ref == "HEAD":
            return self.resolve(repo, self.heads[repo])
        return self.resolve(repo, ref)

    def list_branches(self, repo: str) -> list[str]:
        return sorted(self.branches.get(repo, {}))

    def run_raw(self, repo: str, args: list[str]) -> GitResult:
        self.calls.append(("run_raw", repo, tuple(args)))
        ref = args[-1]
        branch = ref.split("/", 1)[1] if ref.startswith(f"{self.remote}/") else ref
        if branch in self.branches.get(repo, {}):
            return GitResult(0, self.branches[repo][branch] + "\n", "")
        return GitResult(1, "", "")

    def commit(self, repo: str, message: str) -> None:
        self.calls.append(("commit", repo, message))
        self._maybe_fail("commit", repo)
        head = self.heads[repo]
        new_sha = self._new_sha("commit-")
        if head in self.branches.get(repo, {}):
            self.branches[repo][head] = new_sha

    def add(self, repo: str, path: str) -> None:
        self.calls.append(("add", repo, path))

    def is_clean(self, repo: str) -> bool:
        return repo not in self.dirty

    def dirty_files(self, repo: str) -> list[str]:
        return ["dirty.txt"] if repo in self.dirty else []

    def commit_exists(self, repo: str, sha: str) -> bool:
        return sha in self.commits.get(repo, set())

    def is_ancestor(self, repo: str, ancestor: str, descendant: str) -> bool:
        return (repo, ancestor, descendant) in self.ancestors

    def merge_ff(self, repo: str, ref: str) -> None:
        self.calls.append(("merge_ff", repo, ref))
        self._maybe_fail("merge_ff", repo)
        self.branches[repo][self.heads[repo]] = ref

    def show_file(self, repo: str, ref: str, path: str) -> str | None:
        return self.files.get((repo, ref, path))


class FakeManifests:
    """Manifests keyed by (repo, branch); read() follows the fake checkout."""

    filename = "dependencies.json"

    def __init__(self, git: FakeGit):
        self.git = git
        self.manifests: dict[tuple[str, str], dict] = {}
        self.written: list[tuple[str, str, dict]] = []

    def read(self, repo: str) -> dict:
        key = (repo, self.git.heads.get(repo, "main"))
        if key not in self.manifests:
            raise external_failure(f"No manifest for {key}", repo=repo)
        return copy.deepcopy(self.manifests[key])

    def write(self, repo: str, manifest: dict) -> None:
        branch = self.git.heads[repo]
        self.written.append((repo, branch, copy.deepcopy(manifest)))
        self.manifests[(repo, branch)] = copy.deepcopy(manifest)

    def read_at(self, repo: str, ref: str) -> dict:
        return copy.deepcopy(self.manifests[(repo, ref)])


class FakeTools:
    """Build/deploy tools that record calls and hand out versions."""

    def __init__(self, git: FakeGit):
        self.git = git
        self.calls: list[tuple] = []
        self.fail_deploys: set[str] = set()  # repos whose deploys fail
        self._rc_numbers: dict[str, int] = {}

    def checkout_target(self, repo, branch, install=True, overrides=None):
        self.calls.append(("checkout_target", repo, branch, install, dict(overrides or {})))
        self.git.checkout(repo, branch)
        for dependency, sha in (overrides or {}).items():
            self.git.checkout(dependency, sha)
        return list(overrides or {})

    def checkout_main(self, repo, install=False):
        self.calls.append(("checkout_main", repo))
        self.git.checkout(repo, "main")

    def transpile(self, repo):
        self.calls.append(("transpile", repo))

    def build(self, repo, brands, options=None):
        self.calls.append(("build", repo, tuple(brands)))

    def deploy_staged(self, repo, branch, brands, include_unpublished, message):
        self.calls.append(("deploy_staged", repo, branch, tuple(brands), message))
        if repo in self.fail_deploys:
            raise external_failure(f"rc deploy of {repo} failed", repo=repo)
        number = self._rc_numbers.get(repo, 0) + 1
        self._rc_numbers[repo] = number
        major, minor = branch.split(".")
        return Version(int(major), int(minor), 1, "rc", number)

    def deploy_production(self, repo, branch, brands, include_unpublished, is_rerelease, message):
        self.calls.append(("deploy_production", repo, branch, tuple(brands), message))
        if repo in self.fail_deploys:
            raise external_failure(f"production deploy of {repo} failed", repo=repo)
        major, minor = branch.split(".")
        return Version(int(major), int(minor), 1)


class FakeReleases:
    """Release queries backed by fixed data; tracks runner concurrency."""

    def __init__(self, branches: list[ReleaseBranch] | None = None):
        self.branches = branches or []
        self.active_repos: list[str] = []
        self.discover_calls = 0
        self.missing: set[tuple[str, str, str]] = set()   # (branch repo, branch, sha)
        self.including: set[tuple[str, str, str]] = set()
        self.fail_checkout: set[str] = set()             # "repo branch"
        self.fail_build: set[str] = set()
        self.check_errors: dict[str, str] = {}
        self.status: dict[str, list[str]] = {}
        self.steps: list[tuple[str, str]] = []
        self.step_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def discover_all(self) -> list[ReleaseBranch]:
        self.discover_calls += 1
        return [ReleaseBranch(rb.repo, rb.branch, list(rb.brands), rb.is_released) for rb in self.branches]

    def _step(self, name: str, release_branch: ReleaseBranch, failing: set[str]) -> None:
        label = f"{release_branch.repo} {release_branch.branch}"
        with self._lock:
            self.steps.append((name, label))
        time.sleep(self.step_delay)
        if label in failing:
            raise external_failure(f"{name} failed for {label}")

    def update_checkout(self, release_branch, overrides=None):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self._step("checkout", release_branch, self.fail_checkout)
        finally:
            with self._lock:
                self.in_flight -= 1

    def transpile(self, release_branch):
        self._step("transpile", release_branch, set())

    def build(self, release_branch, options=None):
        self._step("build", release_branch, self.fail_build)

    def check_unbuilt(self, release_branch):
        return self.check_errors.get(f"{release_branch.repo} {release_branch.branch}")

    def check_built(self, release_branch):
        return self.check_errors.get(f"{release_branch.repo} {release_branch.branch}")

    def includes_sha(self, release_branch, repo, sha):
        return (release_branch.repo, release_branch.branch, sha) in self.including

    def is_missing_sha(self, release_branch, repo, sha):
        return (release_branch.repo, release_branch.branch, sha) in self.missing

    def status_lines(self, release_branch):
        return self.status.get(f"{release_branch.repo} {release_branch.branch}", [])


@pytest.fixture
def release_branches():
    return [
        ReleaseBranch("sim-a", "1.1", ["phet"], True),
        ReleaseBranch("sim-a", "1.2", ["phet", "phet-io"], True),
        ReleaseBranch("sim-b", "2.0", ["phet"], True),
        ReleaseBranch("sim-b", "2.1", ["phet"], False),
    ]


@pytest.fixture
def make_ctx(tmp_path, release_branches):
    """Factory for independent contexts over the same release branches."""
    def make() -> Context:
        git = FakeGit(tmp_path)
        return Context(
            store=MemoryStore(),
            git=git,
            manifests=FakeManifests(git),
            tools=FakeTools(git),
            releases=FakeReleases(release_branches),
        )
    return make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


class RealRepos:
    """Working copies under root, each pushed to a bare origin under remotes."""

    def __init__(self, tmp_path: Path):
        self.root = tmp_path / "repos"
        self.remotes = tmp_path / "remotes"
        self.root.mkdir()
        self.remotes.mkdir()

    def git(self, cwd: Path, *args: str) -> str:
        result = subprocess.run(["git", "-C", str(cwd), *args], capture_output=True, text=True, check=True)
        return result.stdout.strip()

    def remote(self, name: str) -> Path:
        return self.remotes / f"{name}.git"

    def make(self, name: str, files: dict[str, str]) -> Path:
        work = self.root / name
        self.git(self.root, "init", "-b", "main", name)
        self.git(work, "config", "user.email", "dev@example.com")
        self.git(work, "config", "user.name", "Dev")
        self.git(work, "config", "commit.gpgsign", "false")
        for path, content in files.items():
            (work / path).write_text(content)
        self.git(work, "add", "--all")
        self.git(work, "commit", "-m", f"initial {name}")

        self.git(self.remotes, "init", "--bare", self.remote(name).name)
        self.git(work, "remote", "add", "origin", str(self.remote(name)))
        self.git(work, "push", "-u", "origin", "main")
        return work

    def commit_file(self, work: Path, path: str, content: str, message: str) -> str:
        """Commit one file on the current branch and return the new SHA."""
        (work / path).write_text(content)
        self.git(work, "add", path)
        self.git(work, "commit", "-m", message)
        return self.git(work, "rev-parse", "HEAD")

    def head(self, work: Path) -> str:
        """Checked out branch name, or "HEAD" when detached."""
        return self.git(work, "rev-parse", "--abbrev-ref", "HEAD")


@pytest.fixture
def real_repos(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    return RealRepos(tmp_path)
