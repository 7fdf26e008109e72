"""
Build and deploy tooling for release branches.

Checkouts go through GitRepos; install, build and deploy steps run the shell
commands configured in maintenance.yaml (see lib.command_templates). Deploy
commands must print the deployed version on their last line of output.
"""

import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from patchrelease.errors import external_failure
from patchrelease.git.repos import GitRepos
from patchrelease.lib.command_templates import RenderedCommand, options_to_args, render_command
from patchrelease.manifest import ManifestFiles, dependency_sha
from patchrelease.models import Version

logger = logging.getLogger(__name__)

# Builds of large branches routinely take several minutes
BUILD_TIMEOUT = 1800


@dataclass
class CommandResult:
    """Result of a build or deploy command."""
    returncode: int
    stdout: str
    stderr: str


def run_command(command: RenderedCommand, cwd: Path, timeout: int = BUILD_TIMEOUT) -> CommandResult:
    """Run a rendered step and raise EXTERNAL_OPERATION_FAILED unless it exits 0."""
    logger.info(f"[{command.step}] {command} (in {cwd})")
    try:
        result = subprocess.run(
            command.cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise external_failure(f"{command.step} timed out after {timeout}s in {cwd}") from None
    except OSError as e:
        raise external_failure(f"{command.step} could not start in {cwd}: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout).strip()
        raise external_failure(f"{command.step} exited {result.returncode} in {cwd}: {detail}")
    return CommandResult(result.returncode, result.stdout, result.stderr)


def parse_deployed_version(output: str) -> Version:
    """Parse the version printed on the last non-empty line of deploy output."""
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise external_failure("Deploy printed no version")
    try:
        version = Version.parse(lines[-1])
    except ValueError as e:
        raise external_failure(f"Deploy printed no version: {e}") from e
    version.build_timestamp = datetime.now().isoformat()
    return version


class BuildTools:
    """Checkout, build and deploy operations on the shared working copies."""

    def __init__(
        self,
        git: GitRepos,
        manifests: ManifestFiles,
        commands: dict[str, str],
        main_branch: str = "main",
    ):
        self.git = git
        self.manifests = manifests
        self.commands = commands
        self.main_branch = main_branch

    def _dependency_repos(self, manifest: dict, repo: str) -> list[str]:
        return [
            name for name, entry in manifest.items()
            if name != repo and isinstance(entry, dict) and "sha" in entry
        ]

    def install(self, repo: str) -> None:
        run_command(render_command(self.commands, "install", {"repo": repo}), self.git.path(repo))

    def checkout_dependencies(self, repo: str, manifest: dict, overrides: dict[str, str] | None = None) -> list[str]:
        """Check out every dependency of repo at its manifest commit.

        Entries in overrides (repo -> SHA) win over the manifest.
        Returns the dependency repos that were checked out.
        """
        overrides = overrides or {}
        checked_out = []
        for dependency in self._dependency_repos(manifest, repo):
            self.git.checkout(dependency, overrides.get(dependency) or dependency_sha(manifest, dependency))
            checked_out.append(dependency)
        for dependency, sha in overrides.items():
            if dependency not in checked_out and dependency != repo:
                self.git.checkout(dependency, sha)
                checked_out.append(dependency)
        return checked_out

    def checkout_target(
        self,
        repo: str,
        branch: str,
        install: bool = True,
        overrides: dict[str, str] | None = None,
    ) -> list[str]:
        """Check out a release branch and its dependencies as recorded in its manifest."""
        self.git.checkout(repo, branch)
        self.git.pull(repo)
        manifest = self.manifests.read(repo)
        checked_out = self.checkout_dependencies(repo, manifest, overrides)
        if install:
            self.install(repo)
        return checked_out

    def checkout_main(self, repo: str, install: bool = False) -> None:
        """Return repo and the dependencies of its mainline to mainline."""
        self.git.checkout(repo, self.main_branch)
        manifest = self.manifests.read(repo)
        for dependency in self._dependency_repos(manifest, repo):
            self.git.checkout(dependency, self.main_branch)
        if install:
            self.install(repo)

    def transpile(self, repo: str) -> None:
        run_command(render_command(self.commands, "transpile", {"repo": repo}), self.git.path(repo))

    def build(self, repo: str, brands: list[str], options: dict | None = None) -> None:
        command = render_command(
            self.commands, "build", {"repo": repo, "brands": ",".join(brands)}, options_to_args(options)
        )
        run_command(command, self.git.path(repo))

    def _deploy(self, step: str, repo: str, branch: str, brands: list[str], message: str, flags: dict) -> Version:
        context = {
            "repo": repo,
            "branch": branch,
            "brands": ",".join(brands),
            "message": message,
            **{key: "true" if value else "false" for key, value in flags.items()},
        }
        result = run_command(render_command(self.commands, step, context), self.git.path(repo))
        version = parse_deployed_version(result.stdout)
        logger.info(f"Deployed {repo} {branch} as {version}")
        return version

    def deploy_staged(
        self,
        repo: str,
        branch: str,
        brands: list[str],
        include_unpublished: bool,
        message: str,
    ) -> Version:
        return self._deploy(
            "deploy_staged", repo, branch, brands, message,
            {"include_unpublished": include_unpublished},
        )

    def deploy_production(
        self,
        repo: str,
        branch: str,
        brands: list[str],
        include_unpublished: bool,
        is_rerelease: bool,
        message: str,
    ) -> Version:
        return self._deploy(
            "deploy_production", repo, branch, brands, message,
            {"include_unpublished": include_unpublished, "rerelease": is_rerelease},
        )
