"""
Operation context: the store plus every external collaborator.

Workflow functions take a Context instead of reaching for globals, so tests
can hand in a MemoryStore and fakes.
"""

from dataclasses import dataclass, field

from patchrelease.build import BuildTools
from patchrelease.git.repos import GitRepos
from patchrelease.lib.config import MaintenanceConfig
from patchrelease.lib.constants import DEFAULT_CONCURRENCY
from patchrelease.manifest import ManifestFiles
from patchrelease.releases import ReleaseBranches
from patchrelease.store import JsonFileStore, Store


@dataclass
class Context:
    store: Store
    git: GitRepos
    manifests: ManifestFiles
    tools: BuildTools
    releases: ReleaseBranches
    main_branch: str = "main"
    manifest_file: str = "dependencies.json"
    github_org: str | None = None
    links: dict[str, str] = field(default_factory=dict)
    concurrency: int = DEFAULT_CONCURRENCY


def build_context(config: MaintenanceConfig) -> Context:
    git = GitRepos(config.repos_root, remote=config.remote, timeout=config.git_timeout)
    manifests = ManifestFiles(git, config.manifest_file)
    return Context(
        store=JsonFileStore(config.state_file),
        git=git,
        manifests=manifests,
        tools=BuildTools(git, manifests, config.commands, main_branch=config.main_branch),
        releases=ReleaseBranches(
            git,
            manifests,
            config.commands,
            config.checkouts_dir,
            main_branch=config.main_branch,
            active_repos=config.active_repos,
            ignored_repos=config.ignored_repos,
            default_brands=config.default_brands,
            released_branches_file=config.released_branches_file,
        ),
        main_branch=config.main_branch,
        manifest_file=config.manifest_file,
        github_org=config.github_org,
        links=config.links,
        concurrency=config.concurrency,
    )
