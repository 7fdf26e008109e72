"""
Dependency propagation: publish changed dependencies and point manifests at them.

Every commit produced by apply_patches lives detached in its dependency repo.
Propagation puts it on the release's dependency branch ("{repo}-{branch}"),
pushes that branch, then commits the branch's manifest pointing at it.
State is saved after each dependency so an interrupted run resumes where it
stopped.
"""

import logging
from typing import Callable

from patchrelease.context import Context
from patchrelease.errors import ErrorKind, MaintenanceError
from patchrelease.manifest import set_dependency_sha
from patchrelease.models import MaintenanceState, ModifiedBranch

logger = logging.getLogger(__name__)

ModifiedBranchPredicate = Callable[[ModifiedBranch], bool]


def publish_dependency(ctx: Context, modified_branch: ModifiedBranch, dependency: str, sha: str) -> None:
    """Make the release's dependency branch in dependency point at sha, and push it."""
    dependency_branch = modified_branch.dependency_branch
    if dependency_branch in ctx.git.list_branches(dependency):
        ctx.git.checkout(dependency, dependency_branch)
        ctx.git.pull(dependency)
        if ctx.git.rev_parse(dependency, "HEAD") != sha:
            ctx.git.merge_ff(dependency, sha)
            ctx.git.push(dependency, dependency_branch)
    else:
        ctx.git.checkout(dependency, sha)
        ctx.git.create_branch(dependency, dependency_branch)
        ctx.git.push(dependency, dependency_branch)


def _update_branch(ctx: Context, state: MaintenanceState, modified_branch: ModifiedBranch) -> None:
    repo, branch = modified_branch.repo, modified_branch.branch

    ctx.tools.checkout_target(repo, branch, install=False)
    manifest = ctx.manifests.read(repo)
    set_dependency_sha(manifest, repo, ctx.git.rev_parse(repo, branch))

    for dependency, sha in list(modified_branch.changed_dependencies.items()):
        logger.info(f"Updating {dependency} on {modified_branch.dependency_branch} to {sha}")
        publish_dependency(ctx, modified_branch, dependency, sha)
        set_dependency_sha(manifest, dependency, sha)
        del modified_branch.changed_dependencies[dependency]
        modified_branch.deployed_version = None
        ctx.store.save(state)

    # The branch repo may itself have been a changed dependency
    ctx.git.checkout(repo, branch)
    ctx.manifests.write(repo, manifest)
    ctx.git.add(repo, ctx.manifest_file)
    ctx.git.commit(repo, f"updated {ctx.manifest_file} for {' and '.join(modified_branch.pending_messages)}")
    ctx.git.push(repo, branch)

    modified_branch.push_pending_messages()
    ctx.store.save(state)

    ctx.tools.checkout_main(repo)


def update_dependencies(ctx: Context, predicate: ModifiedBranchPredicate | None = None) -> int:
    """Propagate changed dependencies of every tracked branch the predicate accepts.

    Returns the number of branches updated.
    """
    logger.info("Updating dependencies")
    state = ctx.store.load()
    count = 0

    for modified_branch in state.modified_branches:
        if not modified_branch.changed_dependencies:
            continue
        if predicate is not None and not predicate(modified_branch):
            continue

        try:
            _update_branch(ctx, state, modified_branch)
        except Exception as e:
            ctx.store.save(state)
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED,
                f"Failure with dependencies update {modified_branch.repo} {modified_branch.branch}: {e}",
                repo=modified_branch.repo,
                branch=modified_branch.branch,
            ) from e
        count += 1
        logger.info(f"Updated dependencies for {modified_branch.repo} {modified_branch.branch}")

    ctx.store.save(state)
    return count
