"""
Patch assignment: which patches exist, and which release branches need them.

Integrity checks (duplicate names, unknown patches or branches, patches still
needed somewhere) all run before the state is touched, so a failed call never
saves anything. Sweeps save after every single assignment so an interrupted
sweep keeps what it already did.

Predicates may check out repositories. They are always evaluated one branch
at a time, never inside the concurrent checkout runner.
"""

import logging
from typing import Callable

from patchrelease.context import Context
from patchrelease.errors import ErrorKind, MaintenanceError, not_found
from patchrelease.models import MaintenanceState, Patch, ReleaseBranch
from patchrelease.store import Store
from patchrelease.workflow.inventory import BranchPredicate, find_release_branch, get_branches

logger = logging.getLogger(__name__)


# Patches

def create_patch(store: Store, repo: str, message: str, name: str | None = None) -> Patch:
    state = store.load()
    name = name or repo
    if any(patch.name == name for patch in state.patches):
        raise MaintenanceError(ErrorKind.ALREADY_EXISTS, f"Patch already exists: {name}", repo=repo)
    patch = Patch(repo=repo, name=name, message=message)
    state.patches.append(patch)
    store.save(state)
    logger.info(f"Created patch {name} for {repo} with message: {message}")
    return patch


def remove_patch(store: Store, name: str) -> None:
    state = store.load()
    patch = state.find_patch(name)
    needing = state.branches_needing(patch)
    if needing:
        names = ", ".join(f"{mb.repo} {mb.branch}" for mb in needing)
        raise MaintenanceError(
            ErrorKind.STILL_REFERENCED, f"Patch {name} is still needed by {names}", repo=patch.repo
        )
    state.patches.remove(patch)
    store.save(state)
    logger.info(f"Removed patch {name}")


def add_patch_sha(ctx: Context, name: str, sha: str | None = None) -> str:
    """Append a candidate commit to a patch (the patch repo's HEAD if sha is omitted)."""
    state = ctx.store.load()
    patch = state.find_patch(name)
    if sha is None:
        sha = ctx.git.rev_parse(patch.repo, "HEAD")
    patch.shas.append(sha)
    ctx.store.save(state)
    logger.info(f"Added SHA {sha} to patch {name}")
    return sha


def remove_patch_sha(store: Store, name: str, sha: str) -> None:
    state = store.load()
    patch = state.find_patch(name)
    if sha not in patch.shas:
        raise not_found(f"SHA {sha} not found in patch {name}", repo=patch.repo)
    patch.shas.remove(sha)
    store.save(state)
    logger.info(f"Removed SHA {sha} from patch {name}")


def clear_patch_shas(store: Store, name: str) -> None:
    state = store.load()
    patch = state.find_patch(name)
    patch.shas = []
    store.save(state)
    logger.info(f"Cleared SHAs from patch {name}")


# Needed patches

def _assign(state: MaintenanceState, release_branch: ReleaseBranch, patch: Patch) -> bool:
    modified_branch = state.ensure_modified_branch(release_branch)
    if modified_branch.needs(patch):
        logger.info(f"Patch {patch.name} already included in {release_branch.repo} {release_branch.branch}")
        return False
    modified_branch.needed_patches.append(patch)
    logger.info(f"Added needed patch {patch.name} to {release_branch.repo} {release_branch.branch}")
    return True


def add_needed_patch(ctx: Context, repo: str, branch: str, name: str) -> None:
    state = ctx.store.load()
    patch = state.find_patch(name)
    modified_branch = state.find_modified_branch(repo, branch)
    release_branch = (
        modified_branch.release_branch if modified_branch
        else find_release_branch(ctx, state, repo, branch)
    )
    if _assign(state, release_branch, patch):
        ctx.store.save(state)


def add_needed_patch_release_branch(store: Store, release_branch: ReleaseBranch, name: str) -> None:
    state = store.load()
    patch = state.find_patch(name)
    if _assign(state, release_branch, patch):
        store.save(state)


def add_needed_patches(ctx: Context, name: str, predicate: BranchPredicate) -> int:
    """Assign a patch to every inventory branch the predicate accepts.

    Returns the number of new assignments.
    """
    state = ctx.store.load()
    patch = state.find_patch(name)
    # Inventory is computed (and saved) before the sweep starts mutating state
    branches = get_branches(ctx, state)

    count = 0
    for release_branch in branches:
        if not predicate(release_branch):
            logger.debug(f"Skipping {release_branch.repo} {release_branch.branch}")
            continue
        if _assign(state, release_branch, patch):
            count += 1
            ctx.store.save(state)
    logger.info(f"Added {count} release branches to patch {name}")
    return count


def add_all_needed_patches(ctx: Context, name: str) -> int:
    return add_needed_patches(ctx, name, lambda release_branch: True)


def add_needed_patches_before(ctx: Context, name: str, sha: str) -> int:
    """Assign to branches that depend on the patch repo but lack sha."""
    patch = ctx.store.load().find_patch(name)
    return add_needed_patches(
        ctx, name, lambda rb: ctx.releases.is_missing_sha(rb, patch.repo, sha)
    )


def add_needed_patches_after(ctx: Context, name: str, sha: str) -> int:
    """Assign to branches that already contain sha."""
    patch = ctx.store.load().find_patch(name)
    return add_needed_patches(
        ctx, name, lambda rb: ctx.releases.includes_sha(rb, patch.repo, sha)
    )


def add_needed_patches_build_filter(
    ctx: Context,
    name: str,
    predicate: Callable[[ReleaseBranch, str], bool],
) -> int:
    """Build each branch with default options and filter on its built HTML."""

    def built_filter(release_branch: ReleaseBranch) -> bool:
        repo = release_branch.repo
        ctx.tools.checkout_target(repo, release_branch.branch, install=True)
        ctx.tools.build(repo, ["phet"])
        html = (ctx.git.path(repo) / "build" / "phet" / f"{repo}_en_phet.html").read_text()
        return predicate(release_branch, html)

    return add_needed_patches(ctx, name, built_filter)


def remove_needed_patch(store: Store, repo: str, branch: str, name: str) -> None:
    state = store.load()
    patch = state.find_patch(name)
    modified_branch = state.find_modified_branch(repo, branch)
    if modified_branch is None or not modified_branch.needs(patch):
        raise not_found(f"Patch {name} is not needed by {repo} {branch}", repo=repo, branch=branch)
    modified_branch.needed_patches.remove(patch)
    state.try_removing_modified_branch(modified_branch)
    store.save(state)
    logger.info(f"Removed patch {name} from {repo} {branch}")


def remove_needed_patches(ctx: Context, name: str, predicate: BranchPredicate) -> int:
    """Unassign a patch from every tracked branch the predicate accepts."""
    state = ctx.store.load()
    patch = state.find_patch(name)

    count = 0
    for modified_branch in list(state.modified_branches):
        if not modified_branch.needs(patch):
            continue
        if not predicate(modified_branch.release_branch):
            logger.debug(f"Skipping {modified_branch.repo} {modified_branch.branch}")
            continue
        modified_branch.needed_patches.remove(patch)
        state.try_removing_modified_branch(modified_branch)
        count += 1
        ctx.store.save(state)
        logger.info(f"Removed needed patch {name} from {modified_branch.repo} {modified_branch.branch}")
    logger.info(f"Removed {count} release branches from patch {name}")
    return count


def remove_needed_patches_before(ctx: Context, name: str, sha: str) -> int:
    patch = ctx.store.load().find_patch(name)
    return remove_needed_patches(
        ctx, name, lambda rb: ctx.releases.is_missing_sha(rb, patch.repo, sha)
    )


def remove_needed_patches_after(ctx: Context, name: str, sha: str) -> int:
    patch = ctx.store.load().find_patch(name)
    return remove_needed_patches(
        ctx, name, lambda rb: ctx.releases.includes_sha(rb, patch.repo, sha)
    )


def single_file_filter(ctx: Context, path: str, predicate: Callable[[str], bool]) -> BranchPredicate:
    """Build a predicate testing one file of each branch (relative to the branch repo).

    Branches without the file never match.
    """

    def file_filter(release_branch: ReleaseBranch) -> bool:
        repo = release_branch.repo
        ctx.tools.checkout_target(repo, release_branch.branch, install=False)
        try:
            target = ctx.git.path(repo) / path
            if not target.exists():
                return False
            return predicate(target.read_text())
        finally:
            ctx.tools.checkout_main(repo)

    return file_filter
