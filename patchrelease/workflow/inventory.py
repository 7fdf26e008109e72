"""
Branch inventory cache.

Discovering every release branch needs every repository checked out, so the
result is kept in the maintenance state and reused until invalidated.
"""

import logging
from typing import Callable

from patchrelease.context import Context
from patchrelease.errors import ErrorKind, MaintenanceError
from patchrelease.models import BranchInventory, MaintenanceState, ReleaseBranch
from patchrelease.store import Store

logger = logging.getLogger(__name__)

BranchPredicate = Callable[[ReleaseBranch], bool]


def _check_shape(inventory: BranchInventory) -> None:
    for entry in inventory.branches:
        if not isinstance(entry, ReleaseBranch):
            raise MaintenanceError(
                ErrorKind.INVALID_STATE, f"Cached branch inventory holds a {type(entry).__name__}"
            )


def refresh(ctx: Context, state: MaintenanceState, force: bool = False) -> BranchInventory:
    """Return the cached inventory, recomputing (and saving) it when absent or forced."""
    if state.inventory is not None and not force:
        _check_shape(state.inventory)
        return state.inventory

    logger.info("Computing release branch inventory")
    state.inventory = BranchInventory.computed_now(ctx.releases.discover_all())
    ctx.store.save(state)
    return state.inventory


def get_branches(
    ctx: Context,
    state: MaintenanceState,
    filter_repo: BranchPredicate | None = None,
    include_unreleased: bool = True,
    force_refresh: bool = False,
) -> list[ReleaseBranch]:
    inventory = refresh(ctx, state, force=force_refresh)
    branches = list(inventory.branches)
    if not include_unreleased:
        branches = [rb for rb in branches if rb.is_released]
    if filter_repo is not None:
        branches = [rb for rb in branches if filter_repo(rb)]
    return branches


def invalidate(store: Store) -> None:
    """Drop the cached inventory so the next query recomputes it."""
    state = store.load()
    state.inventory = None
    store.save(state)
    logger.info("Release branch inventory invalidated")


def find_release_branch(ctx: Context, state: MaintenanceState, repo: str, branch: str) -> ReleaseBranch:
    for release_branch in get_branches(ctx, state):
        if release_branch.repo == repo and release_branch.branch == branch:
            return release_branch
    raise MaintenanceError(
        ErrorKind.NOT_FOUND, f"Release branch not found: {repo} {branch}", repo=repo, branch=branch
    )
