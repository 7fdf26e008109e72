"""
Checkout and build runner for release branches.

update_checkouts refreshes, transpiles and builds many branches at once in
their own checkout directories, at most `concurrency` at a time. A failing
branch is logged and recorded; it never stops the others. Filtering happens
before the fan-out, one branch at a time, because filters may check out the
shared working copies.

Nothing here changes the maintenance state.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from patchrelease.context import Context
from patchrelease.errors import ErrorKind, MaintenanceError
from patchrelease.models import ReleaseBranch
from patchrelease.workflow.inventory import BranchPredicate, find_release_branch, get_branches

logger = logging.getLogger(__name__)

STEP_CHECKOUT = "checkout"
STEP_TRANSPILE = "transpile"
STEP_BUILD = "build"


@dataclass
class BranchOutcome:
    """What happened to one branch in an update_checkouts run."""
    release_branch: ReleaseBranch
    failed_step: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None


@dataclass
class CheckoutReport:
    outcomes: list[BranchOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ReleaseBranch]:
        return [o.release_branch for o in self.outcomes if o.ok]

    @property
    def checkout_failures(self) -> list[BranchOutcome]:
        """Branches whose refresh or transpile failed."""
        return [o for o in self.outcomes if o.failed_step in (STEP_CHECKOUT, STEP_TRANSPILE)]

    @property
    def build_failures(self) -> list[BranchOutcome]:
        return [o for o in self.outcomes if o.failed_step == STEP_BUILD]


def _update_one(
    ctx: Context,
    release_branch: ReleaseBranch,
    transpile: bool,
    build: bool,
    build_options: dict | None,
) -> BranchOutcome:
    outcome = BranchOutcome(release_branch)
    logger.info(f"Beginning: {release_branch}")

    steps = [(STEP_CHECKOUT, lambda: ctx.releases.update_checkout(release_branch))]
    if transpile:
        steps.append((STEP_TRANSPILE, lambda: ctx.releases.transpile(release_branch)))
    if build:
        steps.append((STEP_BUILD, lambda: ctx.releases.build(release_branch, build_options)))

    for step, run in steps:
        try:
            run()
        except Exception as e:
            outcome.failed_step = step
            outcome.error = str(e)
            logger.error(f"Failed to update {release_branch} ({step}): {e}")
            return outcome

    logger.info(f"Finished: {release_branch}")
    return outcome


def update_checkouts(
    ctx: Context,
    predicate: BranchPredicate | None = None,
    concurrency: int | None = None,
    transpile: bool = True,
    build: bool = True,
    build_options: dict | None = None,
) -> CheckoutReport:
    """Refresh (and optionally transpile and build) the checkout of every matching branch.

    concurrency defaults to the workspace setting (ctx.concurrency).
    """
    if concurrency is None:
        concurrency = ctx.concurrency
    if concurrency < 1:
        raise MaintenanceError(ErrorKind.INVALID_STATE, f"concurrency must be >= 1, got {concurrency}")

    branches = get_branches(ctx, ctx.store.load())
    worklist = [rb for rb in branches if predicate is None or predicate(rb)]
    logger.info(f"Updating {len(worklist)} checkouts with concurrency {concurrency}")

    report = CheckoutReport()
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        futures = [
            pool.submit(_update_one, ctx, rb, transpile, build, build_options)
            for rb in worklist
        ]
        for future in futures:
            report.outcomes.append(future.result())

    logger.info(
        f"Checkouts done: {len(report.succeeded)} ok, {len(report.checkout_failures)} checkout failures, "
        f"{len(report.build_failures)} build failures"
    )
    return report


def _check_checkouts(ctx: Context, check, predicate: BranchPredicate | None) -> list[tuple[ReleaseBranch, str]]:
    failures = []
    for release_branch in get_branches(ctx, ctx.store.load()):
        if predicate is not None and not predicate(release_branch):
            continue
        logger.info(f"Checking {release_branch}")
        error = check(release_branch)
        if error:
            logger.warning(error)
            failures.append((release_branch, error))
    return failures


def check_unbuilt_checkouts(ctx: Context, predicate: BranchPredicate | None = None) -> list[tuple[ReleaseBranch, str]]:
    """Load every unbuilt checkout; returns (branch, error) for each failure."""
    return _check_checkouts(ctx, ctx.releases.check_unbuilt, predicate)


def check_built_checkouts(ctx: Context, predicate: BranchPredicate | None = None) -> list[tuple[ReleaseBranch, str]]:
    """Load every built checkout; returns (branch, error) for each failure."""
    return _check_checkouts(ctx, ctx.releases.check_built, predicate)


def check_branch_status(
    ctx: Context,
    predicate: BranchPredicate | None = None,
    force_refresh: bool = False,
) -> list[tuple[ReleaseBranch, list[str]]]:
    """Status lines for every matching branch.

    Raises:
        MaintenanceError: If any active repository has uncommitted changes
    """
    for repo in ctx.releases.active_repos:
        if not ctx.git.is_clean(repo):
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED,
                f"Unclean repository: {repo} ({', '.join(ctx.git.dirty_files(repo))}), "
                "please resolve this and then check status again",
                repo=repo,
            )

    statuses = []
    for release_branch in get_branches(ctx, ctx.store.load(), force_refresh=force_refresh):
        if predicate is not None and not predicate(release_branch):
            logger.debug(f"{release_branch} (skipping due to filter)")
            continue
        statuses.append((release_branch, ctx.releases.status_lines(release_branch)))
    return statuses


def checkout_branch(ctx: Context, repo: str, branch: str, transpile: bool = False) -> list[str]:
    """Check out a branch in the shared working copies, with its pending dependency changes.

    Returns the dependency repos that were checked out.
    """
    state = ctx.store.load()
    modified_branch = state.find_modified_branch(repo, branch)
    if modified_branch is None:
        find_release_branch(ctx, state, repo, branch)
        overrides = {}
    else:
        overrides = dict(modified_branch.changed_dependencies)

    checked_out = ctx.tools.checkout_target(repo, branch, install=True, overrides=overrides)
    if transpile:
        ctx.tools.transpile(repo)
    logger.info(f"Checked out {repo} {branch}" + (f" with {len(overrides)} pending changes" if overrides else ""))
    return checked_out
