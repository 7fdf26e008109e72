"""
Deployment of patched branches.

Staged (release-candidate) deploys come first; once QA passes an RC, the
production deploy publishes it and clears the pushed release notes. The state
is saved after every deploy, and before re-raising any failure.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from patchrelease.context import Context
from patchrelease.errors import ErrorKind, MaintenanceError
from patchrelease.lib import github
from patchrelease.models import MaintenanceState, ModifiedBranch
from patchrelease.workflow.inventory import BranchPredicate, get_branches

logger = logging.getLogger(__name__)

ModifiedBranchPredicate = Callable[[ModifiedBranch], bool]

READY_FOR_QA_LABEL = "status:ready-for-qa"


def _deploy_ready(
    ctx: Context,
    kind: str,
    is_ready: Callable[[ModifiedBranch], bool],
    deploy: Callable[[ModifiedBranch], None],
    predicate: ModifiedBranchPredicate | None,
) -> int:
    state = ctx.store.load()
    count = 0
    for modified_branch in state.modified_branches:
        if not is_ready(modified_branch) or not modified_branch.release_branch.is_released:
            continue
        if predicate is not None and not predicate(modified_branch):
            continue

        logger.info(f"Running {kind} deploy for {modified_branch.repo} {modified_branch.branch}")
        try:
            deploy(modified_branch)
        except Exception as e:
            ctx.store.save(state)
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED,
                f"Failure with {kind} deploy for {modified_branch.repo} {modified_branch.branch}: {e}",
                repo=modified_branch.repo,
                branch=modified_branch.branch,
            ) from e
        ctx.store.save(state)
        count += 1
    logger.info(f"{count} {kind} deploys finished")
    return count


def deploy_release_candidates(ctx: Context, predicate: ModifiedBranchPredicate | None = None) -> int:
    """Staged-deploy every released branch with pushed, not yet deployed changes."""

    def deploy(modified_branch: ModifiedBranch) -> None:
        modified_branch.deployed_version = ctx.tools.deploy_staged(
            modified_branch.repo,
            modified_branch.branch,
            modified_branch.brands,
            include_unpublished=True,
            message=", ".join(modified_branch.pushed_messages),
        )

    return _deploy_ready(ctx, "RC", lambda mb: mb.is_ready_for_staged, deploy, predicate)


def deploy_production(ctx: Context, predicate: ModifiedBranchPredicate | None = None) -> int:
    """Production-deploy every released branch whose current deploy is an RC."""

    def deploy(modified_branch: ModifiedBranch) -> None:
        modified_branch.deployed_version = ctx.tools.deploy_production(
            modified_branch.repo,
            modified_branch.branch,
            modified_branch.brands,
            include_unpublished=True,
            is_rerelease=False,
            message=", ".join(modified_branch.pushed_messages),
        )
        modified_branch.pushed_messages = []

    return _deploy_ready(ctx, "production", lambda mb: mb.is_ready_for_production, deploy, predicate)


def redeploy_all_production(ctx: Context, message: str, predicate: BranchPredicate | None = None) -> int:
    """RC then production deploy of every released branch, outside the patch workflow.

    Only the inventory cache is read (and computed if missing); tracked
    branches are not touched.
    """
    branches = get_branches(ctx, ctx.store.load(), include_unreleased=False)
    count = 0
    for release_branch in branches:
        if predicate is not None and not predicate(release_branch):
            continue
        logger.info(f"Redeploying {release_branch}")
        try:
            ctx.tools.deploy_staged(
                release_branch.repo, release_branch.branch, release_branch.brands,
                include_unpublished=True, message=message,
            )
            ctx.tools.deploy_production(
                release_branch.repo, release_branch.branch, release_branch.brands,
                include_unpublished=True, is_rerelease=False, message=message,
            )
        except MaintenanceError as e:
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED,
                f"Failure redeploying {release_branch.repo} {release_branch.branch}: {e}",
                repo=release_branch.repo,
                branch=release_branch.branch,
            ) from e
        count += 1
    logger.info("Finished redeploying")
    return count


def unreleased_issue_body(modified_branch: ModifiedBranch, notes: str = "") -> str:
    changes = "\n".join(f"- {message}" for message in modified_branch.pushed_messages)
    body = (
        f"This branch ({modified_branch.branch}) had changes related to the following applied:\n\n"
        f"{changes}\n\n"
        "Presumably one or more of these changes is likely to have been applied after the last RC "
        "version, and should be spot-checked by QA in the next RC (or if it was ready for a production "
        "release, an additional spot-check RC should be created).\n"
    )
    if notes:
        body += f"\n{notes}"
    return body


def create_unreleased_issues(ctx: Context, notes: str = "") -> list[str]:
    """Open a QA issue for every unpublished branch that received changes.

    Returns the URLs of the created issues.
    """
    if not ctx.github_org:
        raise MaintenanceError(ErrorKind.NOT_FOUND, "github_org is not configured in maintenance.yaml")
    if not github.check_gh_cli():
        raise MaintenanceError(
            ErrorKind.EXTERNAL_OPERATION_FAILED, "gh CLI is not installed or not authenticated"
        )

    urls = []
    for modified_branch in ctx.store.load().modified_branches:
        if modified_branch.release_branch.is_released or not modified_branch.pushed_messages:
            continue
        logger.info(f"Creating issue for {modified_branch.release_branch}")
        urls.append(github.create_issue(
            f"{ctx.github_org}/{modified_branch.repo}",
            f"Maintenance patches applied to branch {modified_branch.branch}",
            unreleased_issue_body(modified_branch, notes),
            labels=[READY_FOR_QA_LABEL],
        ))
    return urls


@dataclass
class DeployedLinks:
    production: list[str] = field(default_factory=list)
    release_candidates: list[str] = field(default_factory=list)


def _link_lines(ctx: Context, modified_branch: ModifiedBranch, kind: str) -> list[str]:
    version = str(modified_branch.deployed_version)
    template = ctx.links.get(kind)
    lines = [
        f"**{modified_branch.repo} {modified_branch.branch}** ({', '.join(modified_branch.pushed_messages)})"
    ]
    if template:
        url = template.replace("{repo}", modified_branch.repo).replace("{version}", version)
        lines.append(f"- [ ] [{modified_branch.repo} {version}]({url})")
    else:
        lines.append(f"- [ ] {modified_branch.repo} {version}")
    return lines


def list_links(ctx: Context, predicate: ModifiedBranchPredicate | None = None) -> DeployedLinks:
    """Checklist lines for every deployed tracked branch, by kind of deploy."""
    state: MaintenanceState = ctx.store.load()
    links = DeployedLinks()
    for modified_branch in state.modified_branches:
        if modified_branch.deployed_version is None:
            continue
        if predicate is not None and not predicate(modified_branch):
            continue
        if modified_branch.deployed_version.is_release_candidate:
            links.release_candidates.extend(_link_lines(ctx, modified_branch, "staged"))
        elif modified_branch.deployed_version.test_type is None:
            links.production.extend(_link_lines(ctx, modified_branch, "production"))
    return links
