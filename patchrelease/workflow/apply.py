"""
Patch application: cherry-pick needed patches onto each tracked branch.

For a branch that needs a patch, the patch repo is checked out at the commit
the branch currently builds against (or at the commit an earlier patch
produced), then each candidate commit is cherry-picked in order until one
applies. The resulting commit is recorded as a changed dependency, to be
propagated into the branch's manifest later.
"""

import logging
from dataclasses import dataclass, field

from patchrelease.context import Context
from patchrelease.errors import ErrorKind, MaintenanceError, not_found
from patchrelease.manifest import dependency_sha
from patchrelease.models import ModifiedBranch, Patch
from patchrelease.workflow.fsm import PatchAttempt

logger = logging.getLogger(__name__)


@dataclass
class ApplyReport:
    """Outcome of an apply_patches run, read from the final state of each attempt."""
    attempts: list[PatchAttempt] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.state == "applied")

    @property
    def unresolved(self) -> list[tuple[str, str, str]]:
        """(repo, branch, patch) of every attempt whose candidates all failed."""
        return [
            (attempt.repo, attempt.branch, attempt.patch_name)
            for attempt in self.attempts
            if attempt.state == "unresolved"
        ]

    @property
    def converged(self) -> bool:
        return not self.unresolved


def checkout_patch_base(ctx: Context, modified_branch: ModifiedBranch, patch: Patch) -> None:
    """Check out the patch repo at the commit this branch builds against."""
    pending = modified_branch.changed_dependencies.get(patch.repo)
    if pending:
        ctx.git.checkout(patch.repo, pending)
        return

    ctx.git.checkout(modified_branch.repo, modified_branch.branch)
    ctx.git.pull(modified_branch.repo)
    manifest = ctx.manifests.read(modified_branch.repo)
    sha = dependency_sha(manifest, patch.repo)
    ctx.git.checkout(modified_branch.repo, ctx.main_branch)
    ctx.git.checkout(patch.repo, sha)


def _pick_first(ctx: Context, modified_branch: ModifiedBranch, patch: Patch) -> str | None:
    """Try candidate commits in order; return the SHA that applied, or None."""
    for sha in patch.shas:
        if not ctx.git.commit_exists(patch.repo, sha):
            raise not_found(
                f"SHA {sha} not found in {patch.repo} (needed by {modified_branch.repo} {modified_branch.branch})",
                repo=modified_branch.repo,
                branch=modified_branch.branch,
            )
        if ctx.git.cherry_pick(patch.repo, sha):
            return sha
        logger.info(f"Could not cherry-pick {sha} onto {modified_branch.repo} {modified_branch.branch}")
    return None


def apply_patches(ctx: Context) -> ApplyReport:
    """Apply every needed patch that has candidate commits.

    Patches whose candidates all fail stay needed and are listed in the
    report. Any git or manifest failure saves the state and raises.
    """
    logger.info("Applying patches")
    state = ctx.store.load()
    report = ApplyReport()

    for modified_branch in state.modified_branches:
        if not modified_branch.needed_patches:
            continue
        repo, branch = modified_branch.repo, modified_branch.branch
        touched = []

        # Applied patches are removed from needed_patches as we go
        for patch in list(modified_branch.needed_patches):
            if not patch.shas:
                continue
            if patch.repo not in touched:
                touched.append(patch.repo)

            attempt = PatchAttempt(repo, branch, patch.name)
            report.attempts.append(attempt)
            try:
                attempt.resolve()
                checkout_patch_base(ctx, modified_branch, patch)
                attempt.pick()
                sha = _pick_first(ctx, modified_branch, patch)
                result = ctx.git.rev_parse(patch.repo, "HEAD") if sha else None
            except Exception as e:
                attempt.fail()
                ctx.store.save(state)
                kind = e.kind if isinstance(e, MaintenanceError) else ErrorKind.EXTERNAL_OPERATION_FAILED
                raise MaintenanceError(
                    kind,
                    f"Failure applying patch {patch.repo} to {repo} {branch}: {e}",
                    repo=repo,
                    branch=branch,
                ) from e

            if sha is None:
                attempt.exhaust()
                logger.warning(f"No candidate commit of patch {patch.name} applies to {repo} {branch}")
                continue

            attempt.succeed()
            modified_branch.changed_dependencies[patch.repo] = result
            modified_branch.needed_patches.remove(patch)
            modified_branch.add_pending_message(patch.message)
            logger.info(f"Applied patch {patch.name} ({sha}) to {repo} {branch}: {patch.repo} is now {result}")

        for touched_repo in [repo] + [r for r in touched if r != repo]:
            ctx.git.checkout(touched_repo, ctx.main_branch)

    ctx.store.save(state)
    logger.info(f"{report.applied} patches applied, {len(report.unresolved)} unresolved")
    return report
