"""
pr apply / pr update-deps - Cherry-pick needed patches, then propagate them.
"""

from patchrelease.context import Context
from patchrelease.workflow.apply import apply_patches
from patchrelease.workflow.dependencies import update_dependencies


def cmd_apply(args, ctx: Context) -> int:
    report = apply_patches(ctx)
    print(f"Applied {report.applied} patches")
    if report.unresolved:
        print()
        print("Unresolved (no candidate commit applied cleanly):")
        for repo, branch, patch in report.unresolved:
            print(f"  {repo} {branch}: {patch}")
    return 0


def cmd_update_deps(args, ctx: Context) -> int:
    repos = set(args.repos or [])
    predicate = (lambda mb: mb.repo in repos) if repos else None
    count = update_dependencies(ctx, predicate)
    print(f"Updated dependencies on {count} branches")
    return 0
