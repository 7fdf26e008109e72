"""
pr status / pr branches / pr reset - Show and reset the maintenance state.
"""

from patchrelease.context import Context
from patchrelease.store import reset
from patchrelease.workflow import inventory


def cmd_status(args, ctx: Context) -> int:
    """Print patches and tracked branches."""
    state = ctx.store.load()

    if state.patches:
        print("Patches")
        print("-" * 60)
        for patch in state.patches:
            needing = state.branches_needing(patch)
            print(f"  {patch.name:<20} {patch.repo:<20} {patch.message}")
            for sha in patch.shas:
                print(f"      {sha}")
            if needing:
                print(f"      needed by {len(needing)} branches")
        print()
    else:
        print("Patches: none")
        print()

    if state.modified_branches:
        print("Modified branches")
        print("-" * 60)
        for mb in state.modified_branches:
            print(f"  {mb.release_branch}")
            if mb.deployed_version:
                print(f"      deployed: {mb.deployed_version}")
            if mb.needed_patches:
                print(f"      needs: {', '.join(p.name for p in mb.needed_patches)}")
            for repo, sha in mb.changed_dependencies.items():
                print(f"      changed: {repo} {sha}")
            if mb.pending_messages:
                print(f"      pending: {', '.join(mb.pending_messages)}")
            if mb.pushed_messages:
                print(f"      pushed: {', '.join(mb.pushed_messages)}")
    else:
        print("Modified branches: none")
    return 0


def cmd_branches(args, ctx: Context) -> int:
    """Print the release branch inventory."""
    if args.invalidate:
        inventory.invalidate(ctx.store)
        print("Branch inventory invalidated")
        return 0

    state = ctx.store.load()
    repos = set(args.repos or [])
    branches = inventory.get_branches(
        ctx,
        state,
        filter_repo=(lambda rb: rb.repo in repos) if repos else None,
        include_unreleased=not args.released_only,
        force_refresh=args.refresh,
    )
    for release_branch in branches:
        print(f"  {release_branch}")
    print(f"{len(branches)} release branches (computed {state.inventory.computed_at or 'unknown'})")
    return 0


def cmd_reset(args, ctx: Context) -> int:
    if not args.yes:
        print("ERROR: This discards every patch and tracked branch. Re-run with --yes")
        return 2
    reset(ctx.store, keep_inventory=args.keep_branches)
    print("Maintenance state reset")
    return 0
