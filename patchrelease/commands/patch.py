"""
pr patch - Create, remove and edit patches.
"""

from patchrelease.context import Context
from patchrelease.workflow import assignment


def cmd_patch_create(args, ctx: Context) -> int:
    patch = assignment.create_patch(ctx.store, args.repo, args.message, name=args.name)
    print(f"Created patch {patch.name} for {patch.repo}")
    return 0


def cmd_patch_remove(args, ctx: Context) -> int:
    assignment.remove_patch(ctx.store, args.name)
    print(f"Removed patch {args.name}")
    return 0


def cmd_patch_add_sha(args, ctx: Context) -> int:
    sha = assignment.add_patch_sha(ctx, args.name, args.sha)
    print(f"Added {sha} to patch {args.name}")
    return 0


def cmd_patch_remove_sha(args, ctx: Context) -> int:
    assignment.remove_patch_sha(ctx.store, args.name, args.sha)
    print(f"Removed {args.sha} from patch {args.name}")
    return 0


def cmd_patch_clear_shas(args, ctx: Context) -> int:
    assignment.clear_patch_shas(ctx.store, args.name)
    print(f"Cleared SHAs of patch {args.name}")
    return 0
