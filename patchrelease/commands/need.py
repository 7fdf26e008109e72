"""
pr need / pr unneed - Mark which release branches need a patch.

Either name one branch (REPO BRANCH) or sweep the inventory with a filter:
--all, --before SHA (branches lacking SHA), --after SHA (branches containing
SHA), or --file PATH --contains TEXT (branches whose PATH contains TEXT).
"""

from patchrelease.context import Context
from patchrelease.workflow import assignment


def _print_usage_error(message: str) -> int:
    print(f"ERROR: {message}")
    return 2


def _repo_filter(args, predicate):
    if not args.repos:
        return predicate
    repos = set(args.repos)
    return lambda rb: rb.repo in repos and predicate(rb)


def cmd_need(args, ctx: Context) -> int:
    """Add a needed patch to one branch, or to every branch matching a filter."""
    if args.repo and args.branch:
        assignment.add_needed_patch(ctx, args.repo, args.branch, args.patch)
        print(f"{args.repo} {args.branch} needs {args.patch}")
        return 0

    if args.before:
        count = assignment.add_needed_patches_before(ctx, args.patch, args.before)
    elif args.after:
        count = assignment.add_needed_patches_after(ctx, args.patch, args.after)
    elif args.file:
        if args.contains is None:
            return _print_usage_error("--file needs --contains")
        text = args.contains
        predicate = assignment.single_file_filter(ctx, args.file, lambda content: text in content)
        count = assignment.add_needed_patches(ctx, args.patch, _repo_filter(args, predicate))
    elif args.all:
        count = assignment.add_needed_patches(ctx, args.patch, _repo_filter(args, lambda rb: True))
    else:
        return _print_usage_error("Give REPO BRANCH, or one of --all, --before, --after, --file")

    print(f"Added {args.patch} to {count} release branches")
    return 0


def cmd_unneed(args, ctx: Context) -> int:
    """Remove a needed patch from one branch, or from every tracked branch matching a filter."""
    if args.repo and args.branch:
        assignment.remove_needed_patch(ctx.store, args.repo, args.branch, args.patch)
        print(f"{args.repo} {args.branch} no longer needs {args.patch}")
        return 0

    if args.before:
        count = assignment.remove_needed_patches_before(ctx, args.patch, args.before)
    elif args.after:
        count = assignment.remove_needed_patches_after(ctx, args.patch, args.after)
    elif args.all:
        count = assignment.remove_needed_patches(ctx, args.patch, _repo_filter(args, lambda rb: True))
    else:
        return _print_usage_error("Give REPO BRANCH, or one of --all, --before, --after")

    print(f"Removed {args.patch} from {count} release branches")
    return 0
