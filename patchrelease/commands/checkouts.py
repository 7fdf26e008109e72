"""
pr checkouts / pr check / pr checkout - Validate and inspect release branches.
"""

from patchrelease.context import Context
from patchrelease.runner import checkouts


def _branch_filter(args):
    repos = set(args.repos or [])
    released_only = getattr(args, "released_only", False)
    if not repos and not released_only:
        return None
    return lambda rb: (not repos or rb.repo in repos) and (rb.is_released or not released_only)


def _parse_build_options(pairs: list[str] | None) -> dict:
    options = {}
    for pair in pairs or []:
        key, _, value = pair.partition("=")
        options[key] = value
    return options


def cmd_update_checkouts(args, ctx: Context) -> int:
    report = checkouts.update_checkouts(
        ctx,
        _branch_filter(args),
        concurrency=args.concurrency,
        transpile=not args.no_transpile,
        build=not args.no_build,
        build_options=_parse_build_options(args.build_option),
    )
    print(f"{len(report.succeeded)} checkouts updated")
    for outcome in report.checkout_failures + report.build_failures:
        print(f"  FAILED {outcome.release_branch} ({outcome.failed_step}): {outcome.error}")
    return 0 if not (report.checkout_failures or report.build_failures) else 1


def cmd_check(args, ctx: Context) -> int:
    if args.built:
        failures = checkouts.check_built_checkouts(ctx, _branch_filter(args))
    else:
        failures = checkouts.check_unbuilt_checkouts(ctx, _branch_filter(args))
    for release_branch, error in failures:
        print(f"{release_branch}: {error}")
    print(f"{len(failures)} failures")
    return 0 if not failures else 1


def cmd_check_status(args, ctx: Context) -> int:
    statuses = checkouts.check_branch_status(ctx, _branch_filter(args), force_refresh=args.refresh)
    for release_branch, lines in statuses:
        print(f"{release_branch.repo} {release_branch.branch}")
        for line in lines:
            print(f"  {line}")
    return 0


def cmd_checkout(args, ctx: Context) -> int:
    dependencies = checkouts.checkout_branch(ctx, args.repo, args.branch, transpile=args.transpile)
    print(f"Checked out {args.repo} {args.branch} ({len(dependencies)} dependencies)")
    return 0
