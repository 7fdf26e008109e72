"""
pr deploy - RC and production deploys, QA issues and link lists.
"""

from patchrelease.context import Context
from patchrelease.workflow import deploy


def _modified_branch_filter(args):
    repos = set(args.repos or [])
    return (lambda mb: mb.repo in repos) if repos else None


def cmd_deploy_rc(args, ctx: Context) -> int:
    count = deploy.deploy_release_candidates(ctx, _modified_branch_filter(args))
    print(f"Deployed {count} release candidates")
    return 0


def cmd_deploy_production(args, ctx: Context) -> int:
    count = deploy.deploy_production(ctx, _modified_branch_filter(args))
    print(f"Deployed {count} branches to production")
    return 0


def cmd_redeploy_all(args, ctx: Context) -> int:
    repos = set(args.repos or [])
    predicate = (lambda rb: rb.repo in repos) if repos else None
    count = deploy.redeploy_all_production(ctx, args.message, predicate)
    print(f"Redeployed {count} branches")
    return 0


def cmd_issues(args, ctx: Context) -> int:
    urls = deploy.create_unreleased_issues(ctx, notes=args.notes or "")
    for url in urls:
        print(f"  {url}")
    print(f"Created {len(urls)} issues")
    return 0


def cmd_links(args, ctx: Context) -> int:
    links = deploy.list_links(ctx, _modified_branch_filter(args))
    if links.production:
        print("Production links")
        print()
        for line in links.production:
            print(line)
        print()
    if links.release_candidates:
        print("Release Candidate links")
        print()
        for line in links.release_candidates:
            print(line)
    if not links.production and not links.release_candidates:
        print("No deployed branches")
    return 0
