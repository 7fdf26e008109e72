#!/usr/bin/env python3
"""patchrelease CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from patchrelease import __version__
from patchrelease.context import Context, build_context
from patchrelease.errors import MaintenanceError
from patchrelease.lib.config import load_config
from patchrelease.lib.constants import DEFAULT_CONCURRENCY, EXIT_CODE_FOR, EXIT_INVALID_STATE
from patchrelease.lib.validate import ValidationError
from patchrelease.commands import apply as cmd_apply_module
from patchrelease.commands import checkouts as cmd_checkouts_module
from patchrelease.commands import deploy as cmd_deploy_module
from patchrelease.commands import need as cmd_need_module
from patchrelease.commands import patch as cmd_patch_module
from patchrelease.commands import status as cmd_status_module

logger = logging.getLogger(__name__)


def get_context(args) -> Context:
    """Load maintenance.yaml from --workspace (default: current directory)."""
    workspace = Path(args.workspace or Path.cwd())
    config = load_config(workspace, Path(args.config) if args.config else None)
    return build_context(config)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _add_repo_filter(parser) -> None:
    parser.add_argument('--repo', dest='repos', action='append', help='Only this repo (repeatable)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='pr', description='Maintenance patch release CLI')
    parser.add_argument('--workspace', '-w', help='Directory holding maintenance.yaml (default: cwd)')
    parser.add_argument('--config', '-c', help='Path to config file (default: <workspace>/maintenance.yaml)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # pr status
    p_status = subparsers.add_parser('status', help='Show patches and tracked branches')
    p_status.set_defaults(func=cmd_status_module.cmd_status)

    # pr branches
    p_branches = subparsers.add_parser('branches', help='Show the release branch inventory')
    _add_repo_filter(p_branches)
    p_branches.add_argument('--released-only', action='store_true', help='Skip unpublished branches')
    p_branches.add_argument('--refresh', action='store_true', help='Recompute the inventory')
    p_branches.add_argument('--invalidate', action='store_true', help='Drop the cached inventory')
    p_branches.set_defaults(func=cmd_status_module.cmd_branches)

    # pr reset
    p_reset = subparsers.add_parser('reset', help='Discard all patches and tracked branches')
    p_reset.add_argument('--keep-branches', action='store_true', help='Keep the cached inventory')
    p_reset.add_argument('--yes', action='store_true', help='Confirm')
    p_reset.set_defaults(func=cmd_status_module.cmd_reset)

    # pr patch ...
    p_patch = subparsers.add_parser('patch', help='Manage patches')
    patch_sub = p_patch.add_subparsers(dest='patch_cmd', required=True)

    p_patch_create = patch_sub.add_parser('create', help='Create a patch')
    p_patch_create.add_argument('repo', help='Repository the fix is committed to')
    p_patch_create.add_argument('message', help='Release note (usually an issue URL)')
    p_patch_create.add_argument('--name', help='Patch name (default: repo)')
    p_patch_create.set_defaults(func=cmd_patch_module.cmd_patch_create)

    p_patch_remove = patch_sub.add_parser('remove', help='Remove a patch no branch needs')
    p_patch_remove.add_argument('name', help='Patch name')
    p_patch_remove.set_defaults(func=cmd_patch_module.cmd_patch_remove)

    p_patch_add_sha = patch_sub.add_parser('add-sha', help='Add a candidate commit')
    p_patch_add_sha.add_argument('name', help='Patch name')
    p_patch_add_sha.add_argument('sha', nargs='?', help='Commit (default: HEAD of the patch repo)')
    p_patch_add_sha.set_defaults(func=cmd_patch_module.cmd_patch_add_sha)

    p_patch_remove_sha = patch_sub.add_parser('remove-sha', help='Remove a candidate commit')
    p_patch_remove_sha.add_argument('name', help='Patch name')
    p_patch_remove_sha.add_argument('sha', help='Commit')
    p_patch_remove_sha.set_defaults(func=cmd_patch_module.cmd_patch_remove_sha)

    p_patch_clear = patch_sub.add_parser('clear-shas', help='Remove every candidate commit')
    p_patch_clear.add_argument('name', help='Patch name')
    p_patch_clear.set_defaults(func=cmd_patch_module.cmd_patch_clear_shas)

    # pr need / pr unneed
    for command, func, help_text in (
        ('need', cmd_need_module.cmd_need, 'Mark branches as needing a patch'),
        ('unneed', cmd_need_module.cmd_unneed, 'Mark branches as no longer needing a patch'),
    ):
        p_need = subparsers.add_parser(command, help=help_text)
        p_need.add_argument('patch', help='Patch name')
        p_need.add_argument('repo', nargs='?', help='Release branch repo')
        p_need.add_argument('branch', nargs='?', help='Release branch (e.g. 1.2)')
        p_need.add_argument('--all', action='store_true', help='Every branch (narrow with --repo)')
        p_need.add_argument('--before', metavar='SHA', help='Branches that lack SHA')
        p_need.add_argument('--after', metavar='SHA', help='Branches that contain SHA')
        p_need.add_argument('--repo', dest='repos', action='append', help='Only this repo (repeatable)')
        if command == 'need':
            p_need.add_argument('--file', help='File (relative to the branch repo) to test')
            p_need.add_argument('--contains', help='Text --file must contain')
        p_need.set_defaults(func=func)

    # pr apply
    p_apply = subparsers.add_parser('apply', help='Cherry-pick needed patches')
    p_apply.set_defaults(func=cmd_apply_module.cmd_apply)

    # pr update-deps
    p_update = subparsers.add_parser('update-deps', help='Push changed dependencies and update manifests')
    _add_repo_filter(p_update)
    p_update.set_defaults(func=cmd_apply_module.cmd_update_deps)

    # pr deploy ...
    p_deploy = subparsers.add_parser('deploy', help='Deploy patched branches')
    deploy_sub = p_deploy.add_subparsers(dest='deploy_cmd', required=True)

    p_deploy_rc = deploy_sub.add_parser('rc', help='Release-candidate deploy of ready branches')
    _add_repo_filter(p_deploy_rc)
    p_deploy_rc.set_defaults(func=cmd_deploy_module.cmd_deploy_rc)

    p_deploy_prod = deploy_sub.add_parser('production', help='Production deploy of branches with an RC')
    _add_repo_filter(p_deploy_prod)
    p_deploy_prod.set_defaults(func=cmd_deploy_module.cmd_deploy_production)

    p_redeploy = deploy_sub.add_parser('redeploy-all', help='RC and production deploy of every released branch')
    p_redeploy.add_argument('message', help='Release note')
    _add_repo_filter(p_redeploy)
    p_redeploy.set_defaults(func=cmd_deploy_module.cmd_redeploy_all)

    # pr issues
    p_issues = subparsers.add_parser('issues', help='Open QA issues for unpublished patched branches')
    p_issues.add_argument('--notes', help='Extra text for each issue')
    p_issues.set_defaults(func=cmd_deploy_module.cmd_issues)

    # pr links
    p_links = subparsers.add_parser('links', help='List links to deployed versions')
    _add_repo_filter(p_links)
    p_links.set_defaults(func=cmd_deploy_module.cmd_links)

    # pr checkouts
    p_checkouts = subparsers.add_parser('checkouts', help='Refresh and build release branch checkouts')
    _add_repo_filter(p_checkouts)
    p_checkouts.add_argument('--released-only', action='store_true', help='Skip unpublished branches')
    p_checkouts.add_argument('--concurrency', '-j', type=int, default=None,
                             help=f'Branches at once (default: maintenance.yaml concurrency, {DEFAULT_CONCURRENCY})')
    p_checkouts.add_argument('--no-transpile', action='store_true', help='Skip transpiling')
    p_checkouts.add_argument('--no-build', action='store_true', help='Skip building')
    p_checkouts.add_argument('--build-option', action='append', metavar='KEY=VALUE',
                             help='Extra build option (repeatable)')
    p_checkouts.set_defaults(func=cmd_checkouts_module.cmd_update_checkouts)

    # pr check
    p_check = subparsers.add_parser('check', help='Load each checkout and report failures')
    _add_repo_filter(p_check)
    p_check.add_argument('--released-only', action='store_true', help='Skip unpublished branches')
    p_check.add_argument('--built', action='store_true', help='Check built output instead of unbuilt')
    p_check.set_defaults(func=cmd_checkouts_module.cmd_check)

    # pr check-status
    p_check_status = subparsers.add_parser('check-status', help='Report manifest consistency per branch')
    _add_repo_filter(p_check_status)
    p_check_status.add_argument('--released-only', action='store_true', help='Skip unpublished branches')
    p_check_status.add_argument('--refresh', action='store_true', help='Recompute the inventory first')
    p_check_status.set_defaults(func=cmd_checkouts_module.cmd_check_status)

    # pr checkout
    p_checkout = subparsers.add_parser('checkout', help='Check out a branch with its pending changes')
    p_checkout.add_argument('repo', help='Release branch repo')
    p_checkout.add_argument('branch', help='Release branch')
    p_checkout.add_argument('--transpile', action='store_true', help='Transpile after checkout')
    p_checkout.set_defaults(func=cmd_checkouts_module.cmd_checkout)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        ctx = get_context(args)
        return args.func(args, ctx)
    except ValidationError as e:
        print(f"ERROR: {e}")
        return EXIT_INVALID_STATE
    except MaintenanceError as e:
        logger.debug("command failed", exc_info=True)
        print(f"ERROR: {e}")
        return EXIT_CODE_FOR[e.kind]


if __name__ == '__main__':
    sys.exit(main())
