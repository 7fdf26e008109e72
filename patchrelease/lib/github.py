"""
GitHub integration helpers.

Provides utilities for interacting with GitHub via the gh CLI.
"""

import logging
import subprocess

from patchrelease.errors import external_failure

logger = logging.getLogger(__name__)


# Timeout for GitHub CLI operations (seconds)
GH_TIMEOUT_SECONDS = 30


def check_gh_cli() -> bool:
    """Check if gh CLI is available and authenticated."""
    try:
        result = subprocess.run(
            ["gh", "auth", "status"],
            capture_output=True,
            text=True,
            timeout=GH_TIMEOUT_SECONDS,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


def create_issue(full_repo: str, title: str, body: str, labels: list[str] | None = None) -> str:
    """
    Open an issue on GitHub.

    Args:
        full_repo: "owner/name"
        title, body: Issue text
        labels: Labels to apply (must already exist on the repo)

    Returns:
        URL of the new issue

    Raises:
        MaintenanceError: EXTERNAL_OPERATION_FAILED if gh fails or times out
    """
    cmd = ["gh", "issue", "create", "--repo", full_repo, "--title", title, "--body", body]
    for label in labels or []:
        cmd.extend(["--label", label])

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=GH_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        raise external_failure(f"gh issue create timed out for {full_repo}") from None
    except OSError as e:
        raise external_failure(f"Could not run gh: {e}") from e

    if result.returncode != 0:
        raise external_failure(f"gh issue create failed for {full_repo}: {result.stderr.strip()}")

    url = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
    logger.info(f"Created issue {url} on {full_repo}")
    return url
