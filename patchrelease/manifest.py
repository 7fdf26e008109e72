"""
Dependency manifest access.

Each release branch records, in a JSON file at its repository root, the exact
commit it builds against for every repository it depends on:

    {
      "comment": "...",
      "sim-a": {"sha": "cafef00d...", "branch": "1.2"},
      "chipper": {"sha": "0123abcd...", "branch": "sim-a-1.2"}
    }

Entries other than objects with a "sha" (like "comment") are carried through
untouched.
"""

import json
import logging

from patchrelease.errors import ErrorKind, MaintenanceError, not_found
from patchrelease.git.repos import GitRepos

logger = logging.getLogger(__name__)


def dependency_sha(manifest: dict, repo: str) -> str:
    """Return the commit a manifest records for repo.

    Raises:
        MaintenanceError: NOT_FOUND if the manifest has no entry for repo
    """
    entry = manifest.get(repo)
    if not isinstance(entry, dict) or "sha" not in entry:
        raise not_found(f"Dependency manifest has no commit for {repo}", repo=repo)
    return entry["sha"]


def set_dependency_sha(manifest: dict, repo: str, sha: str) -> None:
    entry = manifest.get(repo)
    if isinstance(entry, dict):
        entry["sha"] = sha
    else:
        manifest[repo] = {"sha": sha}


class ManifestFiles:
    """Reads and writes the dependency manifest in each working copy."""

    def __init__(self, git: GitRepos, filename: str = "dependencies.json"):
        self.git = git
        self.filename = filename

    def _parse(self, repo: str, text: str, where: str) -> dict:
        try:
            manifest = json.loads(text)
        except json.JSONDecodeError as e:
            raise MaintenanceError(
                ErrorKind.INVALID_STATE, f"Invalid JSON in {where}: {e}", repo=repo
            ) from e
        if not isinstance(manifest, dict):
            raise MaintenanceError(ErrorKind.INVALID_STATE, f"{where} is not a JSON object", repo=repo)
        return manifest

    def read(self, repo: str) -> dict:
        path = self.git.path(repo) / self.filename
        try:
            text = path.read_text()
        except OSError as e:
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED, f"Could not read {path}: {e}", repo=repo
            ) from e
        return self._parse(repo, text, str(path))

    def write(self, repo: str, manifest: dict) -> None:
        path = self.git.path(repo) / self.filename
        try:
            path.write_text(json.dumps(manifest, indent=2) + "\n")
        except OSError as e:
            raise MaintenanceError(
                ErrorKind.EXTERNAL_OPERATION_FAILED, f"Could not write {path}: {e}", repo=repo
            ) from e
        logger.debug(f"Wrote {path}")

    def read_at(self, repo: str, ref: str) -> dict:
        """Read the manifest as committed at ref, without checking it out."""
        text = self.git.show_file(repo, ref, self.filename)
        if text is None:
            raise not_found(f"No {self.filename} in {repo} at {ref}", repo=repo, branch=ref)
        return self._parse(repo, text, f"{repo}:{ref}:{self.filename}")
