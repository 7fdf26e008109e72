"""
Workspace configuration for patchrelease.

Loads maintenance.yaml from the workspace directory. Every key is optional;
missing keys fall back to DEFAULTS. Relative paths are resolved against the
directory holding the config file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from patchrelease.lib import validate
from patchrelease.lib.command_templates import DEFAULT_COMMANDS
from patchrelease.lib.constants import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "maintenance.yaml"

DEFAULTS = {
    "repos_root": "..",
    "state_file": ".maintenance.json",
    "main_branch": "main",
    "remote": "origin",
    "manifest_file": "dependencies.json",
    "checkouts_dir": "../release-branches",
    "concurrency": DEFAULT_CONCURRENCY,
    "git_timeout": 60,
    "default_brands": ["phet"],
    "active_repos": [],
    "ignored_repos": [],
    "released_branches_file": None,
    "github_org": None,
}

# Page a deployed version can be checked at, by kind of deploy
DEFAULT_LINKS = {
    "production": "https://phet.colorado.edu/sims/html/{repo}/{version}/{repo}_all.html",
    "staged": "https://phet-dev.colorado.edu/html/{repo}/{version}/phet/{repo}_all_phet.html",
}


@dataclass
class MaintenanceConfig:
    """Workspace configuration from maintenance.yaml"""
    workspace: Path
    repos_root: Path          # Directory holding every repository working copy
    state_file: Path
    main_branch: str
    remote: str
    manifest_file: str        # Per-branch dependency manifest, relative to a repo
    checkouts_dir: Path       # Per-release-branch checkouts for build validation
    concurrency: int
    git_timeout: int
    default_brands: list[str]
    active_repos: list[str]
    ignored_repos: list[str]
    released_branches_file: Optional[Path]
    github_org: Optional[str]
    commands: dict[str, str] = field(default_factory=lambda: DEFAULT_COMMANDS.copy())
    links: dict[str, str] = field(default_factory=lambda: DEFAULT_LINKS.copy())


def _resolve(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def load_config(workspace: Path, config_path: Optional[Path] = None) -> MaintenanceConfig:
    """Load maintenance.yaml (if present) and return MaintenanceConfig.

    Raises:
        validate.ValidationError: If the file is not valid YAML or doesn't match the schema
    """
    workspace = Path(workspace).resolve()
    config_path = config_path or workspace / CONFIG_FILENAME

    data = {}
    if config_path.exists():
        try:
            data = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise validate.ValidationError("config", f"Invalid YAML in {config_path}: {e}") from None
        validate.validate(data, "config")
        base = config_path.parent.resolve()
    else:
        logger.debug(f"No {config_path.name} in {workspace}, using defaults")
        base = workspace

    merged = {**DEFAULTS, **data}
    commands = DEFAULT_COMMANDS.copy()
    commands.update(data.get("commands") or {})
    links = {**DEFAULT_LINKS, **(data.get("links") or {})}

    released = merged["released_branches_file"]
    return MaintenanceConfig(
        workspace=workspace,
        repos_root=_resolve(base, merged["repos_root"]),
        state_file=_resolve(base, merged["state_file"]),
        main_branch=merged["main_branch"],
        remote=merged["remote"],
        manifest_file=merged["manifest_file"],
        checkouts_dir=_resolve(base, merged["checkouts_dir"]),
        concurrency=merged["concurrency"],
        git_timeout=merged["git_timeout"],
        default_brands=list(merged["default_brands"]),
        active_repos=list(merged["active_repos"]),
        ignored_repos=list(merged["ignored_repos"]),
        released_branches_file=_resolve(base, released) if released else None,
        github_org=merged["github_org"],
        commands=commands,
        links=links,
    )
