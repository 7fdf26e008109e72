"""
Build and deploy command templates.

The actual build pipeline and deploy endpoints live outside this tool; the
workspace config maps each step to a shell command template. Templates
support variable substitution using {variable_name} syntax:

- {repo}:     repository name
- {branch}:   release branch name
- {brands}:   comma-separated brand list
- {message}:  release-note text (deploys)
- {path}:     release-branch checkout directory (checks)
- {include_unpublished}, {rerelease}: "true"/"false" (deploys)

Templates are split with shlex BEFORE substitution, so values containing
spaces or quotes stay one argument.
"""

import re
import shlex
from dataclasses import dataclass

from patchrelease.errors import ErrorKind, MaintenanceError


DEFAULT_COMMANDS = {
    "install": "npm update",
    # Dependencies of a branch get installed before build/transpile

    "build": "grunt --brands={brands}",
    # Extra build options are appended as --key=value

    "transpile": "grunt output-js-project",

    "deploy_staged": "grunt rc --repo={repo} --branch={branch} --brands={brands} --message={message}",
    # Must print the deployed version on its last output line

    "deploy_production": "grunt production --repo={repo} --branch={branch} --brands={brands} --message={message}",

    "check_unbuilt": "",
    "check_built": "",
    # Empty template means the check is not configured
}

PLACEHOLDER = re.compile(r'\{(\w+)\}')


@dataclass
class RenderedCommand:
    """A command ready for subprocess."""
    step: str
    cmd: list[str]

    def __str__(self) -> str:
        return shlex.join(self.cmd)


def is_configured(commands: dict[str, str], step: str) -> bool:
    return bool(commands.get(step, "").strip())


def render_command(
    commands: dict[str, str],
    step: str,
    context: dict[str, str] | None = None,
    extra_args: list[str] | None = None,
) -> RenderedCommand:
    """Build the argument list for a step with variable substitution.

    Raises:
        MaintenanceError: INVALID_STATE if the step is unknown, not configured,
            or a placeholder has no value in context.
    """
    if step not in commands:
        raise MaintenanceError(ErrorKind.INVALID_STATE, f"Unknown step: {step}")
    template = commands[step]
    if not template.strip():
        raise MaintenanceError(ErrorKind.INVALID_STATE, f"No command configured for step '{step}'")

    context = context or {}
    cmd = []
    for part in shlex.split(template):
        missing = [name for name in PLACEHOLDER.findall(part) if name not in context]
        if missing:
            raise MaintenanceError(
                ErrorKind.INVALID_STATE, f"Step '{step}' needs {missing} but they were not provided"
            )
        cmd.append(PLACEHOLDER.sub(lambda m: str(context[m.group(1)]), part))

    return RenderedCommand(step=step, cmd=cmd + list(extra_args or []))


def options_to_args(options: dict | None) -> list[str]:
    """Turn {"lint": False, "locales": "*"} into ["--lint=false", "--locales=*"]."""
    args = []
    for key, value in (options or {}).items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        args.append(f"--{key}={value}")
    return args
