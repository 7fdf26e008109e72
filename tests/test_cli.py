"""Tests for patchrelease.cli module."""

import json

import pytest

from patchrelease.cli import build_parser, main
from patchrelease.lib.constants import EXIT_INTEGRITY, EXIT_INVALID_STATE, EXIT_OK


@pytest.fixture
def workspace(tmp_path):
    return tmp_path


def run(workspace, *argv):
    return main(["--workspace", str(workspace), *argv])


def saved(workspace):
    return json.loads((workspace / ".maintenance.json").read_text())


class TestParser:
    """Test argument parsing."""

    def test_subcommands_dispatch(self):
        args = build_parser().parse_args(["patch", "add-sha", "joist", "s1"])
        assert args.func.__name__ == "cmd_patch_add_sha"
        assert args.sha == "s1"

    def test_need_filters(self):
        args = build_parser().parse_args(["need", "joist", "--before", "s1", "--repo", "sim-a", "--repo", "sim-b"])
        assert args.before == "s1"
        assert args.repos == ["sim-a", "sim-b"]
        assert args.repo is None

    def test_checkouts_concurrency_falls_back_to_config(self):
        assert build_parser().parse_args(["checkouts"]).concurrency is None
        assert build_parser().parse_args(["checkouts", "-j", "3"]).concurrency == 3

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Test end-to-end runs against a state file."""

    def test_patch_lifecycle(self, workspace, capsys):
        assert run(workspace, "patch", "create", "joist", "https://example.com/joist/issues/1") == EXIT_OK
        assert run(workspace, "patch", "add-sha", "joist", "s1") == EXIT_OK
        assert run(workspace, "patch", "add-sha", "joist", "s2") == EXIT_OK
        assert run(workspace, "patch", "remove-sha", "joist", "s1") == EXIT_OK

        assert saved(workspace)["patches"] == [
            {"repo": "joist", "name": "joist", "message": "https://example.com/joist/issues/1", "shas": ["s2"]},
        ]

        assert run(workspace, "status") == EXIT_OK
        assert "joist" in capsys.readouterr().out

        assert run(workspace, "patch", "remove", "joist") == EXIT_OK
        assert saved(workspace)["patches"] == []

    def test_integrity_violation_exit_code(self, workspace, capsys):
        run(workspace, "patch", "create", "joist", "fix")
        assert run(workspace, "patch", "create", "joist", "fix") == EXIT_INTEGRITY
        assert "ERROR: Patch already exists: joist" in capsys.readouterr().out

    def test_invalid_state_exit_code(self, workspace):
        (workspace / ".maintenance.json").write_text(json.dumps({"patches": [{"repo": "joist"}]}))
        assert run(workspace, "status") == EXIT_INVALID_STATE

    def test_invalid_config_exit_code(self, workspace):
        (workspace / "maintenance.yaml").write_text("concurrency: 0\n")
        assert run(workspace, "status") == EXIT_INVALID_STATE

    def test_reset_needs_confirmation(self, workspace):
        run(workspace, "patch", "create", "joist", "fix")
        assert run(workspace, "reset") == 2
        assert len(saved(workspace)["patches"]) == 1
        assert run(workspace, "reset", "--yes") == EXIT_OK
        assert saved(workspace)["patches"] == []

    def test_need_without_target(self, workspace, capsys):
        run(workspace, "patch", "create", "joist", "fix")
        assert run(workspace, "need", "joist") == 2
        assert "--all" in capsys.readouterr().out

    def test_apply_with_nothing_needed(self, workspace, capsys):
        assert run(workspace, "apply") == EXIT_OK
        assert "Applied 0 patches" in capsys.readouterr().out

    def test_links_with_nothing_deployed(self, workspace, capsys):
        assert run(workspace, "links") == EXIT_OK
        assert "No deployed branches" in capsys.readouterr().out
