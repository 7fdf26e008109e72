"""Tests for patchrelease.workflow.deploy module."""

from unittest.mock import patch

import pytest

from patchrelease.errors import ErrorKind, MaintenanceError
from patchrelease.lib.config import DEFAULT_LINKS
from patchrelease.models import MaintenanceState, ModifiedBranch, Patch, ReleaseBranch, Version
from patchrelease.workflow import deploy


@pytest.fixture
def pushed(ctx):
    """Tracked branches in various stages of the release cycle."""
    blocker = Patch("sun", "sun", "https://example.com/sun/issues/9", ["u1"])
    ctx.store.save(MaintenanceState(
        patches=[blocker],
        modified_branches=[
            ModifiedBranch(ReleaseBranch("sim-a", "1.1", ["phet"], True),
                           needed_patches=[blocker], pushed_messages=["issue/0"]),
            ModifiedBranch(ReleaseBranch("sim-a", "1.2", ["phet", "phet-io"], True),
                           pushed_messages=["issue/1", "issue/3"]),
            ModifiedBranch(ReleaseBranch("sim-b", "2.0", ["phet"], True),
                           pushed_messages=["issue/1"]),
            ModifiedBranch(ReleaseBranch("sim-b", "2.1", ["phet"], False),
                           pushed_messages=["issue/2"]),
        ],
    ))
    return ctx


def tracked(ctx, repo, branch):
    return ctx.store.load().find_modified_branch(repo, branch)


class TestReleaseCandidates:
    """Test staged deploys."""

    def test_deploys_ready_released_branches(self, pushed):
        ctx = pushed
        assert deploy.deploy_release_candidates(ctx) == 2

        staged = [call for call in ctx.tools.calls if call[0] == "deploy_staged"]
        assert staged == [
            ("deploy_staged", "sim-a", "1.2", ("phet", "phet-io"), "issue/1, issue/3"),
            ("deploy_staged", "sim-b", "2.0", ("phet",), "issue/1"),
        ]
        assert str(tracked(ctx, "sim-a", "1.2").deployed_version) == "1.2.1-rc.1"
        # Blocked and unpublished branches are untouched
        assert tracked(ctx, "sim-a", "1.1").deployed_version is None
        assert tracked(ctx, "sim-b", "2.1").deployed_version is None

    def test_saves_after_each_deploy(self, pushed):
        ctx = pushed
        saves = ctx.store.save_count
        deploy.deploy_release_candidates(ctx)
        assert ctx.store.save_count == saves + 2

    def test_failure_keeps_earlier_deploys(self, pushed):
        ctx = pushed
        ctx.tools.fail_deploys = {"sim-b"}

        with pytest.raises(MaintenanceError) as exc_info:
            deploy.deploy_release_candidates(ctx)

        assert exc_info.value.kind == ErrorKind.EXTERNAL_OPERATION_FAILED
        assert exc_info.value.repo == "sim-b"
        assert tracked(ctx, "sim-a", "1.2").deployed_version.is_release_candidate
        assert tracked(ctx, "sim-b", "2.0").deployed_version is None

    def test_predicate(self, pushed):
        ctx = pushed
        assert deploy.deploy_release_candidates(ctx, lambda mb: mb.repo == "sim-b") == 1

    def test_rc_not_redeployed(self, pushed):
        ctx = pushed
        deploy.deploy_release_candidates(ctx)
        assert deploy.deploy_release_candidates(ctx) == 0


class TestProduction:
    """Test production deploys."""

    def test_only_release_candidates_go_to_production(self, pushed):
        ctx = pushed
        assert deploy.deploy_production(ctx) == 0

        deploy.deploy_release_candidates(ctx, lambda mb: mb.repo == "sim-a")
        assert deploy.deploy_production(ctx) == 1

        mb = tracked(ctx, "sim-a", "1.2")
        assert str(mb.deployed_version) == "1.2.1"
        assert mb.pushed_messages == []
        production = [call for call in ctx.tools.calls if call[0] == "deploy_production"]
        assert production == [("deploy_production", "sim-a", "1.2", ("phet", "phet-io"), "issue/1, issue/3")]

    def test_failure_keeps_rc(self, pushed):
        ctx = pushed
        deploy.deploy_release_candidates(ctx)
        ctx.tools.fail_deploys = {"sim-a"}
        with pytest.raises(MaintenanceError):
            deploy.deploy_production(ctx)
        mb = tracked(ctx, "sim-a", "1.2")
        assert mb.deployed_version.is_release_candidate
        assert mb.pushed_messages == ["issue/1", "issue/3"]


class TestRedeployAll:
    """Test redeploying every released branch."""

    def test_deploys_rc_then_production(self, pushed):
        ctx = pushed
        before = ctx.store.load().modified_branches

        assert deploy.redeploy_all_production(ctx, "Rebuild for new server") == 3

        kinds = [(call[0], call[1], call[2]) for call in ctx.tools.calls]
        assert kinds == [
            ("deploy_staged", "sim-a", "1.1"), ("deploy_production", "sim-a", "1.1"),
            ("deploy_staged", "sim-a", "1.2"), ("deploy_production", "sim-a", "1.2"),
            ("deploy_staged", "sim-b", "2.0"), ("deploy_production", "sim-b", "2.0"),
        ]
        assert all(call[4] == "Rebuild for new server" for call in ctx.tools.calls)
        assert ctx.store.load().modified_branches == before

    def test_predicate(self, pushed):
        ctx = pushed
        assert deploy.redeploy_all_production(ctx, "msg", lambda rb: rb.branch == "2.0") == 1

    def test_failure(self, pushed):
        ctx = pushed
        ctx.tools.fail_deploys = {"sim-a"}
        with pytest.raises(MaintenanceError) as exc_info:
            deploy.redeploy_all_production(ctx, "msg")
        assert "Failure redeploying sim-a 1.1" in str(exc_info.value)


class TestUnreleasedIssues:
    """Test QA issues for unpublished branches."""

    def test_requires_org(self, pushed):
        with pytest.raises(MaintenanceError) as exc_info:
            deploy.create_unreleased_issues(pushed)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @patch("patchrelease.workflow.deploy.github.check_gh_cli")
    def test_requires_gh(self, mock_check, pushed):
        pushed.github_org = "phetsims"
        mock_check.return_value = False
        with pytest.raises(MaintenanceError) as exc_info:
            deploy.create_unreleased_issues(pushed)
        assert exc_info.value.kind == ErrorKind.EXTERNAL_OPERATION_FAILED

    @patch("patchrelease.workflow.deploy.github.create_issue")
    @patch("patchrelease.workflow.deploy.github.check_gh_cli")
    def test_opens_issue_per_unpublished_branch(self, mock_check, mock_create, pushed):
        pushed.github_org = "phetsims"
        mock_check.return_value = True
        mock_create.return_value = "https://github.com/phetsims/sim-b/issues/12"

        urls = deploy.create_unreleased_issues(pushed, notes="Please check the keyboard help.")

        assert urls == ["https://github.com/phetsims/sim-b/issues/12"]
        full_repo, title, body = mock_create.call_args[0]
        assert full_repo == "phetsims/sim-b"
        assert title == "Maintenance patches applied to branch 2.1"
        assert "- issue/2" in body
        assert body.endswith("Please check the keyboard help.")
        assert mock_create.call_args[1]["labels"] == ["status:ready-for-qa"]


class TestLinks:
    """Test deployed version links."""

    def test_links_by_kind(self, pushed):
        ctx = pushed
        ctx.links = dict(DEFAULT_LINKS)
        deploy.deploy_release_candidates(ctx)
        state = ctx.store.load()
        state.find_modified_branch("sim-b", "2.0").deployed_version = Version(2, 0, 1)
        ctx.store.save(state)

        links = deploy.list_links(ctx)

        assert links.release_candidates == [
            "**sim-a 1.2** (issue/1, issue/3)",
            "- [ ] [sim-a 1.2.1-rc.1](https://phet-dev.colorado.edu/html/sim-a/1.2.1-rc.1/phet/sim-a_all_phet.html)",
        ]
        assert links.production == [
            "**sim-b 2.0** (issue/1)",
            "- [ ] [sim-b 2.0.1](https://phet.colorado.edu/sims/html/sim-b/2.0.1/sim-b_all.html)",
        ]

    def test_plain_lines_without_templates(self, pushed):
        ctx = pushed
        deploy.deploy_release_candidates(ctx, lambda mb: mb.repo == "sim-b")
        assert deploy.list_links(ctx).release_candidates == ["**sim-b 2.0** (issue/1)", "- [ ] sim-b 2.0.1-rc.1"]
