"""Tests for patchrelease.workflow.fsm module."""

import pytest

from patchrelease.workflow.fsm import (
    PatchAttempt,
    FINAL_STATES,
    STATES,
    TRANSITIONS,
)


class TestFSMStates:
    """Tests for FSM state definitions."""

    def test_all_states_defined(self):
        assert set(STATES) == {"pending", "resolving", "picking", "applied", "unresolved", "failed"}

    def test_final_states_have_no_exits(self):
        sources = set()
        for t in TRANSITIONS:
            sources.update(t["source"] if isinstance(t["source"], list) else [t["source"]])
        assert not sources & FINAL_STATES


class TestPatchAttempt:
    """Basic FSM functionality tests."""

    @pytest.fixture
    def attempt(self):
        return PatchAttempt("sim-a", "1.2", "joist")

    def test_initial_state(self, attempt):
        assert attempt.state == "pending"
        assert not attempt.is_final

    def test_happy_path(self, attempt):
        attempt.resolve()
        attempt.pick()
        attempt.succeed()
        assert attempt.state == "applied"
        assert attempt.is_final
        assert [trigger for _, _, trigger in attempt.history] == ["resolve", "pick", "succeed"]

    def test_exhausted_candidates(self, attempt):
        attempt.resolve()
        attempt.pick()
        attempt.exhaust()
        assert attempt.state == "unresolved"

    def test_fail_while_resolving(self, attempt):
        attempt.resolve()
        attempt.fail()
        assert attempt.state == "failed"

    def test_can_method(self, attempt):
        assert attempt.can("resolve") is True
        assert attempt.can("succeed") is False

    def test_invalid_transition_raises(self, attempt):
        with pytest.raises(Exception):  # transitions raises MachineError
            attempt.succeed()

    def test_on_transition_callback(self):
        recorded = []
        attempt = PatchAttempt("sim-a", "1.2", "joist", on_transition=lambda *args: recorded.append(args))
        attempt.resolve()
        assert recorded == [("pending", "resolving", "resolve")]

    def test_label(self, attempt):
        assert attempt.label == "joist -> sim-a 1.2"
