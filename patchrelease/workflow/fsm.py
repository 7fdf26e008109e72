"""Patch attempt state machine using transitions library.

Tracks one attempt to apply one patch to one release branch:

    pending -> resolving -> picking -> applied
                                    -> unresolved   (every candidate failed)
    resolving/picking -> failed                      (git or manifest error)

Usage:
    from patchrelease.workflow.fsm import PatchAttempt

    attempt = PatchAttempt("sim-a", "1.2", "crash-fix")
    attempt.resolve()   # checking out the patch repo
    attempt.pick()      # trying candidate commits
    attempt.succeed()   # a candidate applied
"""

import logging
from typing import Callable

from transitions import Machine

logger = logging.getLogger(__name__)


STATES = [
    "pending",
    "resolving",
    "picking",
    "applied",
    "unresolved",
    "failed",
]

TRANSITIONS = [
    {"trigger": "resolve", "source": "pending", "dest": "resolving"},
    {"trigger": "pick", "source": "resolving", "dest": "picking"},

    # Outcomes
    {"trigger": "succeed", "source": "picking", "dest": "applied"},
    {"trigger": "exhaust", "source": "picking", "dest": "unresolved"},
    {"trigger": "fail", "source": ["resolving", "picking"], "dest": "failed"},
]

FINAL_STATES = frozenset({"applied", "unresolved", "failed"})


class PatchAttempt:
    """State machine for applying one patch to one release branch."""

    def __init__(
        self,
        repo: str,
        branch: str,
        patch_name: str,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """
        Args:
            repo, branch: The release branch receiving the patch
            patch_name: The patch being applied
            on_transition: Optional callback(from_state, to_state, trigger)
        """
        self.repo = repo
        self.branch = branch
        self.patch_name = patch_name
        self.on_transition = on_transition
        self.history: list[tuple[str, str, str]] = []

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="pending",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    @property
    def label(self) -> str:
        return f"{self.patch_name} -> {self.repo} {self.branch}"

    @property
    def is_final(self) -> bool:
        return self.state in FINAL_STATES

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.debug(f"[FSM] {self.label}: {from_state} -> {to_state} ({trigger})")
        self.history.append((from_state, to_state, trigger))

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        return trigger in self.machine.get_triggers(self.state)
