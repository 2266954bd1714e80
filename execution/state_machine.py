# PATH: execution/state_machine.py
"""
Execution pipeline state machine.

PIPELINE STATE CONTRACT:
========================

States (PipelineState):
  PENDING        → attempt accepted, nothing checked yet
  SECURITY_CHECK → running the security gate
  SIMULATING     → running the pre-trade simulation
  FUNDING_CHECK  → verifying balances
  SUBMITTING     → handing the opportunity to the backend
  CONFIRMING     → waiting for the backend's terminal status
  SETTLING       → computing realized profit
  SUCCEEDED      → attempt completed
  FAILED         → attempt aborted at some stage

Transitions follow the order above; any non-terminal state may move to
FAILED. SIMULATING is skipped when simulation is disabled.

========================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.interfaces import ClockSource
from core.time import SystemClock


class PipelineState(str, Enum):
    """Execution pipeline states."""
    PENDING = "PENDING"
    SECURITY_CHECK = "SECURITY_CHECK"
    SIMULATING = "SIMULATING"
    FUNDING_CHECK = "FUNDING_CHECK"
    SUBMITTING = "SUBMITTING"
    CONFIRMING = "CONFIRMING"
    SETTLING = "SETTLING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


_FAIL = PipelineState.FAILED

# Valid state transitions
VALID_TRANSITIONS: Dict[PipelineState, List[PipelineState]] = {
    PipelineState.PENDING: [PipelineState.SECURITY_CHECK, _FAIL],
    PipelineState.SECURITY_CHECK: [PipelineState.SIMULATING, PipelineState.FUNDING_CHECK, _FAIL],
    PipelineState.SIMULATING: [PipelineState.FUNDING_CHECK, _FAIL],
    PipelineState.FUNDING_CHECK: [PipelineState.SUBMITTING, _FAIL],
    PipelineState.SUBMITTING: [PipelineState.CONFIRMING, _FAIL],
    PipelineState.CONFIRMING: [PipelineState.SETTLING, _FAIL],
    PipelineState.SETTLING: [PipelineState.SUCCEEDED, _FAIL],
    PipelineState.SUCCEEDED: [],  # Terminal state
    PipelineState.FAILED: [],  # Terminal state
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: PipelineState
    to_state: PipelineState
    timestamp_ms: int
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_state.value,
            "to": self.to_state.value,
            "at_ms": self.timestamp_ms,
            "reason": self.reason,
            "metadata": self.metadata,
        }


class InvalidTransitionError(Exception):
    """Transition not allowed from the current state."""


class PipelineStateMachine:
    """
    Tracks one execution attempt through the pipeline.

    The stage reached when the attempt fails is reported as failed_stage.
    """

    def __init__(self, attempt_id: str, clock: Optional[ClockSource] = None):
        self.attempt_id = attempt_id
        self._clock = clock or SystemClock()
        self.state = PipelineState.PENDING
        self.history: List[StateTransition] = []
        self.failed_stage: Optional[PipelineState] = None

    def can_transition_to(self, new_state: PipelineState) -> bool:
        return new_state in VALID_TRANSITIONS[self.state]

    def transition_to(
        self,
        new_state: PipelineState,
        reason: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Move to new_state.

        Raises InvalidTransitionError if the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"{self.attempt_id}: {self.state.value} -> {new_state.value} not allowed "
                f"(allowed: {[s.value for s in VALID_TRANSITIONS[self.state]]})"
            )

        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            timestamp_ms=self._clock.now_ms(),
            reason=reason,
            metadata=metadata or {},
        )
        self.history.append(transition)
        self.state = new_state
        return transition

    def fail(self, reason: str = "") -> StateTransition:
        """Abort the attempt from the current stage."""
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Cannot fail attempt in terminal state {self.state.value}"
            )
        self.failed_stage = self.state
        return self.transition_to(PipelineState.FAILED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self.state]

    @property
    def is_success(self) -> bool:
        return self.state == PipelineState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "state": self.state.value,
            "is_terminal": self.is_terminal,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "history": [t.to_dict() for t in self.history],
        }
