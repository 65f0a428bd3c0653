# PATH: execution/state_machine.py
"""
Flash-loan execution state machine.

EXECUTION STATE CONTRACT:
=========================

States (TradeState):
  PENDING     → opportunity accepted for execution
  SIMULATED   → dry run, nothing sent (terminal)
  REJECTED    → refused before signing: stale or live config missing (terminal)
  SUBMITTING  → signing and broadcasting
  SUBMITTED   → broadcast, waiting for receipt
  CONFIRMED   → receipt status 1 (terminal)
  REVERTED    → receipt status 0, only gas spent (terminal)
  FAILED      → could not submit or confirm (terminal)

Transitions:
  PENDING    → SIMULATED | REJECTED | SUBMITTING
  SUBMITTING → SUBMITTED | FAILED
  SUBMITTED  → CONFIRMED | REVERTED | FAILED
=========================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TradeState(str, Enum):
    """Execution states."""
    PENDING = "PENDING"
    SIMULATED = "SIMULATED"
    REJECTED = "REJECTED"
    SUBMITTING = "SUBMITTING"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"
    FAILED = "FAILED"


VALID_TRANSITIONS: Dict[TradeState, List[TradeState]] = {
    TradeState.PENDING: [TradeState.SIMULATED, TradeState.REJECTED, TradeState.SUBMITTING],
    TradeState.SUBMITTING: [TradeState.SUBMITTED, TradeState.FAILED],
    TradeState.SUBMITTED: [TradeState.CONFIRMED, TradeState.REVERTED, TradeState.FAILED],
    TradeState.SIMULATED: [],
    TradeState.REJECTED: [],
    TradeState.CONFIRMED: [],
    TradeState.REVERTED: [],
    TradeState.FAILED: [],
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: TradeState
    to_state: TradeState
    timestamp: str = ""
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""


@dataclass
class TradeStateMachine:
    """
    Tracks one execution attempt and its transition history.
    """
    trade_id: str
    state: TradeState = TradeState.PENDING
    history: List[StateTransition] = field(default_factory=list)

    def can_transition_to(self, new_state: TradeState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition_to(
        self,
        new_state: TradeState,
        reason: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Move to new_state.

        Raises InvalidTransitionError if the transition is not allowed.
        """
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}"
            )

        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            reason=reason,
            metadata=metadata or {},
        )
        self.history.append(transition)
        self.state = new_state
        return transition

    @property
    def is_terminal(self) -> bool:
        return len(VALID_TRANSITIONS.get(self.state, [])) == 0

    @property
    def is_success(self) -> bool:
        return self.state in (TradeState.CONFIRMED, TradeState.SIMULATED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "state": self.state.value,
            "is_terminal": self.is_terminal,
            "history": [
                {
                    "from_state": t.from_state.value,
                    "to_state": t.to_state.value,
                    "timestamp": t.timestamp,
                    "reason": t.reason,
                }
                for t in self.history
            ],
        }
