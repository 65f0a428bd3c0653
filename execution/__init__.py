# PATH: execution/__init__.py
"""
Execution layer.

- state_machine: execution lifecycle states and transitions
- flash_executor: flash-loan transaction submission and receipt handling
"""

from execution.state_machine import (
    TradeState,
    TradeStateMachine,
    StateTransition,
    InvalidTransitionError,
    VALID_TRANSITIONS,
)
from execution.flash_executor import (
    FlashLoanExecutor,
    build_receiver_params,
    min_profit_raw,
)

__all__ = [
    "TradeState",
    "TradeStateMachine",
    "StateTransition",
    "InvalidTransitionError",
    "VALID_TRANSITIONS",
    "FlashLoanExecutor",
    "build_receiver_params",
    "min_profit_raw",
]
