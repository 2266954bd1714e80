# PATH: execution/__init__.py
"""
Execution layer.

This module contains the execution layer components:
- security: Security gate and daily execution counter
- simulator: Pre-trade simulation
- state_machine: Pipeline stage tracking
- coordinator: Single-flight execution pipeline
- history: Bounded execution ledger
- backends: Paper execution backend and collaborators
"""

from execution.backends import (
    PaperBalanceProvider,
    PaperExecutionBackend,
    PaperLiquidityProbe,
    StaticFeeOracle,
)
from execution.coordinator import ExecutionCoordinator, settle_profit
from execution.history import ExecutionHistory
from execution.security import DailyExecutionCounter, GateResult, SecurityGate
from execution.simulator import PreTradeSimulator, SimulationBlocker, SimulationResult
from execution.state_machine import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    PipelineState,
    PipelineStateMachine,
    StateTransition,
)

__all__ = [
    # Backends
    "PaperBalanceProvider",
    "PaperExecutionBackend",
    "PaperLiquidityProbe",
    "StaticFeeOracle",
    # Pipeline
    "ExecutionCoordinator",
    "settle_profit",
    "ExecutionHistory",
    "DailyExecutionCounter",
    "GateResult",
    "SecurityGate",
    "PreTradeSimulator",
    "SimulationBlocker",
    "SimulationResult",
    # State machine
    "VALID_TRANSITIONS",
    "InvalidTransitionError",
    "PipelineState",
    "PipelineStateMachine",
    "StateTransition",
]
