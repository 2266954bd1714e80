"""
core - Core utilities and models for the arbitrage bot.

This package contains:
- models.py: Data models (PriceSample, PriceSnapshot, Opportunity, ExecutionRecord)
- constants.py: Enums and tuning constants
- exceptions.py: Typed exceptions with error codes
- interfaces.py: Collaborator protocols (price sources, fee oracle, backend)
- time.py: Clock sources and freshness helpers
- logging.py: Structured JSON logging
"""

from core.constants import (
    ErrorCode,
    ExecutionOutcome,
    OperatingMode,
    SecurityBlocker,
)
from core.exceptions import (
    ArbError,
    BackendError,
    ConfigurationError,
    GasEstimationError,
    InfraError,
    NotFoundError,
    PriceSourceError,
    StageFailure,
)
from core.logging import get_logger, setup_logging
from core.models import (
    Confirmation,
    ExecutionRecord,
    ExecutionResult,
    GasEstimate,
    Opportunity,
    PriceSample,
    PriceSnapshot,
    ProfitBreakdown,
)
from core.time import FakeClock, SystemClock

__all__ = [
    # Constants
    "ErrorCode",
    "ExecutionOutcome",
    "OperatingMode",
    "SecurityBlocker",
    # Exceptions
    "ArbError",
    "BackendError",
    "ConfigurationError",
    "GasEstimationError",
    "InfraError",
    "NotFoundError",
    "PriceSourceError",
    "StageFailure",
    # Models
    "Confirmation",
    "ExecutionRecord",
    "ExecutionResult",
    "GasEstimate",
    "Opportunity",
    "PriceSample",
    "PriceSnapshot",
    "ProfitBreakdown",
    # Time
    "FakeClock",
    "SystemClock",
    # Logging
    "get_logger",
    "setup_logging",
]
