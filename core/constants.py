# PATH: core/constants.py
"""
Constants for the arbitrage bot.

Contains enums, defaults, and tuning constants shared by the pricing,
strategy and execution layers.
"""

from enum import Enum
from typing import Final

# =============================================================================
# TIMING (milliseconds)
# =============================================================================

# Price data older than this is flagged stale on read
PRICE_STALENESS_MS: Final[int] = 60_000

# Confidence starts losing points past this sample age
CONFIDENCE_FRESHNESS_MS: Final[int] = 30_000

# Opportunities are usable (queryable, executable) below this age
OPPORTUNITY_MAX_AGE_MS: Final[int] = 60_000

# Opportunities are evicted from the store at this age
OPPORTUNITY_RETENTION_MS: Final[int] = 300_000

# Window used for execution statistics
STATS_WINDOW_MS: Final[int] = 86_400_000

# =============================================================================
# GAS
# =============================================================================

# Gas units for the fixed bundle of on-chain operations of one arbitrage
GAS_UNITS: Final[dict[str, int]] = {
    "approve": 50_000,
    "swap_buy": 150_000,
    "swap_sell": 150_000,
    "transfer": 21_000,
}

# Used when the oracle answers without a usable fee rate
DEFAULT_GAS_PRICE_GWEI: Final[float] = 20.0

# Conservative estimate substituted when the fee oracle fails
FALLBACK_GAS_PRICE_GWEI: Final[float] = 30.0
FALLBACK_GAS_UNITS: Final[int] = 400_000
FALLBACK_GAS_COST: Final[float] = 0.012

GWEI: Final[float] = 1e-9

# =============================================================================
# OPPORTUNITY MODEL
# =============================================================================

# Trade sizing: base * min(profit_ratio * coefficient, cap)
DEFAULT_BASE_AMOUNT: Final[float] = 0.05
DEFAULT_SCALE_COEFFICIENT: Final[float] = 10.0
DEFAULT_SCALE_CAP: Final[float] = 2.0

# Confidence scoring
CONFIDENCE_MAX: Final[float] = 100.0
CONFIDENCE_MAX_AGE_PENALTY: Final[float] = 50.0
CONFIDENCE_TRUSTED_BONUS: Final[float] = 10.0
MIN_CONFIDENCE: Final[float] = 50.0

DEFAULT_TRUSTED_VENUES: Final[tuple[str, ...]] = (
    "uniswap",
    "sushiswap",
    "pancakeswap",
)

# =============================================================================
# EXECUTION
# =============================================================================

# Venue fee applied to each simulated swap leg (0.3%)
VENUE_FEE_RATE: Final[float] = 0.003

# Native balance must cover this multiple of the estimated gas cost
GAS_BALANCE_MULTIPLIER: Final[float] = 2.0

# Realized/estimated profit ratio range of the paper backend
PAPER_EFFICIENCY_RANGE: Final[tuple[float, float]] = (0.90, 0.95)

HISTORY_CAPACITY: Final[int] = 100

DEFAULT_CONFIRMATION_TIMEOUT_SECONDS: Final[float] = 120.0


class OperatingMode(str, Enum):
    """Network operating mode. Only TESTNET is accepted at startup."""
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ErrorCode(str, Enum):
    """Error codes carried by exceptions and failed execution results."""
    # Configuration
    CONFIG_INVALID = "CONFIG_INVALID"

    # Lookups
    NOT_FOUND = "NOT_FOUND"

    # Data sources
    PRICE_SOURCE_FAILED = "PRICE_SOURCE_FAILED"
    GAS_ESTIMATION_FAILED = "GAS_ESTIMATION_FAILED"

    # Infrastructure
    INFRA_RPC_ERROR = "INFRA_RPC_ERROR"
    INFRA_TIMEOUT = "INFRA_TIMEOUT"

    # Execution pipeline
    SECURITY_GATE_FAILED = "SECURITY_GATE_FAILED"
    SIMULATION_FAILED = "SIMULATION_FAILED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    BACKEND_FAILED = "BACKEND_FAILED"
    TRANSACTION_REVERTED = "TRANSACTION_REVERTED"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    BUSY = "BUSY"

    # Other
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ExecutionOutcome(str, Enum):
    """Outcome of one execution attempt."""
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    BUSY = "BUSY"


class SecurityBlocker(str, Enum):
    """
    Canonical security gate failure reasons.

    Values are the human-readable reason strings reported to callers.
    """
    SAFE_MODE_DISABLED = "safe mode disabled"
    DAILY_LIMIT_REACHED = "daily limit reached"
    OPPORTUNITY_TOO_OLD = "opportunity too old"
    PROFIT_BELOW_THRESHOLD = "profit below threshold"
    GAS_PRICE_TOO_HIGH = "gas price too high"
    INSUFFICIENT_LIQUIDITY = "insufficient liquidity"
    CHECK_ERROR = "security check error"
