# PATH: core/models.py
"""
Core data models for the arbitrage bot.

OPPORTUNITY_ID CONTRACT
=======================
  Format: "{network}-{token}-{buy_venue}-{sell_venue}-{created_at_ms}"
  Example: "ethereum-WETH-sushiswap-uniswap-1700000000000"

Deterministic given the same inputs. One detection cycle produces at most
one opportunity per (network, token, venue pair), so ids are unique within
a cycle and across cycles through the creation timestamp.
=======================

SCORE CONTRACT
==============
  score = net_profit_percentage * (confidence / 100)

Ranking sorts by score descending with a stable sort; equal scores keep
insertion order. There is no secondary key.
==============
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.constants import ErrorCode, ExecutionOutcome
from core.time import ms_to_iso


def generate_opportunity_id(
    network: str,
    token: str,
    buy_venue: str,
    sell_venue: str,
    created_at_ms: int,
) -> str:
    """Build the deterministic opportunity id."""
    return f"{network}-{token}-{buy_venue}-{sell_venue}-{created_at_ms}"


def generate_execution_id(opportunity_id: str, started_at_ms: int) -> str:
    """Build the execution record id."""
    return f"exec-{started_at_ms}-{opportunity_id}"


# ============================================================================
# PRICES
# ============================================================================

@dataclass(frozen=True)
class PriceSample:
    """Most recent price seen for one venue."""
    venue: str
    price: float
    timestamp_ms: int
    is_on_chain: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "venue": self.venue,
            "price": self.price,
            "timestamp_ms": self.timestamp_ms,
            "source": "on-chain" if self.is_on_chain else "api",
        }


@dataclass(frozen=True)
class PriceSnapshot:
    """Prices of one token on one network, derived on read."""
    network: str
    token: str
    samples: Dict[str, PriceSample]
    average_price: float
    age_ms: int
    is_stale: bool = False

    @property
    def on_chain_samples(self) -> list[PriceSample]:
        """Samples that qualify for arbitrage detection."""
        return [s for s in self.samples.values() if s.is_on_chain and s.price > 0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "token": self.token,
            "prices": {venue: s.to_dict() for venue, s in self.samples.items()},
            "average_price": self.average_price,
            "age_ms": self.age_ms,
            "is_stale": self.is_stale,
        }


def average_price(samples: Dict[str, PriceSample]) -> float:
    """Arithmetic mean of positive prices; 0 when there are none."""
    valid = [s.price for s in samples.values() if s.price > 0]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)


# ============================================================================
# GAS
# ============================================================================

@dataclass(frozen=True)
class GasEstimate:
    """Absolute cost estimate for the fixed arbitrage operation bundle."""
    gas_price_gwei: float
    total_gas_units: int
    total_gas_cost: float
    breakdown: Dict[str, int] = field(default_factory=dict)
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gas_price_gwei": self.gas_price_gwei,
            "total_gas_units": self.total_gas_units,
            "total_gas_cost": self.total_gas_cost,
            "breakdown": dict(self.breakdown),
            "is_fallback": self.is_fallback,
        }


# ============================================================================
# OPPORTUNITY
# ============================================================================

@dataclass(frozen=True)
class ProfitBreakdown:
    """Profit arithmetic for one candidate trade."""
    gross_profit: float
    gas_cost: float
    slippage_cost: float
    net_profit: float
    net_profit_percentage: float


@dataclass(frozen=True)
class Opportunity:
    """
    Cross-venue arbitrage opportunity. Never mutated after creation.

    Invariant: buy_price < sell_price.
    """
    id: str
    network: str
    token: str
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    spread: float
    optimal_amount: float
    gross_profit: float
    gas_cost: float
    slippage_cost: float
    net_profit: float
    net_profit_percentage: float
    confidence: float
    created_at_ms: int

    def __post_init__(self):
        if not self.buy_price < self.sell_price:
            raise ValueError(
                f"Opportunity requires buy_price < sell_price "
                f"(got {self.buy_price} >= {self.sell_price})"
            )

    @property
    def gross_profit_percentage(self) -> float:
        """Raw spread relative to the buy price, before any cost."""
        return self.spread / self.buy_price * 100

    @property
    def score(self) -> float:
        return self.net_profit_percentage * (self.confidence / 100)

    def age_ms(self, current_ms: int) -> int:
        return max(0, current_ms - self.created_at_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "network": self.network,
            "token": self.token,
            "buy_venue": self.buy_venue,
            "sell_venue": self.sell_venue,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "spread": self.spread,
            "optimal_amount": self.optimal_amount,
            "gross_profit": self.gross_profit,
            "gross_profit_percentage": self.gross_profit_percentage,
            "gas_cost": self.gas_cost,
            "slippage_cost": self.slippage_cost,
            "net_profit": self.net_profit,
            "net_profit_percentage": self.net_profit_percentage,
            "confidence": self.confidence,
            "score": self.score,
            "created_at_ms": self.created_at_ms,
            "created_at": ms_to_iso(self.created_at_ms),
        }


# ============================================================================
# EXECUTION
# ============================================================================

@dataclass(frozen=True)
class Confirmation:
    """Terminal status reported by an execution backend."""
    success: bool
    actual_gas_cost: float = 0.0
    gas_used: Optional[int] = None
    efficiency: float = 1.0
    block_number: Optional[int] = None


@dataclass(frozen=True)
class ExecutionRecord:
    """One execution attempt, success or failure."""
    id: str
    opportunity: Opportunity
    outcome: ExecutionOutcome
    started_at_ms: int
    finished_at_ms: int
    actual_profit: float = 0.0
    tx_ref: Optional[str] = None
    gas_used: Optional[int] = None
    failure_code: Optional[ErrorCode] = None
    reason: Optional[str] = None
    failed_stage: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ExecutionOutcome.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp_ms": self.started_at_ms,
            "duration_ms": self.finished_at_ms - self.started_at_ms,
            "opportunity_id": self.opportunity.id,
            "token": self.opportunity.token,
            "network": self.opportunity.network,
            "net_profit_percentage": self.opportunity.net_profit_percentage,
            "outcome": self.outcome.value,
            "success": self.succeeded,
            "actual_profit": self.actual_profit,
            "tx_ref": self.tx_ref,
            "gas_used": self.gas_used,
            "failure_code": self.failure_code.value if self.failure_code else None,
            "reason": self.reason,
            "failed_stage": self.failed_stage,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """Structured result of execute(). Never raised, always returned."""
    status: ExecutionOutcome
    opportunity_id: str
    reason: Optional[str] = None
    failure_code: Optional[ErrorCode] = None
    actual_profit: Optional[float] = None
    tx_ref: Optional[str] = None
    record_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == ExecutionOutcome.SUCCEEDED

    @property
    def is_busy(self) -> bool:
        return self.status == ExecutionOutcome.BUSY

    @classmethod
    def busy(cls, opportunity_id: str) -> "ExecutionResult":
        return cls(
            status=ExecutionOutcome.BUSY,
            opportunity_id=opportunity_id,
            reason="execution already in progress",
            failure_code=ErrorCode.BUSY,
        )

    @classmethod
    def from_record(cls, record: ExecutionRecord) -> "ExecutionResult":
        return cls(
            status=record.outcome,
            opportunity_id=record.opportunity.id,
            reason=record.reason,
            failure_code=record.failure_code,
            actual_profit=record.actual_profit if record.succeeded else None,
            tx_ref=record.tx_ref,
            record_id=record.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "is_success": self.is_success,
            "opportunity_id": self.opportunity_id,
            "reason": self.reason,
            "failure_code": self.failure_code.value if self.failure_code else None,
            "actual_profit": self.actual_profit,
            "tx_ref": self.tx_ref,
            "record_id": self.record_id,
        }
