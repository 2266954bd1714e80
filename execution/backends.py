"""
execution/backends.py - Paper collaborators for the execution pipeline.

Nothing here touches a chain. The paper backend fabricates transaction
hashes, waits fixed delays and reports a realized-profit efficiency drawn
uniformly from PAPER_EFFICIENCY_RANGE. Gas used is drawn from
[200_000, 300_000) and priced at 20 gwei.
"""

import asyncio
import random

from core.constants import DEFAULT_GAS_PRICE_GWEI, GWEI, PAPER_EFFICIENCY_RANGE
from core.exceptions import BackendError
from core.logging import get_logger
from core.models import Confirmation, Opportunity

logger = get_logger("arb.execution.backends")

PAPER_GAS_USED_RANGE = (200_000, 300_000)
PAPER_BLOCK_BASE = 18_000_000


class PaperExecutionBackend:
    """ExecutionBackend that settles every submission after a delay."""

    def __init__(
        self,
        submission_delay_seconds: float = 2.0,
        confirmation_delay_seconds: float = 3.0,
        efficiency_range: tuple[float, float] = PAPER_EFFICIENCY_RANGE,
        gas_price_gwei: float = DEFAULT_GAS_PRICE_GWEI,
        seed: int | None = None,
    ):
        self.submission_delay_seconds = submission_delay_seconds
        self.confirmation_delay_seconds = confirmation_delay_seconds
        self.efficiency_range = efficiency_range
        self.gas_price_gwei = gas_price_gwei
        self._rng = random.Random(seed)
        self._pending: dict[str, Opportunity] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _tx_hash(self) -> str:
        return "0x" + "".join(self._rng.choice("0123456789abcdef") for _ in range(64))

    async def submit(self, opportunity: Opportunity) -> str:
        await asyncio.sleep(self.submission_delay_seconds)
        tx_hash = self._tx_hash()
        self._pending[tx_hash] = opportunity
        logger.info(
            f"Paper transaction submitted: {tx_hash}",
            extra={"context": {"opportunity_id": opportunity.id, "tx_ref": tx_hash}},
        )
        return tx_hash

    async def await_confirmation(self, execution_ref: str) -> Confirmation:
        if execution_ref not in self._pending:
            raise BackendError(
                f"Unknown execution reference: {execution_ref}",
                details={"tx_ref": execution_ref},
            )
        try:
            await asyncio.sleep(self.confirmation_delay_seconds)
        finally:
            del self._pending[execution_ref]

        gas_used = self._rng.randrange(*PAPER_GAS_USED_RANGE)
        low, high = self.efficiency_range
        confirmation = Confirmation(
            success=True,
            actual_gas_cost=gas_used * self.gas_price_gwei * GWEI,
            gas_used=gas_used,
            efficiency=self._rng.uniform(low, high),
            block_number=PAPER_BLOCK_BASE + self._rng.randrange(1_000_000),
        )
        logger.info(
            f"Paper transaction confirmed: {execution_ref}",
            extra={"context": {
                "tx_ref": execution_ref,
                "block_number": confirmation.block_number,
                "gas_used": gas_used,
            }},
        )
        return confirmation


class PaperLiquidityProbe:
    """LiquidityProbe that passes with a fixed probability."""

    def __init__(self, pass_rate: float = 0.9, seed: int | None = None):
        if not 0.0 <= pass_rate <= 1.0:
            raise ValueError(f"pass_rate must be within [0, 1], got {pass_rate}")
        self.pass_rate = pass_rate
        self._rng = random.Random(seed)

    async def has_sufficient_liquidity(
        self,
        network: str,
        venue_a: str,
        venue_b: str,
        token: str,
        amount: float,
    ) -> bool:
        sufficient = self._rng.random() < self.pass_rate
        logger.debug(
            f"Liquidity {'ok' if sufficient else 'insufficient'} for {token} {venue_a}/{venue_b}",
            extra={"context": {"network": network, "token": token, "amount": amount}},
        )
        return sufficient


class PaperBalanceProvider:
    """BalanceProvider with fixed balances."""

    def __init__(
        self,
        native: float = 1.0,
        tokens: dict[str, float] | None = None,
        default_token_balance: float = 0.0,
    ):
        self.native = native
        self.tokens = dict(tokens or {})
        self.default_token_balance = default_token_balance

    async def native_balance(self, address: str) -> float:
        return self.native

    async def token_balance(self, address: str, token: str) -> float:
        return self.tokens.get(token, self.default_token_balance)


class StaticFeeOracle:
    """FeeOracle returning a configured rate per network."""

    def __init__(self, rates: dict[str, float] | None = None, default_gwei: float = DEFAULT_GAS_PRICE_GWEI):
        self.rates = dict(rates or {})
        self.default_gwei = default_gwei

    async def current_fee_rate(self, network: str) -> float:
        return self.rates.get(network, self.default_gwei)
