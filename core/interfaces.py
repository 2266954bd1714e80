# PATH: core/interfaces.py
"""
Collaborator interfaces consumed by the core.

Implementations live in pricing/sources.py, chains/providers.py and
execution/backends.py. Tests supply their own fakes.
"""

from typing import Protocol, runtime_checkable

from core.models import Confirmation, Opportunity


@runtime_checkable
class ClockSource(Protocol):
    def now_ms(self) -> int: ...


class PriceSourceAdapter(Protocol):
    """
    Price source for one or more venues.

    fetch_price returns 0.0 when it has no data; it does not raise.
    """

    is_on_chain: bool

    async def fetch_price(self, network: str, token: str, venue: str) -> float: ...


class FeeOracle(Protocol):
    async def current_fee_rate(self, network: str) -> float:
        """Current network fee rate in gwei."""
        ...


class BalanceProvider(Protocol):
    async def native_balance(self, address: str) -> float: ...

    async def token_balance(self, address: str, token: str) -> float: ...


class LiquidityProbe(Protocol):
    async def has_sufficient_liquidity(
        self,
        network: str,
        venue_a: str,
        venue_b: str,
        token: str,
        amount: float,
    ) -> bool: ...


class ExecutionBackend(Protocol):
    async def submit(self, opportunity: Opportunity) -> str:
        """Submit the arbitrage and return an execution reference."""
        ...

    async def await_confirmation(self, execution_ref: str) -> Confirmation:
        """Suspend until the backend reports a terminal status."""
        ...
