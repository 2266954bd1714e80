"""
chains/providers.py - JSON-RPC access with failover.

Provides:
- RPCProvider: multiple endpoint failover, timeouts, latency tracking
- RPCFeeOracle: live fee rate (eth_gasPrice) per network, in gwei
- RPCBalanceProvider: native balance and ERC-20 balanceOf for a wallet
- ProviderRegistry: provider lifecycle per network
"""

from dataclasses import dataclass
from typing import Any

import httpx

from core.exceptions import ErrorCode, InfraError
from core.interfaces import FeeOracle
from core.logging import get_logger
from core.time import now_ms

logger = get_logger("arb.chains.providers")

WEI_PER_GWEI = 10**9

# ERC-20 function selectors
BALANCE_OF_SELECTOR = "0x70a08231"
DECIMALS_SELECTOR = "0x313ce567"


@dataclass
class EndpointStats:
    """Request counters for one RPC endpoint."""
    url: str
    requests: int = 0
    successes: int = 0
    failures: int = 0
    latency_ms_total: int = 0
    last_error: str | None = None
    last_success_ms: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        return self.latency_ms_total // self.successes if self.successes else 0

    @property
    def success_rate(self) -> float:
        return self.successes / self.requests if self.requests else 0.0

    def record_success(self, latency_ms: int) -> None:
        self.successes += 1
        self.latency_ms_total += latency_ms
        self.last_success_ms = now_ms()

    def record_failure(self, error: str) -> None:
        self.failures += 1
        self.last_error = error


@dataclass
class RPCResponse:
    """Result of a successful JSON-RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


class _EndpointError(Exception):
    """One endpoint failed; the next one is tried."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class RPCProvider:
    """
    JSON-RPC client for one network.

    Endpoints are tried in configured order; the first successful answer
    wins. Per-endpoint counters are kept in `stats`.
    """

    def __init__(
        self,
        network: str,
        chain_id: int,
        rpc_urls: list[str],
        timeout_seconds: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.network = network
        self.chain_id = chain_id
        self.rpc_urls = [u for u in rpc_urls if u]
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._next_id = 0
        self.stats: dict[str, EndpointStats] = {url: EndpointStats(url) for url in self.rpc_urls}

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call_endpoint(self, url: str, method: str, params: list) -> RPCResponse:
        self._next_id += 1
        body = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        started = now_ms()
        try:
            resp = await self._http().post(url, json=body)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.TimeoutException as e:
            raise _EndpointError(f"timeout after {now_ms() - started}ms", timed_out=True) from e
        except (httpx.HTTPError, ValueError) as e:
            raise _EndpointError(str(e)) from e

        if "error" in payload:
            error = payload["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise _EndpointError(message)

        return RPCResponse(
            result=payload.get("result"),
            latency_ms=now_ms() - started,
            endpoint_used=url,
        )

    async def call(self, method: str, params: list | None = None) -> RPCResponse:
        """
        Call `method` on the first endpoint that answers.

        Raises:
            InfraError: no endpoint configured, or every endpoint failed
                (INFRA_TIMEOUT when the only endpoint timed out)
        """
        if not self.rpc_urls:
            raise InfraError(
                code=ErrorCode.INFRA_RPC_ERROR,
                message=f"No RPC endpoints configured for {self.network}",
                details={"network": self.network, "chain_id": self.chain_id},
            )

        failures: list[_EndpointError] = []
        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.requests += 1
            try:
                response = await self._call_endpoint(url, method, params or [])
            except _EndpointError as e:
                stats.record_failure(str(e))
                failures.append(e)
                logger.debug(
                    f"RPC {method} failed on {url}: {e}",
                    extra={"context": {"network": self.network, "url": url, "method": method}},
                )
                continue
            stats.record_success(response.latency_ms)
            return response

        only_timeout = len(failures) == 1 and failures[0].timed_out
        raise InfraError(
            code=ErrorCode.INFRA_TIMEOUT if only_timeout else ErrorCode.INFRA_RPC_ERROR,
            message=f"All RPC endpoints failed for {self.network}",
            details={
                "network": self.network,
                "chain_id": self.chain_id,
                "method": method,
                "endpoints_tried": len(failures),
                "last_error": str(failures[-1]),
            },
        )

    async def eth_call(self, to: str, data: str, block: str = "latest") -> RPCResponse:
        return await self.call("eth_call", [{"to": to, "data": data}, block])

    async def get_gas_price(self) -> tuple[int, int]:
        """Current gas price as (wei, latency_ms)."""
        response = await self.call("eth_gasPrice")
        return int(response.result, 16), response.latency_ms

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Native balance in wei."""
        response = await self.call("eth_getBalance", [address, block])
        return int(response.result, 16)

    def get_stats_summary(self) -> dict:
        return {
            url: {
                "requests": s.requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }


class ProviderRegistry:
    """
    Registry of RPC providers by network.

    Manages provider lifecycle and provides access by network key.
    """

    def __init__(self):
        self._providers: dict[str, RPCProvider] = {}

    def register(
        self,
        network: str,
        chain_id: int,
        rpc_urls: list[str],
        timeout_seconds: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RPCProvider:
        """Register a provider for a network."""
        provider = RPCProvider(network, chain_id, rpc_urls, timeout_seconds, transport)
        self._providers[network] = provider
        return provider

    def get(self, network: str) -> RPCProvider | None:
        return self._providers.get(network)

    def __contains__(self, network: str) -> bool:
        return network in self._providers

    async def close_all(self) -> None:
        """Close all providers."""
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()

    @property
    def networks(self) -> list[str]:
        return list(self._providers.keys())


# =============================================================================
# COLLABORATORS
# =============================================================================

class RPCFeeOracle:
    """
    FeeOracle backed by eth_gasPrice.

    Networks without a registered provider are answered by `fallback`
    when one is given.
    """

    def __init__(self, registry: ProviderRegistry, fallback: FeeOracle | None = None):
        self.registry = registry
        self.fallback = fallback

    async def current_fee_rate(self, network: str) -> float:
        provider = self.registry.get(network)
        if provider is None:
            if self.fallback is not None:
                return await self.fallback.current_fee_rate(network)
            raise InfraError(
                code=ErrorCode.INFRA_RPC_ERROR,
                message=f"No RPC provider for {network}",
                details={"network": network},
            )
        gas_price_wei, _ = await provider.get_gas_price()
        return gas_price_wei / WEI_PER_GWEI


def _pad_address(address: str) -> str:
    return address.lower().removeprefix("0x").rjust(64, "0")


class RPCBalanceProvider:
    """
    BalanceProvider reading the wallet's balances on one network.

    Token symbols are resolved through token_addresses; unknown symbols
    report a zero balance.
    """

    def __init__(self, provider: RPCProvider, token_addresses: dict[str, str] | None = None):
        self.provider = provider
        self.token_addresses = dict(token_addresses or {})
        self._decimals: dict[str, int] = {}

    async def native_balance(self, address: str) -> float:
        return await self.provider.get_balance(address) / 10**18

    async def _token_decimals(self, token_address: str) -> int:
        if token_address not in self._decimals:
            response = await self.provider.eth_call(token_address, DECIMALS_SELECTOR)
            self._decimals[token_address] = int(response.result, 16)
        return self._decimals[token_address]

    async def token_balance(self, address: str, token: str) -> float:
        token_address = self.token_addresses.get(token)
        if not token_address:
            logger.debug(
                f"No address known for {token} on {self.provider.network}",
                extra={"context": {"token": token, "network": self.provider.network}},
            )
            return 0.0

        response = await self.provider.eth_call(
            token_address,
            BALANCE_OF_SELECTOR + _pad_address(address),
        )
        raw = int(response.result, 16)
        decimals = await self._token_decimals(token_address)
        return raw / 10**decimals
