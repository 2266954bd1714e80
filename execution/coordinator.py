# PATH: execution/coordinator.py
"""
Single-flight execution of arbitrage opportunities.

EXECUTION CONTRACT:
===================

  execute(opportunity) -> ExecutionResult   (never raises)

  Busy       → BUSY result, no record, no side effects
  Otherwise  → exactly one ExecutionRecord appended to history

Stages (first failure aborts):
  1. security gate          → SECURITY_GATE_FAILED
  2. simulation (optional)  → SIMULATION_FAILED
  3. funding                → INSUFFICIENT_FUNDS
  4. submission             → BACKEND_FAILED
  5. confirmation           → TIMEOUT | CANCELLED | TRANSACTION_REVERTED | BACKEND_FAILED
  6. settlement             → actual = net_profit * efficiency - actual_gas_cost
                              (floored at 0 when floor_realized_profit is set)
  7. daily counter incremented (successes only)

The busy flag is set before the first await, so under a single event loop
no second attempt can start while one is in flight.

cancel() stops the in-flight attempt cooperatively: before submission it is
never submitted, while confirming the wait is abandoned. Either way the
attempt is recorded as CANCELLED and execute() returns normally. If the task
running execute() is itself cancelled, the attempt is still recorded before
CancelledError propagates.

===================
"""

import asyncio
from typing import Mapping

from core.constants import GAS_BALANCE_MULTIPLIER, STATS_WINDOW_MS, ErrorCode, ExecutionOutcome
from core.exceptions import ArbError, StageFailure
from core.interfaces import BalanceProvider, ClockSource, ExecutionBackend
from core.logging import get_logger, log_execution
from core.models import (
    Confirmation,
    ExecutionRecord,
    ExecutionResult,
    Opportunity,
    generate_execution_id,
)
from core.time import SystemClock
from execution.history import ExecutionHistory
from execution.security import DailyExecutionCounter, SecurityGate
from execution.simulator import PreTradeSimulator
from execution.state_machine import PipelineState, PipelineStateMachine
from strategy.config import ArbitrageConfig, SecurityConfig
from strategy.store import OpportunityStore

logger = get_logger("arb.execution.coordinator")


def settle_profit(
    net_profit: float,
    confirmation: Confirmation,
    floor_at_zero: bool = True,
) -> float:
    """Realized profit from the estimate and the backend's confirmation."""
    actual = net_profit * confirmation.efficiency - confirmation.actual_gas_cost
    if floor_at_zero:
        return max(0.0, actual)
    return actual


class ExecutionCoordinator:
    """Runs the execution pipeline for one opportunity at a time."""

    def __init__(
        self,
        security_gate: SecurityGate,
        backend: ExecutionBackend,
        balance_provider: BalanceProvider,
        arbitrage: ArbitrageConfig,
        security: SecurityConfig,
        simulator: PreTradeSimulator | None = None,
        history: ExecutionHistory | None = None,
        counter: DailyExecutionCounter | None = None,
        clock: ClockSource | None = None,
        network_balances: Mapping[str, BalanceProvider] | None = None,
    ):
        """
        Args:
            balance_provider: Balances for networks without their own provider
            network_balances: network -> provider for the wallet on that network
        """
        self._clock = clock or SystemClock()
        self.security_gate = security_gate
        self.backend = backend
        self.balances = balance_provider
        self.network_balances = dict(network_balances or {})
        self.arbitrage = arbitrage
        self.security = security
        self.simulator = simulator or PreTradeSimulator(arbitrage.slippage_tolerance)
        self.history = history or ExecutionHistory()
        self.counter = counter or security_gate.counter
        self._busy = False
        self._in_flight: Opportunity | None = None
        self._cancel_requested = asyncio.Event()

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def in_flight_id(self) -> str | None:
        return self._in_flight.id if self._in_flight else None

    def cancel(self) -> bool:
        """Ask the in-flight attempt to stop. Returns False when idle."""
        if not self._busy:
            return False
        logger.warning(
            f"Cancellation requested for {self.in_flight_id}",
            extra={"context": {"opportunity_id": self.in_flight_id}},
        )
        self._cancel_requested.set()
        return True

    def balances_for(self, network: str) -> BalanceProvider:
        return self.network_balances.get(network, self.balances)

    # =========================================================================
    # STAGES
    # =========================================================================

    async def _check_security(self, opportunity: Opportunity) -> None:
        result = await self.security_gate.check(opportunity)
        if not result.passed:
            raise StageFailure(
                result.reason,
                ErrorCode.SECURITY_GATE_FAILED,
                details={"blocker": result.blocker.name, **(result.details or {})},
            )

    def _simulate(self, opportunity: Opportunity) -> None:
        result = self.simulator.simulate(opportunity)
        if not result.passed:
            raise StageFailure(
                result.error or "simulation failed",
                ErrorCode.SIMULATION_FAILED,
                details={"blockers": result.blockers},
            )
        logger.info(
            f"Simulation passed: simulated profit {result.simulated_profit:.6f}",
            extra={"context": {
                "opportunity_id": opportunity.id,
                "simulated_profit": result.simulated_profit,
                "gas_estimate": result.gas_estimate,
            }},
        )

    async def _check_funding(self, opportunity: Opportunity) -> None:
        wallet = self.security.wallet_address
        balances = self.balances_for(opportunity.network)
        native = await balances.native_balance(wallet)
        required = opportunity.gas_cost * GAS_BALANCE_MULTIPLIER
        if native < required:
            raise StageFailure(
                f"insufficient native balance for gas: {native} < {required}",
                ErrorCode.INSUFFICIENT_FUNDS,
                details={"network": opportunity.network, "native_balance": native, "required": required},
            )

        token_balance = await balances.token_balance(wallet, opportunity.token)
        logger.debug(
            f"{opportunity.token} balance: {token_balance}",
            extra={"context": {"token": opportunity.token, "balance": token_balance}},
        )

    async def _submit(self, opportunity: Opportunity) -> str:
        try:
            return await self.backend.submit(opportunity)
        except ArbError as e:
            raise StageFailure(f"submission failed: {e.message}", e.code, details=e.details) from e
        except Exception as e:
            raise StageFailure(f"submission failed: {e}", ErrorCode.BACKEND_FAILED) from e

    def _check_cancelled(self) -> None:
        if self._cancel_requested.is_set():
            raise StageFailure("execution cancelled", ErrorCode.CANCELLED)

    async def _await_confirmation(self, tx_ref: str, timeout: float) -> Confirmation:
        """Confirmation, or TimeoutError at the deadline, or CANCELLED on cancel()."""
        confirming = asyncio.ensure_future(self.backend.await_confirmation(tx_ref))
        cancelled = asyncio.ensure_future(self._cancel_requested.wait())
        try:
            done, _ = await asyncio.wait(
                {confirming, cancelled},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (confirming, cancelled):
                if not task.done():
                    task.cancel()

        if confirming in done:
            return confirming.result()
        if cancelled in done:
            raise StageFailure(
                "execution cancelled while awaiting confirmation",
                ErrorCode.CANCELLED,
                details={"tx_ref": tx_ref},
            )
        raise asyncio.TimeoutError

    async def _confirm(self, tx_ref: str) -> Confirmation:
        timeout = self.security.confirmation_timeout_seconds
        try:
            confirmation = await self._await_confirmation(tx_ref, timeout)
        except StageFailure:
            raise
        except asyncio.TimeoutError as e:
            raise StageFailure(
                f"confirmation timed out after {timeout:g}s",
                ErrorCode.TIMEOUT,
                details={"tx_ref": tx_ref, "timeout_seconds": timeout},
            ) from e
        except ArbError as e:
            raise StageFailure(f"confirmation failed: {e.message}", e.code, details=e.details) from e
        except Exception as e:
            raise StageFailure(f"confirmation failed: {e}", ErrorCode.BACKEND_FAILED) from e

        if not confirmation.success:
            raise StageFailure(
                "transaction reverted",
                ErrorCode.TRANSACTION_REVERTED,
                details={"tx_ref": tx_ref, "gas_used": confirmation.gas_used},
            )
        return confirmation

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def _run_pipeline(self, opportunity: Opportunity, started_at: int) -> ExecutionRecord:
        record_id = generate_execution_id(opportunity.id, started_at)
        machine = PipelineStateMachine(record_id, self._clock)
        tx_ref = None

        def failed(code: ErrorCode, reason: str) -> ExecutionRecord:
            machine.fail(reason)
            return ExecutionRecord(
                id=record_id,
                opportunity=opportunity,
                outcome=ExecutionOutcome.FAILED,
                started_at_ms=started_at,
                finished_at_ms=self._clock.now_ms(),
                tx_ref=tx_ref,
                failure_code=code,
                reason=reason,
                failed_stage=machine.failed_stage.value,
            )

        try:
            machine.transition_to(PipelineState.SECURITY_CHECK)
            await self._check_security(opportunity)

            if self.security.enable_simulation:
                machine.transition_to(PipelineState.SIMULATING)
                self._simulate(opportunity)

            machine.transition_to(PipelineState.FUNDING_CHECK)
            await self._check_funding(opportunity)

            self._check_cancelled()
            machine.transition_to(PipelineState.SUBMITTING)
            tx_ref = await self._submit(opportunity)

            machine.transition_to(PipelineState.CONFIRMING, metadata={"tx_ref": tx_ref})
            confirmation = await self._confirm(tx_ref)

            machine.transition_to(PipelineState.SETTLING)
            actual_profit = settle_profit(
                opportunity.net_profit,
                confirmation,
                self.security.floor_realized_profit,
            )
            self.counter.increment()
            machine.transition_to(PipelineState.SUCCEEDED)

        except asyncio.CancelledError:
            self._finish(failed(ErrorCode.CANCELLED, "execution task cancelled"))
            raise
        except StageFailure as e:
            return failed(e.code, e.message)
        except ArbError as e:
            return failed(e.code, e.message)
        except Exception as e:
            logger.error(
                f"Unexpected error executing {opportunity.id}: {e}",
                exc_info=True,
                extra={"context": {"opportunity_id": opportunity.id, "stage": machine.state.value}},
            )
            return failed(ErrorCode.INTERNAL_ERROR, f"internal error: {e}")

        return ExecutionRecord(
            id=record_id,
            opportunity=opportunity,
            outcome=ExecutionOutcome.SUCCEEDED,
            started_at_ms=started_at,
            finished_at_ms=self._clock.now_ms(),
            actual_profit=actual_profit,
            tx_ref=tx_ref,
            gas_used=confirmation.gas_used,
        )

    async def execute(self, opportunity: Opportunity) -> ExecutionResult:
        """
        Execute one opportunity.

        Returns BUSY immediately when another attempt is in flight.
        """
        if self._busy:
            logger.warning(
                f"Execution already in progress, skipping {opportunity.id}",
                extra={"context": {"opportunity_id": opportunity.id, "in_flight": self.in_flight_id}},
            )
            return ExecutionResult.busy(opportunity.id)

        self._busy = True
        self._in_flight = opportunity
        self._cancel_requested.clear()
        try:
            logger.info(
                f"Executing {opportunity.id}: {opportunity.optimal_amount} {opportunity.token} "
                f"{opportunity.buy_venue} -> {opportunity.sell_venue}",
                extra={"context": {"opportunity_id": opportunity.id, "network": opportunity.network}},
            )
            record = await self._run_pipeline(opportunity, self._clock.now_ms())
        finally:
            self._busy = False
            self._in_flight = None

        self._finish(record)
        return ExecutionResult.from_record(record)

    def _finish(self, record: ExecutionRecord) -> None:
        """Append the attempt to history and log its outcome."""
        opportunity = record.opportunity
        self.history.append(record)
        log_execution(
            logger,
            opportunity_id=opportunity.id,
            status=record.outcome.value,
            tx_ref=record.tx_ref,
            actual_profit=record.actual_profit if record.succeeded else None,
            reason=record.reason,
            failure_code=record.failure_code.value if record.failure_code else None,
            failed_stage=record.failed_stage,
        )

    async def execute_best(self, store: OpportunityStore) -> ExecutionResult | None:
        """Execute the best usable opportunity, if any and if idle."""
        if self._busy:
            return None

        best = store.best_opportunities(1)
        if not best:
            logger.debug("No opportunity available for automatic execution")
            return None

        opportunity = best[0]
        logger.info(
            f"Automatic execution: {opportunity.token} {opportunity.net_profit_percentage:.2f}%",
            extra={"context": {
                "opportunity_id": opportunity.id,
                "amount": opportunity.optimal_amount,
            }},
        )
        return await self.execute(opportunity)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def recent_executions(self, limit: int = 10) -> list[ExecutionRecord]:
        return self.history.recent(limit)

    def stats(self) -> dict:
        now = self._clock.now_ms()
        recent = self.history.since(now - STATS_WINDOW_MS)
        successful = [r for r in recent if r.succeeded]
        total_profit = sum(r.actual_profit for r in successful)
        return {
            "busy": self._busy,
            "total_attempts": len(self.history),
            "recent_attempts": len(recent),
            "successful_attempts": len(successful),
            "success_rate": len(successful) / len(recent) * 100 if recent else 0.0,
            "total_profit_24h": total_profit,
            "average_profit": total_profit / len(successful) if successful else 0.0,
            "pending_count": 1 if self._busy else 0,
            "daily_executions": self.counter.count,
            "daily_limit": self.arbitrage.daily_transaction_limit,
        }
