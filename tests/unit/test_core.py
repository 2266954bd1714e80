# PATH: tests/unit/test_core.py
"""
Unit tests for core models, exceptions, time utilities and logging.
"""

import ast
import json
import logging
import unittest
from datetime import date
from pathlib import Path

from core.constants import ErrorCode, ExecutionOutcome
from core.exceptions import ArbError, ConfigurationError, InfraError, NotFoundError, StageFailure
from core.logging import (
    ConsoleFormatter,
    JSONFormatter,
    clear_global_context,
    get_logger,
    log_error,
    log_execution,
    set_global_context,
)
from core.models import (
    ExecutionRecord,
    ExecutionResult,
    Opportunity,
    PriceSample,
    average_price,
    generate_execution_id,
    generate_opportunity_id,
)
from core.time import FakeClock, age_ms, is_fresh, ms_to_iso, utc_day

PROJECT_ROOT = Path(__file__).parent.parent.parent


def build_opportunity(
    buy_price: float = 2000.0,
    sell_price: float = 2050.0,
    net_profit_percentage: float = 2.47,
    confidence: float = 100.0,
    created_at_ms: int = 1_700_000_000_000,
) -> Opportunity:
    return Opportunity(
        id=generate_opportunity_id("ethereum", "WETH", "sushiswap", "uniswap", created_at_ms),
        network="ethereum",
        token="WETH",
        buy_venue="sushiswap",
        sell_venue="uniswap",
        buy_price=buy_price,
        sell_price=sell_price,
        spread=sell_price - buy_price,
        optimal_amount=0.1,
        gross_profit=5.0,
        gas_cost=0.01,
        slippage_cost=0.05,
        net_profit=4.94,
        net_profit_percentage=net_profit_percentage,
        confidence=confidence,
        created_at_ms=created_at_ms,
    )


class TestModels(unittest.TestCase):
    """Tests for core data models."""

    def test_opportunity_id(self):
        self.assertEqual(
            generate_opportunity_id("ethereum", "WETH", "sushiswap", "uniswap", 1700000000000),
            "ethereum-WETH-sushiswap-uniswap-1700000000000",
        )

    def test_execution_id(self):
        self.assertEqual(generate_execution_id("opp", 5), "exec-5-opp")

    def test_opportunity_requires_positive_spread(self):
        with self.assertRaises(ValueError):
            build_opportunity(buy_price=2050.0, sell_price=2000.0)
        with self.assertRaises(ValueError):
            build_opportunity(buy_price=2000.0, sell_price=2000.0)

    def test_score(self):
        opp = build_opportunity(net_profit_percentage=2.0, confidence=80.0)
        self.assertAlmostEqual(opp.score, 1.6)

    def test_gross_profit_percentage(self):
        opp = build_opportunity(buy_price=2000.0, sell_price=2050.0)
        self.assertAlmostEqual(opp.gross_profit_percentage, 2.5)

    def test_opportunity_is_frozen(self):
        opp = build_opportunity()
        with self.assertRaises(AttributeError):
            opp.confidence = 1.0

    def test_to_dict(self):
        opp = build_opportunity(created_at_ms=0)
        data = opp.to_dict()
        self.assertEqual(data["id"], opp.id)
        self.assertEqual(data["created_at"], "1970-01-01T00:00:00+00:00")
        json.dumps(data)

    def test_average_price_ignores_non_positive(self):
        samples = {
            "a": PriceSample("a", 10.0, 0),
            "b": PriceSample("b", 20.0, 0),
            "c": PriceSample("c", 0.0, 0),
        }
        self.assertEqual(average_price(samples), 15.0)
        self.assertEqual(average_price({}), 0.0)

    def test_result_from_failed_record(self):
        opp = build_opportunity()
        record = ExecutionRecord(
            id="exec-1",
            opportunity=opp,
            outcome=ExecutionOutcome.FAILED,
            started_at_ms=0,
            finished_at_ms=10,
            failure_code=ErrorCode.TIMEOUT,
            reason="confirmation timed out after 120s",
            failed_stage="CONFIRMING",
        )
        result = ExecutionResult.from_record(record)

        self.assertFalse(result.is_success)
        self.assertIsNone(result.actual_profit)
        self.assertEqual(result.to_dict()["failure_code"], "TIMEOUT")
        self.assertEqual(record.to_dict()["duration_ms"], 10)

    def test_busy_result(self):
        result = ExecutionResult.busy("opp-1")
        self.assertTrue(result.is_busy)
        self.assertEqual(result.failure_code, ErrorCode.BUSY)


class TestExceptions(unittest.TestCase):
    """Tests for typed exceptions."""

    def test_default_codes(self):
        self.assertEqual(ConfigurationError("x").code, ErrorCode.CONFIG_INVALID)
        self.assertEqual(NotFoundError("x").code, ErrorCode.NOT_FOUND)
        self.assertEqual(InfraError("x").code, ErrorCode.INFRA_RPC_ERROR)
        self.assertEqual(ArbError("x").code, ErrorCode.INTERNAL_ERROR)

    def test_str_and_dict(self):
        err = NotFoundError("missing", details={"id": "a"})
        self.assertEqual(str(err), "[NOT_FOUND] missing")
        self.assertEqual(
            err.to_dict(),
            {"error_code": "NOT_FOUND", "message": "missing", "details": {"id": "a"}},
        )

    def test_stage_failure_carries_stage(self):
        err = StageFailure("reverted", ErrorCode.TRANSACTION_REVERTED, stage="CONFIRMING")
        self.assertEqual(err.stage, "CONFIRMING")
        self.assertIsInstance(err, ArbError)


class TestTime(unittest.TestCase):
    """Tests for time utilities."""

    def test_fake_clock(self):
        clock = FakeClock(1000)
        clock.advance(500)
        self.assertEqual(clock.now_ms(), 1500)
        clock.set(10)
        self.assertEqual(clock.now_ms(), 10)

    def test_age_never_negative(self):
        self.assertEqual(age_ms(2000, 1000), 0)
        self.assertEqual(age_ms(1000, 2500), 1500)

    def test_is_fresh_strict(self):
        self.assertTrue(is_fresh(0, 1000, current_ms=999))
        self.assertFalse(is_fresh(0, 1000, current_ms=1000))

    def test_utc_day(self):
        self.assertEqual(utc_day(1_700_006_399_999), date(2023, 11, 14))
        self.assertEqual(utc_day(1_700_006_400_000), date(2023, 11, 15))

    def test_ms_to_iso(self):
        self.assertEqual(ms_to_iso(0), "1970-01-01T00:00:00+00:00")


class TestLoggingFormat(unittest.TestCase):
    """Tests for structured log output."""

    def setUp(self):
        clear_global_context()

    def tearDown(self):
        clear_global_context()

    def _record(self, context=None) -> logging.LogRecord:
        record = logging.LogRecord("arb.test", logging.INFO, __file__, 1, "hello", None, None)
        if context is not None:
            record.context = context
        return record

    def test_json_formatter(self):
        set_global_context(service="arb-bot")
        line = JSONFormatter().format(self._record({"network": "ethereum"}))
        entry = json.loads(line)

        self.assertEqual(entry["level"], "INFO")
        self.assertEqual(entry["logger"], "arb.test")
        self.assertEqual(entry["message"], "hello")
        self.assertEqual(entry["context"], {"service": "arb-bot", "network": "ethereum"})

    def test_console_formatter_truncates_context(self):
        line = ConsoleFormatter().format(self._record({f"k{i}": i for i in range(6)}))
        self.assertIn("k0=0", line)
        self.assertIn("(+2 more)", line)

    def test_adapter_merges_context(self):
        logger = get_logger("arb.test.adapter", network="bsc")
        with self.assertLogs("arb.test.adapter", level="INFO") as captured:
            logger.info("x", extra={"context": {"token": "WBNB"}})
        self.assertEqual(captured.records[0].context, {"network": "bsc", "token": "WBNB"})

    def test_log_execution_level(self):
        logger = get_logger("arb.test.exec")
        with self.assertLogs("arb.test.exec", level="INFO") as captured:
            log_execution(logger, "opp-1", "SUCCEEDED", tx_ref="0x1", actual_profit=1.0)
            log_execution(logger, "opp-2", "FAILED", reason="daily limit reached")
        self.assertEqual([r.levelname for r in captured.records], ["INFO", "WARNING"])
        self.assertEqual(captured.records[1].context["reason"], "daily limit reached")

    def test_log_error_prefixes_code(self):
        logger = get_logger("arb.test.error")
        with self.assertLogs("arb.test.error", level="ERROR") as captured:
            log_error(logger, "INFRA_TIMEOUT", "rpc down", network="bsc")
        record = captured.records[0]
        self.assertEqual(record.getMessage(), "[INFRA_TIMEOUT] rpc down")
        self.assertEqual(record.context, {"error_code": "INFRA_TIMEOUT", "network": "bsc"})


class TestLoggingContract(unittest.TestCase):
    """Logger calls pass context only via extra={"context": {...}}."""

    ALLOWED_KWARGS = {"exc_info", "extra", "stack_info", "stacklevel"}
    PACKAGES = ("core", "pricing", "strategy", "execution", "chains")

    def _violations(self, path: Path) -> list[str]:
        tree = ast.parse(path.read_text(encoding="utf-8"))
        found = []
        for node in ast.walk(tree):
            if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
                continue
            if node.func.attr not in ("debug", "info", "warning", "error", "critical", "exception"):
                continue
            obj = node.func.value
            if not (isinstance(obj, ast.Name) and obj.id in ("logger", "log")):
                continue
            for kw in node.keywords:
                if kw.arg and kw.arg not in self.ALLOWED_KWARGS:
                    found.append(f"{path}:{node.lineno} {kw.arg}=")
        return found

    def test_no_invalid_logger_kwargs(self):
        violations = []
        for package in self.PACKAGES:
            for path in (PROJECT_ROOT / package).rglob("*.py"):
                violations.extend(self._violations(path))
        self.assertEqual(violations, [])


if __name__ == "__main__":
    unittest.main()
