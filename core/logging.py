# PATH: core/logging.py
"""
Structured JSON logging.

All logs include:
- timestamp (ISO 8601)
- level
- logger
- message
- context (network, token, opportunity_id, latency_ms, etc.)

Contextual fields are passed only via extra={"context": {...}}.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Global context that gets added to all log entries
_global_context: dict[str, Any] = {}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {
        "timestamp": "2026-01-04T12:00:00.000+00:00",
        "level": "INFO",
        "logger": "arb.detector",
        "message": "Opportunities ranked",
        "context": {
            "network": "ethereum",
            "candidates": 3
        }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {}
        context.update(_global_context)

        if hasattr(record, "context") and record.context:
            context.update(record.context)

        if record.exc_info:
            context["exception"] = self.formatException(record.exc_info)

        if context:
            log_entry["context"] = context

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} | {record.levelname:<8} | {record.name} | {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in list(context.items())[:4])
            if len(context) > 4:
                ctx_str += f", ... (+{len(context) - 4} more)"
            base += f" | {ctx_str}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds context to all log entries.
    """

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        # Merge adapter context with call context
        extra = kwargs.get("extra", {})
        context = {**self.extra, **extra.get("context", {})}

        kwargs["extra"] = {"context": context}
        return msg, kwargs


def set_global_context(**kwargs: Any) -> None:
    """
    Set global context that gets added to all log entries.

    Example:
        set_global_context(service="arb-bot", mode="testnet")
    """
    _global_context.update(kwargs)


def clear_global_context() -> None:
    """Clear global logging context."""
    _global_context.clear()


def get_logger(name: str, **context: Any) -> ContextAdapter:
    """
    Get a logger with optional default context.

    Args:
        name: Logger name (e.g., "arb.pricing")
        **context: Default context for all log entries from this logger

    Example:
        logger = get_logger("arb.gas", network="ethereum")
        logger.info("Fee rate fetched", extra={"context": {"latency_ms": 50}})
    """
    logger = logging.getLogger(name)
    return ContextAdapter(logger, context)


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Setup logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON formatting (recommended for production)
        log_file: Optional file path for logging (always JSON)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter() if json_output else ConsoleFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def log_opportunity(
    logger: ContextAdapter,
    opportunity_id: str,
    buy_venue: str,
    sell_venue: str,
    token: str,
    net_profit_percentage: float,
    net_profit: float,
    **extra: Any,
) -> None:
    """Log a ranked opportunity with standard context."""
    logger.info(
        f"Opportunity: {token} {buy_venue} -> {sell_venue} | {net_profit_percentage:.2f}%",
        extra={
            "context": {
                "opportunity_id": opportunity_id,
                "buy_venue": buy_venue,
                "sell_venue": sell_venue,
                "token": token,
                "net_profit_percentage": round(net_profit_percentage, 4),
                "net_profit": net_profit,
                **extra,
            }
        },
    )


def log_execution(
    logger: ContextAdapter,
    opportunity_id: str,
    status: str,
    tx_ref: str | None = None,
    actual_profit: float | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """Log an execution attempt outcome with standard context."""
    log = logger.info if status == "SUCCEEDED" else logger.warning
    log(
        f"Execution: {opportunity_id} | {status}",
        extra={
            "context": {
                "opportunity_id": opportunity_id,
                "status": status,
                "tx_ref": tx_ref,
                "actual_profit": actual_profit,
                "reason": reason,
                **extra,
            }
        },
    )


def log_error(
    logger: ContextAdapter,
    error_code: str,
    message: str,
    exc_info: bool = False,
    **extra: Any,
) -> None:
    """Log an error with standard context."""
    logger.error(
        f"[{error_code}] {message}",
        exc_info=exc_info,
        extra={
            "context": {
                "error_code": error_code,
                **extra,
            }
        },
    )
