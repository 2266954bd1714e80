# PATH: core/exceptions.py
"""
Typed exceptions for the arbitrage bot.

Every error carries an ErrorCode and an optional details dict. Pipeline
failures are reported to callers as structured results; these exceptions
travel only between internal layers.
"""

from typing import Any, Optional

from core.constants import ErrorCode


class ArbError(Exception):
    """Base exception for the arbitrage bot."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ArbError):
    """Unsafe or incomplete configuration. Fatal at startup."""
    default_code = ErrorCode.CONFIG_INVALID


class NotFoundError(ArbError):
    """Requested entry does not exist (or is no longer usable)."""
    default_code = ErrorCode.NOT_FOUND


class PriceSourceError(ArbError):
    """Price source could not answer. Recovered as a zero-price sentinel."""
    default_code = ErrorCode.PRICE_SOURCE_FAILED


class GasEstimationError(ArbError):
    """Fee oracle could not answer. Recovered with the fallback estimate."""
    default_code = ErrorCode.GAS_ESTIMATION_FAILED


class InfraError(ArbError):
    """Infrastructure-related errors (RPC, timeouts)."""
    default_code = ErrorCode.INFRA_RPC_ERROR


class BackendError(ArbError):
    """Execution backend rejected a submission or confirmation."""
    default_code = ErrorCode.BACKEND_FAILED


class StageFailure(ArbError):
    """
    Raised inside the execution pipeline to abort the remaining stages.

    The coordinator converts it into a FAILED result; it never escapes
    the public execute() surface.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        stage: str = "",
        details: Optional[dict] = None,
    ):
        super().__init__(message, code, details)
        self.stage = stage
