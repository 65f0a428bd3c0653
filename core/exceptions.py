# PATH: core/exceptions.py
"""
Typed exceptions for the flash-arb engine.

Every error carries an ErrorCode plus a details dict so callers can log
structured context and tell infrastructure failures from reverts.
"""

from typing import Optional

from core.constants import ErrorCode


class ArbError(Exception):
    """Base exception for the engine."""

    default_code = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str = "",
        code: Optional[ErrorCode] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"


class InfraError(ArbError):
    """Infrastructure-related errors (RPC, timeouts, external APIs)."""
    default_code = ErrorCode.INFRA_RPC_ERROR


class RPCError(InfraError):
    """RPC call failed on every endpoint."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, ErrorCode.INFRA_RPC_ERROR, details)


class IndexUnavailableError(InfraError):
    """External pool index could not be fetched or parsed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, ErrorCode.INFRA_INDEX_UNAVAILABLE, details)


class QuoteError(ArbError):
    """Quote simulation failed (revert, empty or malformed response)."""
    default_code = ErrorCode.QUOTE_REVERT


class DecodeError(ArbError):
    """Contract return data was empty or not ABI-decodable."""
    default_code = ErrorCode.QUOTE_DECODE


class ConfigError(ArbError):
    """Configuration is missing or invalid."""
    default_code = ErrorCode.CONFIG_INVALID


class ExecutionError(ArbError):
    """Transaction could not be submitted or confirmed."""
    default_code = ErrorCode.TX_SUBMIT_FAILED
