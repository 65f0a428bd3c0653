# PATH: core/__init__.py
"""Core module: constants, exceptions, models, logging."""

from core.constants import (
    VenueType,
    DexId,
    PricingKind,
    TradeOutcome,
    ErrorCode,
)
from core.exceptions import (
    ArbError,
    InfraError,
    RPCError,
    IndexUnavailableError,
    QuoteError,
    DecodeError,
    ConfigError,
    ExecutionError,
)
from core.models import (
    TokenMeta,
    CandidatePool,
    QuoteResult,
    ArbOpportunity,
    ArbResult,
    ProfitLogEntry,
    canonical_pair_key,
)

__all__ = [
    "VenueType",
    "DexId",
    "PricingKind",
    "TradeOutcome",
    "ErrorCode",
    "ArbError",
    "InfraError",
    "RPCError",
    "IndexUnavailableError",
    "QuoteError",
    "DecodeError",
    "ConfigError",
    "ExecutionError",
    "TokenMeta",
    "CandidatePool",
    "QuoteResult",
    "ArbOpportunity",
    "ArbResult",
    "ProfitLogEntry",
    "canonical_pair_key",
]
