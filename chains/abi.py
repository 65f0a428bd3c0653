"""
chains/abi.py - Typed contract bindings.

Each on-chain function the engine touches is declared once as a
ContractFunction with its exact input/output types. Selectors are derived
from the canonical signature and encoding/decoding goes through eth-abi,
so a typo in a signature shows up as a wrong selector in tests rather than
as a silent revert on chain.

RECEIVER PARAMS CONTRACT (bit-exact):
  (address buyRouter, uint8 buyType, bytes32 buyPoolId, uint24 buyFee,
   address sellRouter, uint8 sellType, bytes32 sellPoolId, uint24 sellFee,
   address tokenOut, uint256 minProfit)
"""

from dataclasses import dataclass
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_bytes, to_hex

from core.constants import DEFAULT_PATH_FEE_PLACEHOLDER, ErrorCode, ZERO_HASH
from core.exceptions import DecodeError


@dataclass(frozen=True)
class ContractFunction:
    """A single ABI function: name plus canonical input/output types."""
    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: Any) -> str:
        """Calldata as a 0x-prefixed hex string."""
        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.signature} expects {len(self.inputs)} args, got {len(args)}"
            )
        return to_hex(self.selector + encode(list(self.inputs), list(args)))

    def decode_result(self, data: str | bytes | None) -> tuple:
        """
        Decode return data.

        Raises:
            DecodeError: QUOTE_EMPTY for empty data, QUOTE_DECODE otherwise
        """
        raw = _as_bytes(data)
        if not raw:
            raise DecodeError(
                f"{self.name}: empty return data",
                code=ErrorCode.QUOTE_EMPTY,
            )
        try:
            return tuple(decode(list(self.outputs), raw))
        except (DecodingError, ValueError, TypeError) as e:
            raise DecodeError(
                f"{self.name}: cannot decode return data: {e}",
                code=ErrorCode.QUOTE_DECODE,
                details={"length": len(raw)},
            ) from e


def _as_bytes(data: str | bytes | None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if data in ("", "0x"):
        return b""
    return to_bytes(hexstr=data)


def _address_bytes(address: str) -> bytes:
    return to_bytes(hexstr=address)


def pool_id_bytes(pool_id: str | None) -> bytes:
    """bytes32 pool id; zero hash for venues without one."""
    return to_bytes(hexstr=pool_id or ZERO_HASH).rjust(32, b"\x00")


# =============================================================================
# ERC-20
# =============================================================================

ERC20_SYMBOL = ContractFunction("symbol", (), ("string",))
# Legacy tokens (e.g. MKR) return bytes32 from symbol()
ERC20_SYMBOL_BYTES32 = ContractFunction("symbol", (), ("bytes32",))
ERC20_DECIMALS = ContractFunction("decimals", (), ("uint8",))
ERC20_BALANCE_OF = ContractFunction("balanceOf", ("address",), ("uint256",))


def decode_symbol(data: str | bytes | None) -> str:
    """Decode symbol() return data as string, falling back to bytes32."""
    try:
        return ERC20_SYMBOL.decode_result(data)[0]
    except DecodeError as e:
        if e.code == ErrorCode.QUOTE_EMPTY:
            raise
    raw = ERC20_SYMBOL_BYTES32.decode_result(data)[0]
    return raw.rstrip(b"\x00").decode("utf-8", errors="ignore")


# =============================================================================
# FACTORIES
# =============================================================================

UNISWAP_V3_GET_POOL = ContractFunction(
    "getPool", ("address", "address", "uint24"), ("address",)
)
ALGEBRA_POOL_BY_PAIR = ContractFunction(
    "poolByPair", ("address", "address"), ("address",)
)


# =============================================================================
# QUOTERS
# =============================================================================

# QuoterV2.quoteExactInputSingle((tokenIn, tokenOut, amountIn, fee, sqrtPriceLimitX96))
# returns (amountOut, sqrtPriceX96After, initializedTicksCrossed, gasEstimate)
QUOTER_V2_QUOTE_EXACT_INPUT_SINGLE = ContractFunction(
    "quoteExactInputSingle",
    ("(address,address,uint256,uint24,uint160)",),
    ("uint256", "uint160", "uint32", "uint256"),
)

# Algebra Quoter.quoteExactInput(path, amountIn) returns (amountOut, fees[])
ALGEBRA_QUOTE_EXACT_INPUT = ContractFunction(
    "quoteExactInput",
    ("bytes", "uint256"),
    ("uint256", "uint16[]"),
)

# Balancer Vault.queryBatchSwap(kind, swaps, assets, funds) returns assetDeltas
BALANCER_QUERY_BATCH_SWAP = ContractFunction(
    "queryBatchSwap",
    (
        "uint8",
        "(bytes32,uint256,uint256,uint256,bytes)[]",
        "address[]",
        "(address,bool,address,bool)",
    ),
    ("int256[]",),
)


def encode_algebra_path(
    token_in: str,
    token_out: str,
    fee: int = DEFAULT_PATH_FEE_PLACEHOLDER,
) -> bytes:
    """
    Packed path: tokenIn (20) | fee (3) | tokenOut (20).

    The fee field is a placeholder; Algebra pools price with their own
    dynamic fee.
    """
    return _address_bytes(token_in) + fee.to_bytes(3, "big") + _address_bytes(token_out)


# =============================================================================
# FLASH RECEIVER
# =============================================================================

FLASH_RECEIVER_REQUEST_FLASH_LOAN = ContractFunction(
    "requestFlashLoan", ("address", "uint256", "bytes"), ()
)

RECEIVER_PARAMS_TYPES: tuple[str, ...] = (
    "address",  # buyRouter
    "uint8",    # buyType
    "bytes32",  # buyPoolId
    "uint24",   # buyFee
    "address",  # sellRouter
    "uint8",    # sellType
    "bytes32",  # sellPoolId
    "uint24",   # sellFee
    "address",  # tokenOut
    "uint256",  # minProfit
)


def encode_receiver_params(
    buy_router: str,
    buy_type: int,
    buy_pool_id: str | None,
    buy_fee: int,
    sell_router: str,
    sell_type: int,
    sell_pool_id: str | None,
    sell_fee: int,
    token_out: str,
    min_profit_raw: int,
) -> bytes:
    """ABI-encode the swap instructions the receiver executes inside the loan."""
    values: Sequence[Any] = (
        buy_router.lower(),
        int(buy_type),
        pool_id_bytes(buy_pool_id),
        buy_fee,
        sell_router.lower(),
        int(sell_type),
        pool_id_bytes(sell_pool_id),
        sell_fee,
        token_out.lower(),
        min_profit_raw,
    )
    return encode(list(RECEIVER_PARAMS_TYPES), list(values))


def decode_receiver_params(data: bytes) -> tuple:
    """Inverse of encode_receiver_params (diagnostics and tests)."""
    return tuple(decode(list(RECEIVER_PARAMS_TYPES), data))
