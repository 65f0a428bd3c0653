"""
chains/providers.py - JSON-RPC provider with endpoint failover.

Provides reliable RPC access with:
- Multiple endpoint failover
- Request timeout handling
- Connection pooling
- Latency tracking
- Transaction submission and receipt polling

Reverts are deterministic: an "execution reverted" error is raised
immediately instead of being retried on the next endpoint.

A raw transaction that may already have reached an endpoint (timeout or
dropped connection) is still retried on the next one; a "known
transaction" answer there counts as a successful broadcast.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any

import httpx
from dotenv import load_dotenv
from eth_utils import keccak, to_hex

from core.constants import ErrorCode
from core.exceptions import InfraError, RPCError
from core.logging import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

REVERT_MARKERS = ("execution reverted", "revert")

# Node answers for a transaction that is already in the pool or mined
KNOWN_TX_MARKERS = ("already known", "known transaction", "nonce too low", "already imported")


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None
    last_success_ts: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


def _is_revert(error: dict) -> bool:
    message = str(error.get("message", "")).lower()
    return error.get("code") == 3 or any(m in message for m in REVERT_MARKERS)


def _is_known_transaction(message: str) -> bool:
    message = message.lower()
    return any(m in message for m in KNOWN_TX_MARKERS)


class RPCProvider:
    """
    RPC provider with failover support.

    Tries endpoints in order until one succeeds and tracks statistics
    per endpoint for monitoring.
    """

    def __init__(
        self,
        chain_id: int,
        rpc_urls: list[str],
        timeout_seconds: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.chain_id = chain_id
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

        self.rpc_urls = self._resolve_urls(rpc_urls)

        self.stats: dict[str, RPCStats] = {
            url: RPCStats(url=url) for url in self.rpc_urls
        }

    def _resolve_urls(self, urls: list[str]) -> list[str]:
        """Resolve ${ALCHEMY_API_KEY} in URLs; drop keyed URLs without a key."""
        api_key = os.getenv("ALCHEMY_API_KEY", "")
        resolved = []
        for url in urls:
            resolved_url = url.replace("${ALCHEMY_API_KEY}", api_key)
            if api_key or "${ALCHEMY_API_KEY}" not in url:
                resolved.append(resolved_url)
        return resolved

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=20),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(
        self,
        method: str,
        params: list | None = None,
        broadcast: bool = False,
    ) -> RPCResponse:
        """
        Make an RPC call with failover.

        Args:
            method: RPC method name
            params: Method parameters
            broadcast: Payload is a signed transaction; a "known transaction"
                error after a possibly delivered attempt returns result None

        Returns:
            RPCResponse with result and metadata

        Raises:
            RPCError: On a revert, or if all endpoints fail
        """
        if not self.rpc_urls:
            raise RPCError(
                "No RPC endpoints configured",
                details={"chain_id": self.chain_id},
            )

        client = await self._get_client()
        last_error: str | None = None
        maybe_delivered = False

        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.total_requests += 1

            payload = {
                "jsonrpc": "2.0",
                "method": method,
                "params": params or [],
                "id": self._next_request_id(),
            }

            start_ms = int(time.time() * 1000)

            try:
                resp = await client.post(url, json=payload)
                latency_ms = int(time.time() * 1000) - start_ms
                resp.raise_for_status()
                body = resp.json()
            except httpx.TimeoutException as e:
                latency_ms = int(time.time() * 1000) - start_ms
                maybe_delivered = maybe_delivered or not isinstance(e, httpx.ConnectTimeout)
                stats.failed_requests += 1
                stats.last_error = f"Timeout after {latency_ms}ms"
                last_error = stats.last_error
                logger.debug(
                    "RPC timeout",
                    extra={"context": {"url": url, "method": method, "latency_ms": latency_ms}},
                )
                continue
            except (httpx.HTTPError, ValueError) as e:
                maybe_delivered = maybe_delivered or not isinstance(e, httpx.ConnectError)
                stats.failed_requests += 1
                stats.last_error = str(e)
                last_error = str(e)
                logger.debug(
                    "RPC transport failure",
                    extra={"context": {"url": url, "method": method, "error": str(e)}},
                )
                continue

            if "error" in body:
                error = body["error"] if isinstance(body["error"], dict) else {"message": str(body["error"])}
                error_msg = error.get("message", str(error))
                if _is_revert(error):
                    # The endpoint is healthy; the call itself reverted
                    stats.successful_requests += 1
                    stats.total_latency_ms += latency_ms
                    raise RPCError(
                        f"Call reverted: {error_msg}",
                        details={"url": url, "method": method, "reverted": True, "data": error.get("data")},
                    )
                if broadcast and maybe_delivered and _is_known_transaction(error_msg):
                    stats.successful_requests += 1
                    stats.total_latency_ms += latency_ms
                    logger.info(
                        "Transaction already broadcast by an earlier attempt",
                        extra={"context": {"url": url, "method": method, "error": error_msg}},
                    )
                    return RPCResponse(result=None, latency_ms=latency_ms, endpoint_used=url)
                stats.failed_requests += 1
                stats.last_error = error_msg
                last_error = error_msg
                logger.debug(
                    "RPC error response",
                    extra={"context": {"url": url, "method": method, "error": error_msg}},
                )
                continue

            stats.successful_requests += 1
            stats.total_latency_ms += latency_ms
            stats.last_success_ts = int(time.time() * 1000)

            return RPCResponse(
                result=body.get("result"),
                latency_ms=latency_ms,
                endpoint_used=url,
            )

        raise RPCError(
            f"All RPC endpoints failed for chain {self.chain_id}: {last_error}",
            details={
                "chain_id": self.chain_id,
                "method": method,
                "endpoints_tried": len(self.rpc_urls),
                "last_error": last_error,
            },
        )

    async def get_chain_id(self) -> int:
        """Get chain ID from RPC."""
        response = await self.call("eth_chainId")
        return int(response.result, 16)

    async def eth_call(
        self,
        to: str,
        data: str,
        block: str = "latest",
    ) -> RPCResponse:
        """
        Make eth_call.

        Args:
            to: Contract address
            data: Encoded call data (0x-prefixed hex)
            block: Block number or "latest"
        """
        return await self.call("eth_call", [{"to": to, "data": data}, block])

    async def get_gas_price(self) -> tuple[int, int]:
        """
        Get current gas price in wei.

        Returns:
            (gas_price_wei, latency_ms)
        """
        response = await self.call("eth_gasPrice")
        return int(response.result, 16), response.latency_ms

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Nonce for address."""
        response = await self.call("eth_getTransactionCount", [address, block])
        return int(response.result, 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        """
        Broadcast a signed transaction, returning its hash.

        The hash is computed locally when the accepting endpoint only
        reports the transaction as already known.
        """
        response = await self.call("eth_sendRawTransaction", [raw_tx], broadcast=True)
        return response.result or to_hex(keccak(hexstr=raw_tx))

    async def get_transaction_receipt(self, tx_hash: str) -> dict | None:
        """Receipt for tx_hash, or None while pending."""
        response = await self.call("eth_getTransactionReceipt", [tx_hash])
        return response.result

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 1.0,
    ) -> dict:
        """
        Poll until the transaction is mined (one confirmation).

        Raises:
            InfraError: INFRA_TIMEOUT if no receipt within timeout_seconds
        """
        deadline = time.monotonic() + timeout_seconds
        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
            if time.monotonic() >= deadline:
                raise InfraError(
                    f"No receipt for {tx_hash} after {timeout_seconds}s",
                    code=ErrorCode.INFRA_TIMEOUT,
                    details={"tx_hash": tx_hash},
                )
            await asyncio.sleep(poll_interval_seconds)

    def get_stats_summary(self) -> dict:
        """Get statistics summary for all endpoints."""
        return {
            url: {
                "total_requests": s.total_requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }
