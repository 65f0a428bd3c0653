"""
strategy/service.py - Flash-arb service facade.

Owns every stateful collaborator (RPC provider, token cache, pool
registry, scanner, executor, profit ledger) as instance fields. Callers
(the CLI job, an orchestrator) talk only to FlashArbService.
"""

import asyncio
from decimal import Decimal

from chains.abi import ERC20_BALANCE_OF
from chains.providers import RPCProvider
from chains.signer import TransactionSigner
from core.constants import ErrorCode
from core.exceptions import ConfigError, InfraError
from core.logging import get_logger
from core.math import raw_to_amount
from core.models import ArbOpportunity, ArbResult
from dex.quoting import QuoteDispatcher
from discovery.pool_index import PoolIndexClient
from discovery.registry import PoolRegistry
from discovery.tokens import TokenMetadataCache
from execution.flash_executor import FlashLoanExecutor
from monitoring.profit_ledger import ProfitLedger
from strategy.config import ArbConfig
from strategy.scanner import OpportunityScanner

logger = get_logger(__name__)


class FlashArbService:
    """
    Refresh / scan / execute facade.

    Usage:
        service = FlashArbService(load_arb_config())
        await service.refresh_pools()
        opp = await service.scan(native_price_usd=Decimal("2500"))
        if opp:
            result = await service.execute(opp)
        await service.close()
    """

    def __init__(
        self,
        config: ArbConfig,
        provider: RPCProvider | None = None,
        index_client: PoolIndexClient | None = None,
        signer: TransactionSigner | None = None,
        ledger: ProfitLedger | None = None,
    ):
        self.config = config
        self.provider = provider or RPCProvider(
            chain_id=config.chain_id,
            rpc_urls=config.rpc_urls,
            timeout_seconds=config.rpc_timeout_seconds,
        )
        self.index_client = index_client or PoolIndexClient(
            config.index_url,
            timeout_seconds=config.index_timeout_seconds,
        )
        if signer is None and config.private_key:
            signer = TransactionSigner(config.private_key, config.chain_id)
        self.signer = signer

        self.ledger = ledger or ProfitLedger()
        self.token_cache = TokenMetadataCache(self.provider)
        self.registry = PoolRegistry(config, self.provider, self.index_client, self.token_cache)
        self.dispatcher = QuoteDispatcher(self.provider, path_fee=config.path_fee_placeholder)
        self.scanner = OpportunityScanner(config, self.dispatcher, self.provider)
        self.executor = FlashLoanExecutor(config, self.provider, self.ledger, self.signer)

    @property
    def pool_count(self) -> int:
        return self.registry.pool_count

    @property
    def pools_refreshed_at_ms(self) -> int | None:
        return self.registry.refreshed_at_ms

    async def refresh_pools(self, force: bool = False) -> int:
        """Refresh the pool list (TTL-gated unless forced); returns pool count."""
        try:
            await asyncio.wait_for(
                self.registry.refresh(force=force),
                timeout=self.config.operation_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Pool refresh timed out, serving cached list",
                extra={"context": {
                    "timeout_s": self.config.operation_timeout_seconds,
                    "cached_pools": self.pool_count,
                }},
            )
        return self.pool_count

    async def scan(
        self,
        native_price_usd: Decimal,
        gas_price_wei: int | None = None,
    ) -> ArbOpportunity | None:
        """Refresh pools if stale, then return the best opportunity or None."""
        if not self.config.enabled:
            return None

        async def _refresh_and_scan() -> ArbOpportunity | None:
            pools = await self.registry.refresh()
            return await self.scanner.scan(native_price_usd, pools=pools, gas_price_wei=gas_price_wei)

        try:
            return await asyncio.wait_for(
                _refresh_and_scan(),
                timeout=self.config.operation_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Scan timed out",
                extra={"context": {"timeout_s": self.config.operation_timeout_seconds}},
            )
            return None

    async def execute(
        self,
        opportunity: ArbOpportunity,
        native_price_usd: Decimal | None = None,
    ) -> ArbResult:
        return await self.executor.execute(opportunity, native_price_usd)

    async def verify_chain(self) -> int:
        """
        Check that the RPC endpoints serve the configured chain.

        Raises:
            ConfigError: Endpoint chain id differs from config.chain_id
            RPCError: No endpoint answered
        """
        remote = await self.provider.get_chain_id()
        if remote != self.config.chain_id:
            raise ConfigError(
                f"RPC serves chain {remote}, expected {self.config.chain_name} ({self.config.chain_id})",
                details={"expected": self.config.chain_id, "actual": remote},
            )
        return remote

    async def get_loan_asset_balance(self) -> Decimal:
        """
        Reporting-asset balance held by the signer, in token units.

        Raises:
            ConfigError: No signer or no reporting asset configured
            InfraError: RPC failure or unresolvable token metadata
        """
        if self.signer is None:
            raise ConfigError("Balance query requires a signing key", code=ErrorCode.CONFIG_MISSING_SIGNER)
        token = self.config.reporting_asset
        if not token:
            raise ConfigError("reporting_asset is not configured")

        meta = await self.token_cache.resolve(token)
        if meta is None:
            raise InfraError(
                f"Cannot resolve metadata for reporting asset {token}",
                code=ErrorCode.TOKEN_METADATA_UNAVAILABLE,
            )

        response = await self.provider.eth_call(token, ERC20_BALANCE_OF.encode_call(self.signer.address.lower()))
        (raw,) = ERC20_BALANCE_OF.decode_result(response.result)
        return raw_to_amount(raw, meta.decimals)

    def record_profit(self, amount: Decimal) -> None:
        self.ledger.record(amount)

    def profit_24h(self) -> Decimal:
        return self.ledger.last_24h()

    def get_status(self) -> dict:
        return {
            "enabled": self.config.enabled,
            "dry_run": self.config.dry_run,
            "chain_id": self.config.chain_id,
            "signer": self.signer.address if self.signer else None,
            "receiver": self.config.receiver_address,
            "execution_in_flight": self.executor.in_flight,
            "last_trade": self.executor.last_trade.to_dict() if self.executor.last_trade else None,
            "registry": self.registry.get_summary(),
            "profit_24h_usd": str(self.profit_24h()),
            "rpc": self.provider.get_stats_summary(),
        }

    async def close(self) -> None:
        await self.provider.close()
