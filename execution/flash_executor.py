# PATH: execution/flash_executor.py
"""
Flash-loan executor.

FLASH EXECUTION CONTRACT:
=========================
One transaction: receiver.requestFlashLoan(asset, amount, params)
  -> Aave flashLoanSimple -> buy leg -> sell leg -> repay -> keep residual.
Either everything succeeds or the transaction reverts and only gas is spent.

Modes:
  dry_run  -> success with tx_hash "dry-arb-{ms}", no network calls
  live     -> requires receiver_address and a signer (ConfigError otherwise)

Guards:
  single-flight   -> a second call while one is in flight returns
                     EXECUTION_IN_PROGRESS immediately
  staleness       -> live execution of an opportunity older than
                     max_opportunity_age_ms returns OPPORTUNITY_STALE

Receipt:
  status 0 -> handled failure with tx hash (TX_REVERTED)
  status 1 -> realized profit = gross - flash fee - actual gas, recorded
=========================
"""

import asyncio
from decimal import Decimal
from typing import Callable

from chains.abi import FLASH_RECEIVER_REQUEST_FLASH_LOAN, encode_receiver_params
from chains.providers import RPCProvider
from chains.signer import TransactionSigner
from core.constants import ErrorCode, TradeOutcome
from core.exceptions import ArbError, ConfigError, ExecutionError
from core.logging import get_logger
from core.math import gas_cost_usd, usd_to_raw
from core.models import ArbOpportunity, ArbResult
from core.time import age_ms, now_ms
from execution.state_machine import TradeState, TradeStateMachine
from monitoring.profit_ledger import ProfitLedger
from strategy.config import ArbConfig

logger = get_logger(__name__)

REVERTED_MESSAGE = "Reverted: spread closed before execution"


def min_profit_raw(opportunity: ArbOpportunity, fraction: Decimal) -> int:
    """Receiver-side profit floor in raw loan-asset units."""
    floor_usd = opportunity.net_profit_usd * fraction
    if floor_usd <= 0:
        return 0
    return usd_to_raw(
        floor_usd,
        opportunity.loan_asset_price_usd,
        opportunity.flash_loan_asset.decimals,
    )


def build_receiver_params(opportunity: ArbOpportunity, min_profit_fraction: Decimal) -> bytes:
    """ABI-encoded swap instructions for the receiver."""
    buy, sell = opportunity.buy_pool, opportunity.sell_pool
    return encode_receiver_params(
        buy_router=buy.router,
        buy_type=int(buy.venue_type),
        buy_pool_id=buy.pool_id,
        buy_fee=buy.fee_tier,
        sell_router=sell.router,
        sell_type=int(sell.venue_type),
        sell_pool_id=sell.pool_id,
        sell_fee=sell.fee_tier,
        token_out=opportunity.token_out.address,
        min_profit_raw=min_profit_raw(opportunity, min_profit_fraction),
    )


def _hex_int(value, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    return int(value, 16)


class FlashLoanExecutor:
    """
    Submits flash-loan arbitrage transactions through the receiver.

    Usage:
        executor = FlashLoanExecutor(config, provider, ledger, signer)
        result = await executor.execute(opportunity)
    """

    def __init__(
        self,
        config: ArbConfig,
        provider: RPCProvider,
        ledger: ProfitLedger,
        signer: TransactionSigner | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.provider = provider
        self.ledger = ledger
        self.signer = signer
        self._clock = clock
        self._lock = asyncio.Lock()
        self.last_trade: TradeStateMachine | None = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def execute(
        self,
        opportunity: ArbOpportunity,
        native_price_usd: Decimal | None = None,
    ) -> ArbResult:
        """
        Execute an opportunity.

        Raises:
            ConfigError: Live mode without receiver or signer
            ExecutionError: Submission or confirmation failed
        """
        if self._lock.locked():
            logger.info(
                "Execution skipped, another is in flight",
                extra={"context": {"pair": opportunity.display_pair, "outcome": TradeOutcome.BLOCKED.value}},
            )
            return ArbResult(
                success=False,
                error="Execution already in progress",
                error_code=ErrorCode.EXECUTION_IN_PROGRESS,
            )

        async with self._lock:
            return await self._execute(opportunity, native_price_usd)

    async def _execute(
        self,
        opportunity: ArbOpportunity,
        native_price_usd: Decimal | None,
    ) -> ArbResult:
        trade = TradeStateMachine(trade_id=f"arb_{opportunity.pair_key}_{opportunity.detected_at_ms}")
        self.last_trade = trade

        if self.config.dry_run:
            trade.transition_to(TradeState.SIMULATED, reason="dry run")
            self.ledger.record(opportunity.net_profit_usd)
            tx_hash = f"dry-arb-{self._clock()}"
            logger.info(
                "Dry-run execution",
                extra={"context": {
                    "pair": opportunity.display_pair,
                    "net_usd": str(opportunity.net_profit_usd),
                    "tx_hash": tx_hash,
                    "outcome": TradeOutcome.DRY_RUN.value,
                }},
            )
            return ArbResult(
                success=True,
                tx_hash=tx_hash,
                profit_usd=opportunity.net_profit_usd,
                dry_run=True,
                state=trade.state.value,
            )

        receiver = self.config.receiver_address
        if not receiver:
            trade.transition_to(TradeState.REJECTED, reason="no receiver configured")
            raise ConfigError(
                "Live execution requires receiver_address",
                code=ErrorCode.CONFIG_MISSING_RECEIVER,
            )
        if self.signer is None:
            trade.transition_to(TradeState.REJECTED, reason="no signer configured")
            raise ConfigError(
                "Live execution requires a signing key",
                code=ErrorCode.CONFIG_MISSING_SIGNER,
            )

        age = age_ms(opportunity.detected_at_ms, self._clock())
        if age > self.config.max_opportunity_age_ms:
            trade.transition_to(TradeState.REJECTED, reason="stale")
            logger.info(
                "Opportunity too old, not executing",
                extra={"context": {"pair": opportunity.display_pair, "age_ms": age}},
            )
            return ArbResult(
                success=False,
                error=f"Opportunity is {age}ms old (max {self.config.max_opportunity_age_ms}ms)",
                error_code=ErrorCode.OPPORTUNITY_STALE,
                state=trade.state.value,
            )

        params = build_receiver_params(opportunity, self.config.min_profit_fraction)
        call_data = FLASH_RECEIVER_REQUEST_FLASH_LOAN.encode_call(
            opportunity.flash_loan_asset.address,
            opportunity.flash_amount_raw,
            params,
        )

        trade.transition_to(TradeState.SUBMITTING)
        try:
            gas_price, _ = await self.provider.get_gas_price()
            nonce = await self.provider.get_transaction_count(self.signer.address, "pending")
            raw_tx = self.signer.sign_transaction(
                to=receiver,
                data=call_data,
                nonce=nonce,
                gas=self.config.gas_limit,
                gas_price=gas_price,
            )
            tx_hash = await self.provider.send_raw_transaction(raw_tx)
        except ArbError as e:
            trade.transition_to(TradeState.FAILED, reason=e.message)
            raise ExecutionError(
                f"Flash-loan submission failed: {e.message}",
                code=ErrorCode.TX_SUBMIT_FAILED,
                details={"pair": opportunity.display_pair, "state": trade.state.value, **e.details},
            ) from e

        trade.transition_to(TradeState.SUBMITTED, metadata={"tx_hash": tx_hash})
        logger.info(
            "Flash-loan submitted",
            extra={"context": {
                "pair": opportunity.display_pair,
                "tx_hash": tx_hash,
                "flash_usd": str(opportunity.flash_amount_usd),
                "nonce": nonce,
            }},
        )

        try:
            receipt = await self.provider.wait_for_receipt(
                tx_hash,
                timeout_seconds=self.config.receipt_timeout_seconds,
            )
        except ArbError as e:
            trade.transition_to(TradeState.FAILED, reason=e.message)
            raise ExecutionError(
                f"Flash-loan confirmation failed: {e.message}",
                code=ErrorCode.TX_CONFIRM_TIMEOUT,
                details={"tx_hash": tx_hash, "state": trade.state.value},
            ) from e

        gas_used = _hex_int(receipt.get("gasUsed"))
        effective_gas_price = _hex_int(receipt.get("effectiveGasPrice"), default=gas_price)

        if _hex_int(receipt.get("status")) == 0:
            trade.transition_to(TradeState.REVERTED)
            logger.warning(
                "Flash-loan reverted",
                extra={"context": {
                    "pair": opportunity.display_pair,
                    "tx_hash": tx_hash,
                    "gas_used": gas_used,
                    "outcome": TradeOutcome.REVERTED.value,
                }},
            )
            return ArbResult(
                success=False,
                tx_hash=tx_hash,
                error=REVERTED_MESSAGE,
                error_code=ErrorCode.TX_REVERTED,
                gas_used=gas_used,
                state=trade.state.value,
            )

        native = Decimal(native_price_usd) if native_price_usd is not None else opportunity.native_price_usd
        realized = (
            opportunity.expected_gross_usd
            - opportunity.flash_fee_usd
            - gas_cost_usd(gas_used, effective_gas_price, native)
        )
        self.ledger.record(realized)
        trade.transition_to(TradeState.CONFIRMED)

        logger.info(
            "Flash-loan confirmed",
            extra={"context": {
                "pair": opportunity.display_pair,
                "tx_hash": tx_hash,
                "gas_used": gas_used,
                "profit_usd": str(realized),
                "outcome": TradeOutcome.CONFIRMED.value,
            }},
        )
        return ArbResult(
            success=True,
            tx_hash=tx_hash,
            profit_usd=realized,
            gas_used=gas_used,
            state=trade.state.value,
        )
