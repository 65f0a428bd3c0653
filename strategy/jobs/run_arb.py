#!/usr/bin/env python3
"""
strategy/jobs/run_arb.py - CLI entrypoint for the flash-arb loop.

Usage:
    python -m strategy.jobs.run_arb --native-price-usd 2500
    python -m strategy.jobs.run_arb --native-price-usd 2500 --execute --duration 3600
    flash-arb --config my-overrides.yaml --native-price-usd 2500

Each cycle refreshes the pool list (TTL-gated), scans for the best
opportunity and, with --execute, executes it (dry run unless the config
says otherwise).
"""

import asyncio
import signal
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

import click

from core.exceptions import ArbError, ConfigError
from core.format_money import format_usd
from core.logging import get_logger, set_global_context, setup_logging
from strategy.config import ArbConfig, load_arb_config
from strategy.service import FlashArbService

logger = get_logger("flash_arb.job")


@dataclass
class ArbSession:
    """Counters for one CLI session."""
    started_at: datetime = field(default_factory=datetime.now)
    cycles: int = 0
    opportunities_found: int = 0
    executions: int = 0
    successes: int = 0
    failures: int = 0
    realized_usd: Decimal = Decimal("0")
    stop_requested: bool = False

    def get_summary(self) -> dict:
        elapsed = datetime.now() - self.started_at
        return {
            "session_start": self.started_at.isoformat(),
            "elapsed_seconds": int(elapsed.total_seconds()),
            "cycles": self.cycles,
            "opportunities_found": self.opportunities_found,
            "executions": self.executions,
            "successes": self.successes,
            "failures": self.failures,
            "realized_usd": str(self.realized_usd),
        }


async def run_cycle(
    service: FlashArbService,
    session: ArbSession,
    native_price_usd: Decimal,
    execute: bool,
) -> None:
    """One refresh + scan (+ execute) cycle."""
    session.cycles += 1
    opportunity = await service.scan(native_price_usd)
    if opportunity is None:
        return

    session.opportunities_found += 1
    if not execute:
        return

    session.executions += 1
    result = await service.execute(opportunity, native_price_usd)
    if result.success:
        session.successes += 1
        session.realized_usd += result.profit_usd or Decimal("0")
    else:
        session.failures += 1

    logger.info(
        "Execution result",
        extra={"context": {"pair": opportunity.display_pair, **result.to_dict()}},
    )


async def arb_loop(
    config: ArbConfig,
    session: ArbSession,
    native_price_usd: Decimal,
    interval_ms: int,
    duration_seconds: int | None,
    execute: bool,
) -> None:
    """
    Continuous refresh / scan / execute loop.

    ConfigError stops the loop; other engine errors are logged and the
    loop continues with the next cycle.
    """
    service = FlashArbService(config)
    end_time = time.monotonic() + duration_seconds if duration_seconds else None

    try:
        if execute and not config.dry_run:
            # Transactions are signed for config.chain_id
            await service.verify_chain()

        pool_count = await service.refresh_pools()
        logger.info("Initial pool list", extra={"context": {"pools": pool_count}})

        while not session.stop_requested:
            if end_time and time.monotonic() >= end_time:
                logger.info("Duration limit reached")
                break

            try:
                await run_cycle(service, session, native_price_usd, execute)
            except ConfigError:
                raise
            except ArbError as e:
                session.failures += 1
                logger.error(
                    "Cycle failed",
                    extra={"context": {"code": e.code.value, "error": e.message, **e.details}},
                )

            if session.cycles % 10 == 0:
                logger.info("Session progress", extra={"context": session.get_summary()})

            if not session.stop_requested:
                await asyncio.sleep(interval_ms / 1000)
    finally:
        status = service.get_status()
        logger.info(
            "Service status",
            extra={"context": {"profit_24h_usd": status["profit_24h_usd"], "pools": status["registry"]["pool_count"]}},
        )
        await service.close()


def _parse_price(ctx: click.Context, param: click.Parameter, value: str) -> Decimal:
    try:
        price = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"not a number: {value}")
    if price <= 0:
        raise click.BadParameter("must be positive")
    return price


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file merged over the packaged configuration",
)
@click.option(
    "--native-price-usd",
    "-p",
    required=True,
    callback=_parse_price,
    help="USD price of the native asset (gas and wrapped-native pricing)",
)
@click.option(
    "--interval",
    "-i",
    default=None,
    type=int,
    help="Scan interval in milliseconds (default: from config)",
)
@click.option(
    "--duration",
    "-d",
    default=None,
    type=int,
    help="Session duration in seconds (default: infinite)",
)
@click.option(
    "--execute/--no-execute",
    default=False,
    help="Execute the best opportunity each cycle",
)
@click.option(
    "--log-level",
    "-l",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON log format",
)
def main(
    config_path: str | None,
    native_price_usd: Decimal,
    interval: int | None,
    duration: int | None,
    execute: bool,
    log_level: str,
    json_logs: bool,
) -> None:
    """
    Cross-venue flash-loan arbitrage.

    Scans for spreads between venues and, with --execute, borrows, swaps
    and repays in one transaction.
    """
    setup_logging(level=log_level, json_output=json_logs)

    try:
        config = load_arb_config(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    if interval is not None:
        config.scan_interval_ms = interval
        try:
            config.validate()
        except ConfigError as e:
            click.echo(f"Configuration error: {e}", err=True)
            sys.exit(2)

    set_global_context(
        service="flash-arb",
        chain=config.chain_name,
        chain_id=config.chain_id,
        dry_run=config.dry_run,
    )

    session = ArbSession()

    def handle_shutdown(signum: int, frame: object) -> None:
        session.stop_requested = True
        logger.info("Shutdown requested", extra={"context": {"signal": signum}})

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    if not config.enabled:
        logger.warning("Engine disabled (FLASH_ARB_ENABLED); scans will be no-ops")

    logger.info(
        "Starting flash-arb",
        extra={"context": {
            "interval_ms": config.scan_interval_ms,
            "duration_seconds": duration,
            "execute": execute,
            "min_profit_usd": str(config.min_profit_usd),
            "max_flash_usd": str(config.max_flash_usd),
        }},
    )

    exit_code = 0
    try:
        asyncio.run(arb_loop(config, session, native_price_usd, config.scan_interval_ms, duration, execute))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except ConfigError as e:
        logger.error("Configuration error", extra={"context": {"code": e.code.value, "error": e.message}})
        exit_code = 2

    summary = session.get_summary()
    logger.info("Flash-arb stopped", extra={"context": summary})

    click.echo("\n" + "=" * 60)
    click.echo("FLASH-ARB SESSION SUMMARY")
    click.echo("=" * 60)
    click.echo(f"Duration: {summary['elapsed_seconds']} seconds")
    click.echo(f"Cycles: {summary['cycles']}")
    click.echo(f"Opportunities found: {summary['opportunities_found']}")
    click.echo(f"Executions: {summary['executions']} ({summary['successes']} ok, {summary['failures']} failed)")
    click.echo(f"Realized profit: {format_usd(session.realized_usd, 2)}")
    click.echo("=" * 60)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
