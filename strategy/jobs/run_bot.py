# PATH: strategy/jobs/run_bot.py
"""
Arbitrage bot runner.

Runs the price refresh, detection and (optionally) auto-execution loops
until interrupted or until --duration elapses.

Usage:
    python -m strategy.jobs.run_bot --once
    python -m strategy.jobs.run_bot --duration 300 --auto-execute
"""

import asyncio
import json
import signal
import sys

import click

from core.constants import ErrorCode
from core.exceptions import ConfigurationError
from core.logging import get_logger, log_error, set_global_context, setup_logging
from strategy.config import BotConfig, load_bot_config
from strategy.engine import ArbitrageEngine, build_engine

logger = get_logger("arb.jobs.run_bot")

EXIT_CONFIG_ERROR = 2


async def run_bot(engine: ArbitrageEngine, once: bool, duration: float | None) -> dict | None:
    """Run one cycle or the loops; returns the cycle summary when once."""
    if once:
        try:
            return await engine.run_once()
        finally:
            await engine.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.request_stop)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    await engine.run(duration)
    return None


def print_summary(engine: ArbitrageEngine) -> None:
    stats = engine.execution_stats()
    detector = engine.detector_stats()
    prices = engine.feeds.status()

    click.echo("\n" + "=" * 60)
    click.echo("ARBITRAGE BOT SUMMARY")
    click.echo("=" * 60)
    click.echo(f"Networks: {', '.join(engine.config.networks)}")
    click.echo(f"Price refresh passes: {prices['passes']}")
    click.echo(f"Detection cycles: {detector['cycles']}")
    click.echo(f"Candidates detected: {detector['total_candidates']}")
    click.echo(f"Opportunities usable: {detector['usable']}")
    click.echo(f"Execution attempts: {stats['total_attempts']}")
    click.echo(f"Successful: {stats['successful_attempts']} ({stats['success_rate']:.1f}%)")
    click.echo(f"Realized profit (24h): {stats['total_profit_24h']:.6f}")
    click.echo("=" * 60)


def _apply_cli_overrides(
    config: BotConfig,
    auto_execute: bool | None,
    seed: int | None,
) -> None:
    if auto_execute is not None:
        config.schedule.auto_execute = auto_execute
    if seed is not None:
        config.paper.seed = seed


@click.command()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML config file (default: config/bot.yaml)",
)
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single refresh/detect/execute cycle and exit",
)
@click.option(
    "--duration",
    "-d",
    default=None,
    type=float,
    help="Run duration in seconds (default: until interrupted)",
)
@click.option(
    "--auto-execute/--no-auto-execute",
    default=None,
    help="Override schedule.auto_execute",
)
@click.option(
    "--log-level",
    "-l",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level (default: from config)",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON log format",
)
@click.option(
    "--seed",
    default=None,
    type=int,
    help="Seed for the simulated market and paper backend",
)
def main(
    config_path: str | None,
    once: bool,
    duration: float | None,
    auto_execute: bool | None,
    log_level: str | None,
    json_logs: bool,
    seed: int | None,
) -> None:
    """
    Cross-venue DEX arbitrage bot (testnet only).
    """
    try:
        config = load_bot_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    _apply_cli_overrides(config, auto_execute, seed)

    setup_logging(level=log_level or config.log_level, json_output=json_logs)
    set_global_context(
        service="arb-bot",
        mode=config.security.operating_mode,
    )

    engine = build_engine(config)

    logger.info(
        "Starting arbitrage bot",
        extra={"context": {
            "networks": list(config.networks),
            "once": once,
            "duration_seconds": duration,
            "auto_execute": config.schedule.auto_execute,
        }},
    )

    try:
        summary = asyncio.run(run_bot(engine, once, duration))
    except KeyboardInterrupt:
        logger.info("Bot interrupted")
        summary = None
    except Exception as e:
        log_error(logger, ErrorCode.INTERNAL_ERROR.value, f"Bot error: {e}", exc_info=True)
        sys.exit(1)

    logger.info("Bot stopped", extra={"context": engine.execution_stats()})

    if summary is not None:
        click.echo(json.dumps(summary, indent=2, default=str))
    print_summary(engine)


if __name__ == "__main__":
    main()
