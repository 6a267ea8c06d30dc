#!/usr/bin/env python3
"""
AI Sim Trader - simulated LLM trading bot

Usage:
    python run.py                 # Start bot with terminal dashboard
    python run.py --risk high     # Start with a different risk profile
    python run.py --headless      # Log to console/file only, no dashboard
    python run.py --help          # Show all options

Without FINNHUB_API_KEY the bot runs on simulated market data. Decisions
come from the Ollama model configured by OLLAMA_URL / OLLAMA_MODEL.
"""

import argparse
import asyncio
import signal
from pathlib import Path

from core.bot_controller import BotController
from core.config import settings
from core.journal import SessionJournal
from core.logging_utils import add_file_handler, get_logger, setup_logging, suppress_console_logging

logger = get_logger(__name__)


def build_controller(risk: str) -> BotController:
    journal = SessionJournal(settings.log_dir) if settings.journal_enabled else None
    return BotController(journal=journal, risk_level=risk)


async def run(args: argparse.Namespace):
    controller = build_controller(args.risk)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows: KeyboardInterrupt still ends asyncio.run

    result = await controller.start()
    logger.info("[RUN] Bot started on %s data", result.get("mode"))

    try:
        if args.headless:
            await stop_event.wait()
        else:
            from rich.live import Live
            from dashboard import Dashboard

            dashboard = Dashboard(controller.snapshot)
            suppress_console_logging(True)
            try:
                with Live(dashboard.render(), console=dashboard.console, screen=True, auto_refresh=False) as live:
                    while not stop_event.is_set():
                        live.update(dashboard.render(), refresh=True)
                        try:
                            await asyncio.wait_for(stop_event.wait(), timeout=args.refresh)
                        except asyncio.TimeoutError:
                            pass
            finally:
                suppress_console_logging(False)
    finally:
        await controller.stop()
        await controller.scheduler.wait_idle()
        snap = controller.snapshot()
        logger.info(
            "[RUN] Stopped. Value %.2f (P&L %+.2f, %+.2f%%), %d trades",
            snap.portfolio_value, snap.profit_loss, snap.profit_loss_pct, snap.trade_count,
        )


def main():
    parser = argparse.ArgumentParser(
        prog='simtrader',
        description='AI Sim Trader - simulated LLM trading bot',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--risk', choices=['low', 'medium', 'high'], default=settings.risk_level,
                        help='Risk profile sent to the model (default: %(default)s)')
    parser.add_argument('--headless', action='store_true',
                        help='No dashboard; log to the console (logs/bot.log is always written)')
    parser.add_argument('--refresh', type=float, default=1.0,
                        help='Dashboard refresh interval in seconds (default: 1.0)')
    args = parser.parse_args()

    setup_logging(settings.log_level)
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    add_file_handler(log_dir / "bot.log")

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
