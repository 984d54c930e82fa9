"""Daemon process: always-on mode for production.

Usage: python -m stickerbot serve

Manages:
- PID file (prevent duplicate instances)
- Sticker table: load at start, save at exit
- Telegram connector lifecycle
- Graceful shutdown (SIGTERM/SIGINT)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from stickerbot.config import StickerBotConfig, load_config
from stickerbot.connectors.telegram import TelegramConnector
from stickerbot.core import StickerBot
from stickerbot.usage.persistence import StoreError

logger = logging.getLogger(__name__)


class StickerBotDaemon:
    """Always-on daemon process."""

    def __init__(self, config: StickerBotConfig | None = None) -> None:
        self.config = config or load_config()
        self._shutdown_event = asyncio.Event()

    # ── PID file management ──────────────────────────────────

    def _write_pid(self) -> None:
        self.config.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_file.write_text(str(os.getpid()))
        logger.info("PID file written: %s (pid=%d)", self.config.pid_file, os.getpid())

    def _remove_pid(self) -> None:
        if self.config.pid_file.exists():
            self.config.pid_file.unlink()

    def _check_existing(self) -> None:
        if not self.config.pid_file.exists():
            return
        try:
            pid = int(self.config.pid_file.read_text().strip())
            os.kill(pid, 0)  # Check if process exists
        except (ProcessLookupError, ValueError):
            # Stale PID file
            self._remove_pid()
            return
        except PermissionError:
            pass  # Alive, owned by another user
        print(f"stickerbot daemon already running (pid={pid}). Exiting.", file=sys.stderr)
        sys.exit(1)

    # ── Signal handling ──────────────────────────────────────

    def _setup_signals(self) -> None:
        loop = asyncio.get_event_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown_event.set()

    # ── Build components ─────────────────────────────────────

    def build_bot(self) -> StickerBot:
        """Create the hub and load the sticker table. Load failures are fatal."""
        bot = StickerBot(self.config)
        try:
            bot.load()
        except (OSError, StoreError) as e:
            logger.error("Cannot load sticker table from %s: %s", self.config.data_file, e)
            raise
        return bot

    def _build_connectors(self, bot: StickerBot) -> None:
        if not self.config.telegram.token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN not set")
        bot.add_connector(TelegramConnector(self.config.telegram))

    @staticmethod
    def save_bot(bot: StickerBot) -> None:
        """Persist the table; a failure is reported and re-raised, never swallowed."""
        try:
            bot.save()
        except (OSError, StoreError) as e:
            logger.error("Failed to save sticker table to %s: %s", bot.store.path, e)
            raise

    # ── Main run loop ────────────────────────────────────────

    async def run(self) -> None:
        self._check_existing()
        self._write_pid()
        try:
            bot = self.build_bot()
            self._build_connectors(bot)
            self._setup_signals()

            logger.info("stickerbot daemon starting (%d stickers)", len(bot.tracker))

            try:
                await self._serve(bot)
            finally:
                await bot.stop()
                self.save_bot(bot)
        finally:
            self._remove_pid()
            logger.info("stickerbot daemon stopped.")

    async def _serve(self, bot: StickerBot) -> None:
        """Run connectors until a shutdown signal arrives or they all return."""
        serving = asyncio.ensure_future(bot.start())
        shutdown = asyncio.ensure_future(self._shutdown_event.wait())
        done, _ = await asyncio.wait({serving, shutdown}, return_when=asyncio.FIRST_COMPLETED)

        if serving in done:
            shutdown.cancel()
            serving.result()  # surface connector crashes
            return

        serving.cancel()
        try:
            await serving
        except asyncio.CancelledError:
            pass
