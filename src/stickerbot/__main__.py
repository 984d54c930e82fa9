"""Entry point: python -m stickerbot [serve]

- No args / "chat": Interactive CLI REPL (development/testing)
- "serve":          Daemon mode (production, Telegram long polling)
"""

from __future__ import annotations

import asyncio
import logging
import sys

from stickerbot.config import load_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_cli() -> None:
    """Interactive CLI REPL mode, backed by the same data file."""
    config = load_config()
    _setup_logging(config.log_level)

    from stickerbot.connectors.cli import CLIConnector
    from stickerbot.daemon import StickerBotDaemon

    daemon = StickerBotDaemon(config)
    bot = daemon.build_bot()
    bot.add_connector(CLIConnector())

    try:
        asyncio.run(bot.start())
    except KeyboardInterrupt:
        pass
    finally:
        daemon.save_bot(bot)


def _run_serve() -> None:
    """Daemon mode: Telegram connector until SIGINT/SIGTERM."""
    config = load_config()
    _setup_logging(config.log_level)

    from stickerbot.daemon import StickerBotDaemon

    daemon = StickerBotDaemon(config)
    asyncio.run(daemon.run())


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else "chat"

    if cmd in ("chat", "repl"):
        _run_cli()
    elif cmd == "serve":
        _run_serve()
    else:
        print("Usage: python -m stickerbot [chat|serve]")
        print("  chat   Interactive CLI REPL (default)")
        print("  serve  Daemon mode with the Telegram connector")
        sys.exit(1)


if __name__ == "__main__":
    main()
