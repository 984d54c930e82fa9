"""Configuration loading from environment variables and stickerbot.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_HOME_DIR = Path.home() / ".stickerbot"
_DEFAULT_DATA_FILE = _HOME_DIR / "data.json"
_CONFIG_FILENAME = "stickerbot.toml"

# Telegram rejects answerInlineQuery with more than 50 results
MAX_INLINE_RESULTS = 50


@dataclass
class TelegramConfig:
    """Telegram Bot API connector configuration."""

    token: str = ""
    api_base: str = "https://api.telegram.org"
    poll_timeout: int = 30
    retry_delay: float = 5.0
    page_size: int = MAX_INLINE_RESULTS


@dataclass
class StickerBotConfig:
    """Top-level stickerbot configuration."""

    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    data_file: Path = _DEFAULT_DATA_FILE
    pid_file: Path = _HOME_DIR / "stickerbot.pid"
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> StickerBotConfig:
    """Load configuration from environment variables and optional stickerbot.toml.

    Priority: environment variables > stickerbot.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.stickerbot/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _HOME_DIR / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    telegram_data = file_data.get("telegram", {})
    page_size = int(telegram_data.get("page_size", MAX_INLINE_RESULTS))

    config = StickerBotConfig(
        telegram=TelegramConfig(
            token=os.getenv("TELEGRAM_BOT_TOKEN", telegram_data.get("token", "")),
            api_base=os.getenv(
                "TELEGRAM_API_BASE", telegram_data.get("api_base", "https://api.telegram.org")
            ),
            poll_timeout=int(
                os.getenv("TELEGRAM_POLL_TIMEOUT", telegram_data.get("poll_timeout", 30))
            ),
            retry_delay=float(
                os.getenv("TELEGRAM_RETRY_DELAY", telegram_data.get("retry_delay", 5.0))
            ),
            page_size=max(1, min(page_size, MAX_INLINE_RESULTS)),
        ),
        data_file=Path(
            os.getenv("STICKERBOT_DATA_FILE", file_data.get("data_file", str(_DEFAULT_DATA_FILE)))
        ).expanduser(),
        pid_file=Path(
            file_data.get("pid_file", str(_HOME_DIR / "stickerbot.pid"))
        ).expanduser(),
        log_level=os.getenv("STICKERBOT_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
