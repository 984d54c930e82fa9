"""Tests for the daemon lifecycle (load at start, save at exit)."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from stickerbot.config import StickerBotConfig, TelegramConfig
from stickerbot.connectors.base import RecentRequest, StickerUsed
from stickerbot.daemon import StickerBotDaemon
from stickerbot.usage.persistence import DeserializationError


class OneShotConnector:
    """Stands in for the Telegram connector: sends a few events, then returns."""

    instances: list[OneShotConnector] = []

    def __init__(self, config) -> None:
        self.answers = []
        OneShotConnector.instances.append(self)

    @property
    def name(self) -> str:
        return "oneshot"

    async def start(self, handler) -> None:
        await handler(StickerUsed(identity_key="sticker-1", content_ref="file-a"))
        entries = await handler(RecentRequest(request_id="q"))
        await self.answer(RecentRequest(request_id="q"), entries)

    async def stop(self) -> None:
        pass

    async def answer(self, request, entries) -> None:
        self.answers.append(entries)


@pytest.fixture
def config(tmp_path: Path) -> StickerBotConfig:
    return StickerBotConfig(
        telegram=TelegramConfig(token="123:abc"),
        data_file=tmp_path / "data.json",
        pid_file=tmp_path / "stickerbot.pid",
    )


class TestBuildBot:
    def test_bootstraps_missing_file(self, config: StickerBotConfig):
        bot = StickerBotDaemon(config).build_bot()
        assert len(bot.tracker) == 0
        assert config.data_file.exists()

    def test_malformed_file_is_fatal(self, config: StickerBotConfig, caplog):
        config.data_file.write_text("{broken", encoding="utf-8")
        with pytest.raises(DeserializationError):
            StickerBotDaemon(config).build_bot()
        assert "Cannot load" in caplog.text


class TestSaveBot:
    def test_save_failure_is_reraised(self, config: StickerBotConfig, caplog):
        daemon = StickerBotDaemon(config)
        bot = daemon.build_bot()
        with patch.object(bot.store, "save", side_effect=OSError("read-only")):
            with pytest.raises(OSError):
                daemon.save_bot(bot)
        assert "Failed to save" in caplog.text


class TestPidFile:
    def test_stale_pid_removed(self, config: StickerBotConfig):
        config.pid_file.write_text("not-a-pid")
        StickerBotDaemon(config)._check_existing()
        assert not config.pid_file.exists()

    def test_running_instance_exits(self, config: StickerBotConfig):
        config.pid_file.write_text(str(os.getpid()))
        with pytest.raises(SystemExit):
            StickerBotDaemon(config)._check_existing()


class TestRun:
    @pytest.mark.asyncio
    async def test_run_saves_on_exit(self, config: StickerBotConfig):
        OneShotConnector.instances.clear()
        with patch("stickerbot.daemon.TelegramConnector", OneShotConnector):
            await StickerBotDaemon(config).run()

        [connector] = OneShotConnector.instances
        assert [e.content_ref for e in connector.answers[0]] == ["file-a"]

        saved = json.loads(config.data_file.read_text(encoding="utf-8"))
        assert saved["entries"]["sticker-1"]["content_ref"] == "file-a"
        assert not config.pid_file.exists()

    @pytest.mark.asyncio
    async def test_run_without_token(self, config: StickerBotConfig):
        config.telegram.token = ""
        with pytest.raises(RuntimeError, match="TELEGRAM_BOT_TOKEN"):
            await StickerBotDaemon(config).run()
        assert not config.pid_file.exists()

    @pytest.mark.asyncio
    async def test_shutdown_signal_stops_serving(self, config: StickerBotConfig):
        class BlockingConnector(OneShotConnector):
            async def start(self, handler) -> None:
                await handler(StickerUsed(identity_key="sticker-2", content_ref="file-b"))
                daemon._shutdown_event.set()
                await asyncio.Event().wait()

        daemon = StickerBotDaemon(config)
        with patch("stickerbot.daemon.TelegramConnector", BlockingConnector):
            await daemon.run()

        saved = json.loads(config.data_file.read_text(encoding="utf-8"))
        assert "sticker-2" in saved["entries"]


class TestPidOwnedByOtherUser:
    def test_permission_error_means_running(self, config: StickerBotConfig):
        config.pid_file.write_text("1")
        with patch("stickerbot.daemon.os.kill", side_effect=PermissionError):
            with pytest.raises(SystemExit):
                StickerBotDaemon(config)._check_existing()
        assert config.pid_file.exists()
