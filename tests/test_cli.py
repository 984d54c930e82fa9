"""Tests for the CLI REPL connector."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from stickerbot.connectors.base import RecentRequest, StickerUsed
from stickerbot.connectors.cli import CLIConnector, parse_command
from stickerbot.usage.tracker import UsageEntry


class TestParseCommand:
    def test_use(self):
        event = parse_command("use sticker-1 file-a")
        assert isinstance(event, StickerUsed)
        assert event.identity_key == "sticker-1"
        assert event.content_ref == "file-a"
        assert event.connector_name == "cli"

    def test_recent(self):
        assert isinstance(parse_command("RECENT"), RecentRequest)

    @pytest.mark.parametrize("line", ["", "use", "use only-key", "recent extra", "hello"])
    def test_unknown(self, line: str):
        assert parse_command(line) is None


class TestCLIConnector:
    def test_name(self):
        assert CLIConnector().name == "cli"

    @pytest.mark.asyncio
    async def test_answer_lists_entries(self, capsys):
        ts = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        entries = [UsageEntry(id="id-1", content_ref="file-a", last_used_at=ts)]
        await CLIConnector().answer(RecentRequest(request_id="cli"), entries)
        out = capsys.readouterr().out
        assert "file-a" in out
        assert "id=id-1" in out

    @pytest.mark.asyncio
    async def test_answer_empty(self, capsys):
        await CLIConnector().answer(RecentRequest(request_id="cli"), [])
        assert "no stickers" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_repl_session(self, capsys):
        lines = iter(["use s1 f1", "bogus", "recent", "exit"])
        connector = CLIConnector()
        connector._read_input = lambda: next(lines)
        seen = []

        async def handler(event):
            seen.append(event)
            if isinstance(event, RecentRequest):
                return [UsageEntry(id="i", content_ref="f1", last_used_at=datetime.now(timezone.utc))]
            return None

        await connector.start(handler)
        assert [type(e) for e in seen] == [StickerUsed, RecentRequest]
        out = capsys.readouterr().out
        assert "Recorded s1" in out
        assert "Usage:" in out
        assert "Bye!" in out
