"""Local CLI REPL connector for development and testing.

Commands:
    use <key> <ref>   record a sticker use
    recent            list stickers, most recent first
    exit | quit       leave
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from stickerbot.connectors.base import RecentRequest, StickerUsed

if TYPE_CHECKING:
    from stickerbot.connectors.base import EventHandler, InboundEvent
    from stickerbot.usage.tracker import UsageEntry

logger = logging.getLogger(__name__)

_CLI_CHAT_ID = "cli"
_CLI_SENDER = "user"


def parse_command(line: str) -> InboundEvent | None:
    """Map one REPL line to an event. Returns None for unknown input."""
    parts = line.split()
    if not parts:
        return None
    cmd = parts[0].lower()
    if cmd == "use" and len(parts) == 3:
        return StickerUsed(
            identity_key=parts[1],
            content_ref=parts[2],
            chat_id=_CLI_CHAT_ID,
            sender=_CLI_SENDER,
            connector_name="cli",
        )
    if cmd == "recent" and len(parts) == 1:
        return RecentRequest(request_id=_CLI_CHAT_ID, sender=_CLI_SENDER, connector_name="cli")
    return None


class CLIConnector:
    """Interactive REPL connector. Reads stdin, writes to stdout."""

    def __init__(self) -> None:
        self._running = False

    @property
    def name(self) -> str:
        return "cli"

    async def start(self, handler: EventHandler) -> None:
        self._running = True
        loop = asyncio.get_event_loop()

        print("stickerbot REPL (use <key> <ref> | recent | exit)")
        print("-" * 48)

        while self._running:
            try:
                line = await loop.run_in_executor(None, self._read_input)
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                break

            if line is None or line.strip().lower() in ("exit", "quit"):
                print("Bye!")
                break

            text = line.strip()
            if not text:
                continue

            event = parse_command(text)
            if event is None:
                print("Usage: use <key> <ref> | recent | exit")
                continue

            entries = await handler(event)
            if isinstance(event, RecentRequest):
                await self.answer(event, entries or [])
            else:
                print(f"Recorded {event.identity_key}")

    def _read_input(self) -> str | None:
        try:
            sys.stdout.write("\n> ")
            sys.stdout.flush()
            raw = sys.stdin.buffer.readline()
            if not raw:
                return None
            return raw.decode("utf-8", errors="replace").rstrip("\n")
        except EOFError:
            return None

    async def stop(self) -> None:
        self._running = False

    async def answer(self, request: RecentRequest, entries: list[UsageEntry]) -> None:
        if not entries:
            print("(no stickers yet)")
            return
        for i, entry in enumerate(entries, 1):
            ts = entry.last_used_at.isoformat(timespec="seconds")
            print(f"{i:>3}. {entry.content_ref}  [{ts}]  id={entry.id}")
