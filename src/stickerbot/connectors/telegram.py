"""Telegram Bot API connector (long polling).

Receives sticker messages and inline queries via getUpdates, answers inline
queries with cached-sticker results via answerInlineQuery.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from stickerbot.config import MAX_INLINE_RESULTS
from stickerbot.connectors.base import RecentRequest, StickerUsed

if TYPE_CHECKING:
    from stickerbot.config import TelegramConfig
    from stickerbot.connectors.base import EventHandler, InboundEvent
    from stickerbot.usage.tracker import UsageEntry

logger = logging.getLogger(__name__)

_ALLOWED_UPDATES = ["message", "inline_query"]


class TelegramAPIError(Exception):
    """Bot API replied with ok=false."""

    def __init__(self, method: str, description: str, error_code: int | None = None) -> None:
        super().__init__(f"{method} failed ({error_code}): {description}")
        self.method = method
        self.description = description
        self.error_code = error_code


# ── Pure helpers ─────────────────────────────────────────────


def parse_update(update: dict[str, Any], connector_name: str = "telegram") -> InboundEvent | None:
    """Turn a raw Update object into an inbound event, or None if irrelevant."""
    message = update.get("message")
    if message:
        sticker = message.get("sticker")
        if not sticker:
            return None
        return StickerUsed(
            identity_key=sticker["file_unique_id"],
            content_ref=sticker["file_id"],
            chat_id=str(message.get("chat", {}).get("id", "")),
            sender=str(message.get("from", {}).get("id", "")),
            connector_name=connector_name,
        )

    query = update.get("inline_query")
    if query:
        return RecentRequest(
            request_id=query["id"],
            sender=str(query.get("from", {}).get("id", "")),
            offset=query.get("offset", ""),
            connector_name=connector_name,
        )
    return None


def to_inline_results(entries: list[UsageEntry]) -> list[dict[str, Any]]:
    """Project entries to InlineQueryResultCachedSticker objects."""
    return [
        {"type": "sticker", "id": entry.id, "sticker_file_id": entry.content_ref}
        for entry in entries
    ]


def paginate(
    entries: list[UsageEntry], offset: str, page_size: int = MAX_INLINE_RESULTS
) -> tuple[list[UsageEntry], str]:
    """Slice one page of results. The offset string is the index of the first item."""
    try:
        start = max(0, int(offset)) if offset else 0
    except ValueError:
        start = 0
    end = start + page_size
    next_offset = str(end) if end < len(entries) else ""
    return entries[start:end], next_offset


# ── Connector ────────────────────────────────────────────────


class TelegramConnector:
    """Long-polling Telegram connector using aiohttp."""

    def __init__(
        self, config: TelegramConfig, session: aiohttp.ClientSession | None = None
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._handler: EventHandler | None = None
        self._offset: int | None = None
        self._running = False

    @property
    def name(self) -> str:
        return "telegram"

    @property
    def _api_url(self) -> str:
        return f"{self._config.api_base.rstrip('/')}/bot{self._config.token}"

    async def start(self, handler: EventHandler) -> None:
        self._handler = handler
        self._running = True
        if self._session is None:
            # Long poll can hold the connection for poll_timeout seconds
            timeout = aiohttp.ClientTimeout(total=self._config.poll_timeout + 10)
            self._session = aiohttp.ClientSession(timeout=timeout)
        logger.info("Telegram long polling started")

        while self._running:
            try:
                updates = await self._get_updates()
            except (aiohttp.ClientError, asyncio.TimeoutError, TelegramAPIError) as e:
                if not self._running:
                    break
                logger.error("Telegram getUpdates error: %s", e)
                await asyncio.sleep(self._config.retry_delay)
                continue

            for update in updates:
                # Confirm every update, including ones we ignore or fail on
                update_id = update.get("update_id") if isinstance(update, dict) else None
                if isinstance(update_id, int):
                    self._offset = update_id + 1
                try:
                    await self._dispatch(update)
                except Exception as e:
                    logger.error("Skipping Telegram update %s: %r", update_id, e)

    async def _get_updates(self) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "timeout": self._config.poll_timeout,
            "allowed_updates": _ALLOWED_UPDATES,
        }
        if self._offset is not None:
            payload["offset"] = self._offset
        updates = await self._call("getUpdates", payload)
        if not isinstance(updates, list):
            raise TelegramAPIError("getUpdates", f"expected a list of updates, got {updates!r}")
        return updates

    async def _dispatch(self, update: dict[str, Any]) -> None:
        event = parse_update(update, self.name)
        if event is None:
            return

        entries = await self._handler(event)
        if isinstance(event, RecentRequest):
            await self.answer(event, entries or [])

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        async with self._session.post(f"{self._api_url}/{method}", json=payload) as resp:
            try:
                body = await resp.json(content_type=None)
            except ValueError as e:
                # e.g. an HTML error page from a proxy
                raise TelegramAPIError(method, f"unreadable reply ({e})", resp.status) from e
        if not isinstance(body, dict):
            raise TelegramAPIError(method, f"unexpected reply {body!r}")
        if not body.get("ok"):
            raise TelegramAPIError(method, body.get("description", ""), body.get("error_code"))
        return body.get("result")

    async def stop(self) -> None:
        self._running = False
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
        logger.info("Telegram long polling stopped")

    async def answer(self, request: RecentRequest, entries: list[UsageEntry]) -> None:
        """Answer an inline query with one page of cached stickers."""
        page, next_offset = paginate(entries, request.offset, self._config.page_size)
        payload = {
            "inline_query_id": request.request_id,
            "results": to_inline_results(page),
            "cache_time": 0,
            "is_personal": False,
            "next_offset": next_offset,
        }
        try:
            await self._call("answerInlineQuery", payload)
        except (aiohttp.ClientError, asyncio.TimeoutError, TelegramAPIError) as e:
            logger.error("Telegram answer for query %s failed: %s", request.request_id, e)
