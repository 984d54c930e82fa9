"""Connector protocol and shared event types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Coroutine, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from stickerbot.usage.tracker import UsageEntry


@dataclass
class StickerUsed:
    """A sticker was sent somewhere the bot can see."""

    identity_key: str
    content_ref: str
    chat_id: str = ""
    sender: str = ""
    connector_name: str = ""


@dataclass
class RecentRequest:
    """A client asked for its recently used stickers (inline query)."""

    request_id: str
    sender: str = ""
    offset: str = ""
    connector_name: str = ""


InboundEvent = Union[StickerUsed, RecentRequest]

# Callback type: core.StickerBot.handle_event
EventHandler = Callable[[InboundEvent], Coroutine[None, None, "list[UsageEntry] | None"]]


@runtime_checkable
class Connector(Protocol):
    """Protocol that all connectors must implement."""

    @property
    def name(self) -> str: ...

    async def start(self, handler: EventHandler) -> None:
        """Start receiving events. Call handler for each one."""
        ...

    async def stop(self) -> None:
        """Gracefully stop the connector."""
        ...

    async def answer(self, request: RecentRequest, entries: list[UsageEntry]) -> None:
        """Send the recency listing back for the given request."""
        ...
