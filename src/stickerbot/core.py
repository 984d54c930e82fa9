"""StickerBot hub: routes connector events into the usage tracker.

Responsibilities:
1. Load the recency table once (via PersistentStore) and own it
2. StickerUsed → upsert in the tracker
3. RecentRequest → return the most-recent-first listing to the connector
4. Save the table back on shutdown

Everything runs on one event loop and tracker calls never await, so table
access is serialized without locks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from stickerbot.config import StickerBotConfig
from stickerbot.connectors.base import RecentRequest, StickerUsed
from stickerbot.usage.persistence import PersistentStore
from stickerbot.usage.tracker import UsageTracker

if TYPE_CHECKING:
    from stickerbot.connectors.base import Connector, InboundEvent
    from stickerbot.usage.tracker import Clock, UsageEntry

logger = logging.getLogger(__name__)


class StickerBot:
    """Core hub. Owns the tracker and answers connector events."""

    def __init__(
        self,
        config: StickerBotConfig,
        store: PersistentStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config
        self.store = store or PersistentStore(config.data_file)
        self._clock = clock
        self._tracker: UsageTracker | None = None
        self._connectors: list[Connector] = []

    # ── Table lifecycle ──────────────────────────────────────

    @property
    def tracker(self) -> UsageTracker:
        if self._tracker is None:
            raise RuntimeError("Sticker table not loaded. Call load() first.")
        return self._tracker

    @property
    def loaded(self) -> bool:
        return self._tracker is not None

    def load(self) -> None:
        """Read the snapshot. Errors propagate: there is no table without it."""
        self._tracker = UsageTracker(self.store.load(), clock=self._clock)

    def save(self) -> None:
        """Write the full table back. Errors propagate to the caller."""
        self.store.save(self.tracker.table)

    # ── Connector management ─────────────────────────────────

    def add_connector(self, connector: Connector) -> None:
        self._connectors.append(connector)
        logger.info("Registered connector: %s", connector.name)

    # ── Event handling ───────────────────────────────────────

    async def handle_event(self, event: InboundEvent) -> list[UsageEntry] | None:
        """Entry point for all connectors."""
        if isinstance(event, StickerUsed):
            self.tracker.record_use(event.identity_key, event.content_ref)
            return None
        if isinstance(event, RecentRequest):
            entries = self.tracker.list_by_recency()
            logger.debug(
                "[%s] %s asked for recent stickers (%d)",
                event.connector_name,
                event.sender,
                len(entries),
            )
            return entries
        raise TypeError(f"Unsupported event: {type(event).__name__}")

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Start all connectors (each polls for events)."""
        if not self._connectors:
            raise RuntimeError("No connectors registered. Call add_connector() first.")

        tasks = [connector.start(self.handle_event) for connector in self._connectors]
        await asyncio.gather(*tasks)

    async def stop(self) -> None:
        """Gracefully stop all connectors."""
        for connector in self._connectors:
            await connector.stop()
