"""In-memory recency table for used stickers.

One entry per identity key (Telegram ``file_unique_id``). A later use of the
same sticker refreshes its ``content_ref`` (the ``file_id`` Telegram handed out
this time) and its timestamp; the entry ``id`` never changes once assigned.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current time as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


@dataclass
class UsageEntry:
    """A sticker that has been used at least once."""

    id: str
    content_ref: str
    last_used_at: datetime

    @classmethod
    def new(cls, content_ref: str, now: datetime) -> UsageEntry:
        return cls(id=str(uuid.uuid4()), content_ref=content_ref, last_used_at=now)

    def touch(self, content_ref: str, now: datetime) -> None:
        """Record another use. Timestamp never moves backwards."""
        self.content_ref = content_ref
        if now > self.last_used_at:
            self.last_used_at = now


# identity key → entry
RecencyTable = dict[str, UsageEntry]


class UsageTracker:
    """Owns the recency table; upserts on use and lists most-recent first."""

    def __init__(self, table: RecencyTable | None = None, clock: Clock | None = None) -> None:
        self._table: RecencyTable = table if table is not None else {}
        self._clock = clock or local_now

    @property
    def table(self) -> RecencyTable:
        return self._table

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, identity_key: object) -> bool:
        return identity_key in self._table

    def get(self, identity_key: str) -> UsageEntry | None:
        return self._table.get(identity_key)

    def record_use(self, identity_key: str, content_ref: str) -> UsageEntry:
        """Create the entry on first sight, otherwise refresh ref + timestamp."""
        now = self._clock()
        entry = self._table.get(identity_key)
        if entry is None:
            entry = UsageEntry.new(content_ref, now)
            self._table[identity_key] = entry
            logger.debug("New sticker %s (id=%s)", identity_key, entry.id)
        else:
            entry.touch(content_ref, now)
            logger.debug("Sticker %s used again", identity_key)
        return entry

    def list_by_recency(self) -> list[UsageEntry]:
        """All entries, most recently used first.

        Returns copies, so callers may hold on to the result while the table
        keeps changing. Ties keep no particular order.
        """
        entries = [dataclasses.replace(entry) for entry in self._table.values()]
        entries.sort(key=lambda entry: entry.last_used_at, reverse=True)
        return entries
