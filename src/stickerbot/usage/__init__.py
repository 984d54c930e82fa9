"""Sticker usage tracking: recency table + JSON snapshot persistence.

Layout:
    ~/.stickerbot/
    ├── data.json          # Whole-table snapshot, rewritten on shutdown
    └── stickerbot.pid     # Daemon PID file

The table maps a sticker's ``file_unique_id`` to its latest ``file_id`` and
last usage time. It only grows; nothing is ever evicted.
"""

from stickerbot.usage.persistence import (
    DeserializationError,
    PersistentStore,
    SerializationError,
    StoreError,
)
from stickerbot.usage.tracker import RecencyTable, UsageEntry, UsageTracker

__all__ = [
    "DeserializationError",
    "PersistentStore",
    "RecencyTable",
    "SerializationError",
    "StoreError",
    "UsageEntry",
    "UsageTracker",
]
