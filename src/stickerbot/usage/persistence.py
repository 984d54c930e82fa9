"""JSON snapshot of the recency table.

The whole table is the unit of transfer: ``load()`` reads it all once at
startup, ``save()`` rewrites it all at shutdown. Writes go to a sibling
temporary file that then replaces the snapshot, so a crash mid-write leaves
the previous snapshot intact.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from stickerbot.usage.tracker import RecencyTable, UsageEntry

logger = logging.getLogger(__name__)

_ENTRIES_KEY = "entries"
_ENTRY_FIELDS = ("id", "content_ref", "last_used_at")


class StoreError(Exception):
    """Base class for snapshot failures."""


class SerializationError(StoreError):
    """The table could not be encoded for writing."""


class DeserializationError(SerializationError):
    """The snapshot on disk is not a valid serialized table."""


class PersistentStore:
    """Load/save the recency table at a fixed path. No locking: single writer."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # ── Load ──────────────────────────────────────────────────

    def load(self) -> RecencyTable:
        """Read the snapshot, creating an empty one first if none exists.

        Raises DeserializationError for malformed contents and OSError when
        the file cannot be created or read.
        """
        if not self.path.exists():
            logger.info("No snapshot at %s, creating an empty one", self.path)
            self._write_atomic(self._encode({}))

        raw = self.path.read_bytes()
        table = self._decode(raw)
        logger.info("Loaded %d sticker(s) from %s", len(table), self.path)
        return table

    def _decode(self, raw: bytes) -> RecencyTable:
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DeserializationError(f"{self.path}: not valid JSON ({e})") from e

        if not isinstance(data, dict):
            raise DeserializationError(f"{self.path}: top level must be an object")
        entries = data.get(_ENTRIES_KEY)
        if not isinstance(entries, dict):
            raise DeserializationError(f"{self.path}: missing '{_ENTRIES_KEY}' object")

        table: RecencyTable = {}
        for key, value in entries.items():
            table[key] = self._decode_entry(key, value)
        return table

    def _decode_entry(self, key: str, value: Any) -> UsageEntry:
        if not isinstance(value, dict):
            raise DeserializationError(f"{self.path}: entry {key!r} must be an object")
        missing = [name for name in _ENTRY_FIELDS if name not in value]
        if missing:
            raise DeserializationError(
                f"{self.path}: entry {key!r} lacks {', '.join(missing)}"
            )
        for name in ("id", "content_ref"):
            if not isinstance(value[name], str) or not value[name]:
                raise DeserializationError(
                    f"{self.path}: entry {key!r} field {name!r} must be a non-empty string"
                )
        return UsageEntry(
            id=value["id"],
            content_ref=value["content_ref"],
            last_used_at=self._parse_timestamp(key, value["last_used_at"]),
        )

    def _parse_timestamp(self, key: str, value: Any) -> datetime:
        if not isinstance(value, str):
            raise DeserializationError(f"{self.path}: entry {key!r} has a non-string timestamp")
        # fromisoformat only accepts a "Z" suffix from Python 3.11 on
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(value)
        except ValueError as e:
            raise DeserializationError(
                f"{self.path}: entry {key!r} has a bad timestamp {value!r}"
            ) from e
        # Offset-less timestamps are read as local time
        return ts if ts.tzinfo is not None else ts.astimezone()

    # ── Save ──────────────────────────────────────────────────

    def save(self, table: RecencyTable) -> None:
        """Replace the snapshot with the full table.

        Raises SerializationError if the table cannot be encoded and OSError
        if the file cannot be written.
        """
        self._write_atomic(self._encode(table))
        logger.info("Saved %d sticker(s) to %s", len(table), self.path)

    def _encode(self, table: RecencyTable) -> bytes:
        try:
            data = {
                _ENTRIES_KEY: {
                    key: {
                        "id": entry.id,
                        "content_ref": entry.content_ref,
                        "last_used_at": entry.last_used_at.isoformat(),
                    }
                    for key, entry in table.items()
                }
            }
            return json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")
        except (TypeError, ValueError, AttributeError) as e:
            raise SerializationError(f"Cannot encode sticker table: {e}") from e

    def _write_atomic(self, payload: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_bytes(payload)
            os.replace(tmp, self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
