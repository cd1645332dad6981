from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from config import Settings
from database import STARBOARD_ENTRIES_COLLECTION, get_collection, persistence_enabled

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StarEntry:
    original_message_id: int
    original_channel_id: int
    original_author_id: int
    original_content: str | None
    original_timestamp: datetime
    original_url: str
    mirror_message_id: int | None
    star_count: int

    def with_mirror(self, mirror_message_id: int | None) -> StarEntry:
        return replace(self, mirror_message_id=mirror_message_id)


def entry_to_doc(entry: StarEntry) -> dict[str, Any]:
    doc = asdict(entry)
    doc["_id"] = entry.original_message_id
    doc["updated_at"] = datetime.now(timezone.utc)
    return doc


def entry_from_doc(doc: dict[str, Any]) -> StarEntry | None:
    try:
        timestamp = doc["original_timestamp"]
        if isinstance(timestamp, datetime) and timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        mirror = doc.get("mirror_message_id")
        return StarEntry(
            original_message_id=int(doc["original_message_id"]),
            original_channel_id=int(doc["original_channel_id"]),
            original_author_id=int(doc["original_author_id"]),
            original_content=doc.get("original_content"),
            original_timestamp=timestamp,
            original_url=str(doc["original_url"]),
            mirror_message_id=int(mirror) if mirror is not None else None,
            star_count=int(doc.get("star_count", 0)),
        )
    except (KeyError, TypeError, ValueError):
        LOGGER.warning("Skipping malformed starboard entry %s.", doc.get("_id"))
        return None


class StarEntryStore:
    """
    Original message id -> StarEntry. The in-memory dict is authoritative; when MongoDB is
    configured every write is copied to the ``starboard_entries`` collection best-effort.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        collection: Collection | None = None,
    ) -> None:
        self._entries: dict[int, StarEntry] = {}
        if collection is None and persistence_enabled(settings):
            collection = get_collection(settings, name=STARBOARD_ENTRIES_COLLECTION)
        self._collection = collection

    @property
    def persistent(self) -> bool:
        return self._collection is not None

    def get(self, original_message_id: int) -> StarEntry | None:
        return self._entries.get(original_message_id)

    def __contains__(self, original_message_id: object) -> bool:
        return original_message_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def values(self) -> list[StarEntry]:
        return list(self._entries.values())

    def put(self, entry: StarEntry) -> None:
        self._entries[entry.original_message_id] = entry
        if self._collection is None:
            return
        try:
            self._collection.replace_one(
                {"_id": entry.original_message_id}, entry_to_doc(entry), upsert=True
            )
        except PyMongoError:
            LOGGER.exception("Failed to persist starboard entry %s.", entry.original_message_id)

    def discard(self, original_message_id: int) -> StarEntry | None:
        entry = self._entries.pop(original_message_id, None)
        if self._collection is None:
            return entry
        try:
            self._collection.delete_one({"_id": original_message_id})
        except PyMongoError:
            LOGGER.exception("Failed to delete starboard entry %s.", original_message_id)
        return entry

    def load(self) -> int:
        """
        Replace the in-memory map with whatever the collection holds. Returns the entry count.
        """
        if self._collection is None:
            return 0
        try:
            docs = list(self._collection.find({}))
        except PyMongoError:
            LOGGER.exception("Failed to load starboard entries; starting empty.")
            return 0
        loaded: dict[int, StarEntry] = {}
        for doc in docs:
            entry = entry_from_doc(doc)
            if entry is not None:
                loaded[entry.original_message_id] = entry
        self._entries = loaded
        LOGGER.info("Loaded %s starboard entries.", len(loaded))
        return len(loaded)
