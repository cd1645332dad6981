from __future__ import annotations

import logging
import re

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from config import Settings

INVALID_DB_NAME_PATTERN = re.compile(r'[\\/\.\s"$\x00]')
_CLIENT: MongoClient | None = None

DEFAULT_DB_NAME = "TriboarRoleBot"

STARBOARD_ENTRIES_COLLECTION = "starboard_entries"
REACTION_ROLE_MESSAGES_COLLECTION = "reaction_role_messages"


def _require_value(value: str | None, name: str) -> str:
    if not value:
        raise RuntimeError(f"{name} is required for database access.")
    return value


def _normalize_db_name(name: str) -> str:
    normalized = INVALID_DB_NAME_PATTERN.sub("_", name.strip())
    if not normalized:
        raise RuntimeError("MONGODB_DB_NAME resolved to empty after sanitization.")
    if len(normalized.encode("utf-8")) > 63:
        raise RuntimeError("MONGODB_DB_NAME exceeds MongoDB length limits.")
    if normalized != name:
        logging.warning(
            "Normalized MONGODB_DB_NAME from %r to %r to satisfy MongoDB naming rules.",
            name,
            normalized,
        )
    return normalized


def persistence_enabled(settings: Settings | None) -> bool:
    return bool(settings is not None and settings.mongodb_uri)


def get_client(settings: Settings) -> MongoClient:
    global _CLIENT
    if _CLIENT is not None:
        return _CLIENT
    uri = _require_value(settings.mongodb_uri, "MONGODB_URI")
    _CLIENT = MongoClient(uri, serverSelectionTimeoutMS=5000)
    return _CLIENT


def get_database(settings: Settings) -> Database:
    db_name = _normalize_db_name(settings.mongodb_db_name or DEFAULT_DB_NAME)
    return get_client(settings)[db_name]


def get_collection(settings: Settings, *, name: str) -> Collection:
    return get_database(settings)[name]


def ping(settings: Settings) -> None:
    client = get_client(settings)
    client.admin.command("ping")


def close_client() -> None:
    """
    Close the cached Mongo client (used during graceful shutdown).
    """
    global _CLIENT
    if _CLIENT is not None:
        _CLIENT.close()
        _CLIENT = None


def ensure_indexes(settings: Settings) -> list[str]:
    indexes: list[str] = []
    entries = get_collection(settings, name=STARBOARD_ENTRIES_COLLECTION)
    indexes.append(
        entries.create_index(
            [("mirror_message_id", 1)],
            name="idx_mirror_message_id",
            sparse=True,
        )
    )
    reaction_roles = get_collection(settings, name=REACTION_ROLE_MESSAGES_COLLECTION)
    indexes.append(reaction_roles.create_index([("menu", 1)], name="idx_menu"))
    return indexes
