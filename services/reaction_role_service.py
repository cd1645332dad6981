from __future__ import annotations

import logging
from datetime import datetime, timezone

import discord
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from config.settings import Settings
from database import REACTION_ROLE_MESSAGES_COLLECTION, get_collection, persistence_enabled
from services.role_menu_service import (
    RoleMenu,
    SelectionOutcome,
    apply_reaction,
    reaction_menu_embed,
)

LOGGER = logging.getLogger(__name__)


class ReactionRoleService:
    """
    Tracks which posted messages are reaction-role menus (message id -> menu key) and applies
    reactions on them. Best-effort copy in MongoDB so menus keep working across restarts.
    """

    def __init__(
        self,
        menus: dict[str, RoleMenu],
        settings: Settings | None = None,
        *,
        collection: Collection | None = None,
    ) -> None:
        self.menus = menus
        self._messages: dict[int, str] = {}
        if collection is None and persistence_enabled(settings):
            collection = get_collection(settings, name=REACTION_ROLE_MESSAGES_COLLECTION)
        self._collection = collection

    def __len__(self) -> int:
        return len(self._messages)

    def menu_for_message(self, message_id: int) -> RoleMenu | None:
        key = self._messages.get(message_id)
        return self.menus.get(key) if key else None

    def register(self, message_id: int, menu_key: str, *, channel_id: int | None = None) -> None:
        if menu_key not in self.menus:
            raise KeyError(f"Unknown role menu {menu_key!r}.")
        self._messages[message_id] = menu_key
        if self._collection is None:
            return
        try:
            self._collection.replace_one(
                {"_id": message_id},
                {
                    "_id": message_id,
                    "menu": menu_key,
                    "channel_id": channel_id,
                    "created_at": datetime.now(timezone.utc),
                },
                upsert=True,
            )
        except PyMongoError:
            LOGGER.exception("Failed to persist reaction role message %s.", message_id)

    def load(self) -> int:
        if self._collection is None:
            return 0
        try:
            docs = list(self._collection.find({}))
        except PyMongoError:
            LOGGER.exception("Failed to load reaction role messages.")
            return 0
        for doc in docs:
            menu_key = doc.get("menu")
            if menu_key in self.menus:
                self._messages[int(doc["_id"])] = menu_key
            else:
                LOGGER.warning("Ignoring reaction role message %s for unknown menu %r.", doc.get("_id"), menu_key)
        LOGGER.info("Loaded %s reaction role messages.", len(self._messages))
        return len(self._messages)

    async def post_menu(self, channel: discord.abc.Messageable, menu: RoleMenu) -> discord.Message:
        message = await channel.send(embed=reaction_menu_embed(menu))
        for option in menu.options:
            await message.add_reaction(option.emoji)
        self.register(message.id, menu.key, channel_id=getattr(channel, "id", None))
        LOGGER.info("Posted reaction role menu %s (message=%s).", menu.key, message.id)
        return message

    async def handle_reaction(
        self,
        member: discord.Member,
        message_id: int,
        emoji: str,
        *,
        added: bool,
    ) -> SelectionOutcome | None:
        menu = self.menu_for_message(message_id)
        if menu is None:
            return None
        option = menu.option_for_emoji(emoji)
        if option is None:
            return None
        return await apply_reaction(member, menu, option.role_id, added)
