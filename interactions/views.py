from __future__ import annotations

import logging

import discord

from services.role_menu_service import RoleMenu, RoleOption, button_menu_embed, select_role
from utils.errors import log_interaction_error, new_error_id, send_interaction_error

ROLE_MENU_PREFIX = "role_menu"
BUTTONS_PER_ROW = 5


def role_button_custom_id(menu_key: str, role_id: int) -> str:
    return f"{ROLE_MENU_PREFIX}:{menu_key}:{role_id}"


class SafeView(discord.ui.View):
    async def on_error(
        self,
        interaction: discord.Interaction,
        error: Exception,
        item: discord.ui.Item[discord.ui.View],
    ) -> None:
        error_id = new_error_id()
        log_interaction_error(error, interaction, source="view", error_id=error_id)
        await send_interaction_error(interaction, error_id=error_id)


class RoleMenuButton(discord.ui.Button["RoleMenuView"]):
    def __init__(self, menu: RoleMenu, option: RoleOption, *, row: int) -> None:
        super().__init__(
            label=option.label,
            emoji=option.emoji,
            style=option.style,
            custom_id=role_button_custom_id(menu.key, option.role_id),
            row=row,
        )
        self.menu = menu
        self.role_id = option.role_id

    async def callback(self, interaction: discord.Interaction) -> None:
        member = interaction.user
        if not isinstance(member, discord.Member):
            await interaction.response.send_message(
                "Role menus only work inside the server.", ephemeral=True
            )
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        outcome = await select_role(member, self.menu, self.role_id)
        if not outcome.ok:
            logging.warning(
                "Role menu selection failed user=%s menu=%s role=%s change=%s",
                member.id,
                self.menu.key,
                self.role_id,
                outcome.change.value,
            )
        await interaction.followup.send(outcome.message(self.menu), ephemeral=True)


class RoleMenuView(SafeView):
    """
    Persistent button menu. Custom ids are stable, so re-adding the view at startup keeps
    previously posted menus working.
    """

    def __init__(self, menu: RoleMenu) -> None:
        super().__init__(timeout=None)
        self.menu = menu
        for index, option in enumerate(menu.options):
            self.add_item(RoleMenuButton(menu, option, row=index // BUTTONS_PER_ROW))


async def post_role_menu(channel: discord.abc.Messageable, menu: RoleMenu) -> discord.Message:
    message = await channel.send(embed=button_menu_embed(menu), view=RoleMenuView(menu))
    logging.info("Posted button role menu %s (message=%s).", menu.key, message.id)
    return message
