import asyncio
import logging
import os
import pkgutil
import signal
import sys

import discord
from aiohttp import web
from discord.ext import commands
from pymongo.errors import PyMongoError

from config import Settings, load_settings
from config.settings import summarize_settings
from database import close_client, ensure_indexes, persistence_enabled, ping
from interactions.views import RoleMenuView
from repositories.starboard_repo import StarEntryStore
from services.backend_service import BackendError, BackendService
from services.notification_service import NotificationService
from services.reaction_role_service import ReactionRoleService
from services.role_menu_service import build_role_menus
from services.role_service import RoleService
from services.scheduler import Scheduler
from services.starboard_service import DiscordStarboardGateway, StarboardService
from services.sync_service import SyncService
from services.webhook_service import BackendEventHandler
from triboar_bot.webhook_server import create_app, start_webhook_server
from utils.errors import log_interaction_error, new_error_id, send_interaction_error
from utils.logging import log_command_event
from utils.permissions import enforce_command_permissions
from utils.time_utils import parse_daily_schedule, resolve_timezone

LOG_FORMAT = "%(asctime)s level=%(levelname)s name=%(name)s msg=\"%(message)s\""
DAILY_SYNC_JOB = "daily_sync"


def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.captureWarnings(True)


def install_excepthook() -> None:
    def _hook(exc_type, exc_value, exc_traceback):
        logging.error(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
        )
    sys.excepthook = _hook


def install_asyncio_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    def _handle(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        msg = context.get("message", "Asyncio task exception")
        exc = context.get("exception")
        logging.error("%s", msg, exc_info=exc)
    loop.set_exception_handler(_handle)


def install_signal_handlers(bot: commands.Bot, loop: asyncio.AbstractEventLoop) -> None:
    """
    Install SIGTERM/SIGINT handlers to trigger a graceful shutdown.
    """
    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(bot.close()))
    except (NotImplementedError, RuntimeError):
        logging.debug("Signal handlers not installed on this platform.")


async def load_cogs(bot: commands.Bot) -> None:
    import cogs

    for module in pkgutil.iter_modules(cogs.__path__, cogs.__name__ + "."):
        try:
            await bot.load_extension(module.name)
            logging.info("Loaded cog %s", module.name)
        except (commands.ExtensionError, ImportError):
            logging.exception("Failed to load cog %s", module.name)


class TriboarBot(commands.Bot):
    def __init__(self, *args, settings: Settings, **kwargs):
        super().__init__(*args, **kwargs)
        self.settings = settings
        self.scheduler = Scheduler()
        self.backend = BackendService(settings)
        self.role_service = RoleService(
            self, guild_id=settings.guild_id, subscribed_role_id=settings.subscribed_role_id
        )
        self.notifier = NotificationService(self, settings)
        self.sync_service = SyncService(self.role_service, self.backend, self.notifier, settings)
        self.event_handler = BackendEventHandler(self.sync_service, self.notifier, settings)
        self.role_menus = build_role_menus(settings)
        self.reaction_roles = ReactionRoleService(self.role_menus, settings)
        self.starboard = StarboardService(
            DiscordStarboardGateway(self, settings.starboard_channel_id or 0),
            settings,
            StarEntryStore(settings),
        )
        self.webhook_runner: web.AppRunner | None = None
        self._initial_sync_started = False

    async def setup_hook(self) -> None:
        loop = asyncio.get_running_loop()
        install_asyncio_exception_handler(loop)
        install_signal_handlers(self, loop)

        await load_cogs(self)
        self.tree.add_check(enforce_command_permissions)
        self._restore_state()
        self._register_persistent_views()
        await self._sync_commands()
        await self._start_scheduler()
        await self._start_webhook_server()

    def _restore_state(self) -> None:
        if not persistence_enabled(self.settings):
            logging.info("MONGODB_URI not set; starboard and reaction-role state is in-memory only.")
            return
        stars = self.starboard.store.load()
        menus = self.reaction_roles.load()
        logging.info("Restored %s starboard entries and %s reaction-role messages.", stars, menus)

    def _register_persistent_views(self) -> None:
        for menu in self.role_menus.values():
            if menu.options:
                self.add_view(RoleMenuView(menu))

    async def _sync_commands(self) -> None:
        if self.settings.discord_client_id is None:
            logging.info("DISCORD_CLIENT_ID not set; skipping slash command registration.")
            return
        guild = discord.Object(id=self.settings.guild_id)
        self.tree.copy_global_to(guild=guild)
        try:
            synced = await self.tree.sync(guild=guild)
        except discord.HTTPException:
            logging.exception("Failed to sync app commands.")
            return
        logging.info("Synced %s app commands to guild %s.", len(synced), self.settings.guild_id)

    async def _start_scheduler(self) -> None:
        at = parse_daily_schedule(self.settings.daily_sync_schedule)
        tz = resolve_timezone(self.settings.schedule_timezone)
        self.scheduler.add_daily_job(DAILY_SYNC_JOB, at, self.sync_service.perform_daily_sync, tz)
        await self.scheduler.start()
        logging.info(
            "Daily sync scheduled at %s (%s).",
            at.strftime("%H:%M"),
            self.settings.schedule_timezone or "host local time",
        )

    async def _start_webhook_server(self) -> None:
        app = create_app(handler=self.event_handler, settings=self.settings)
        self.webhook_runner = await start_webhook_server(
            app, host=self.settings.webhook_host, port=self.settings.webhook_port
        )

    async def _initial_sync(self) -> None:
        try:
            report = await self.sync_service.perform_daily_sync()
        except BackendError as exc:
            logging.error("Initial subscription sync failed: %s", exc)
            return
        logging.info("Initial subscription sync finished: %s", report.summary())

    async def on_ready(self) -> None:
        user = self.user
        if user:
            logging.info("Bot ready as %s (ID: %s).", user, user.id)
        if not self._initial_sync_started:
            self._initial_sync_started = True
            await self._initial_sync()

    async def on_app_command_completion(
        self, interaction: discord.Interaction, command: discord.app_commands.Command
    ) -> None:
        log_command_event(interaction, status="completed")

    async def on_app_command_error(
        self, interaction: discord.Interaction, error: Exception
    ) -> None:
        error_id = new_error_id()
        log_interaction_error(error, interaction, source="app_command", error_id=error_id)
        await send_interaction_error(interaction, error_id=error_id)

    async def on_error(self, event_method: str, *args, **kwargs) -> None:  # type: ignore[override]
        logging.error("Unhandled error in event %s", event_method, exc_info=sys.exc_info())

    async def close(self) -> None:
        await self.scheduler.stop()
        if self.webhook_runner is not None:
            await self.webhook_runner.cleanup()
            self.webhook_runner = None
        await super().close()


def build_bot(settings: Settings) -> TriboarBot:
    intents = discord.Intents.default()
    # Member joins, DM keywords and reaction roles need these.
    intents.members = True
    intents.message_content = True
    intents.reactions = True
    intents.dm_messages = True

    return TriboarBot(
        command_prefix="!",
        intents=intents,
        application_id=settings.discord_client_id,
        settings=settings,
    )


def main() -> None:
    setup_logging()
    install_excepthook()
    settings: Settings
    try:
        settings = load_settings()
    except RuntimeError as exc:
        logging.error("Configuration error: %s", exc)
        raise
    logging.info("Loaded configuration (non-secret): %s", summarize_settings(settings))
    if persistence_enabled(settings):
        try:
            ping(settings)
            created = ensure_indexes(settings)
        except PyMongoError:
            logging.exception("MongoDB unavailable; starboard and reaction-role state may not persist.")
        else:
            logging.info("Ensured MongoDB indexes: %s", ", ".join(created) or "none")

    bot = build_bot(settings)
    try:
        bot.run(settings.discord_token, log_handler=None)
    except KeyboardInterrupt:
        logging.info("Shutdown requested, exiting.")
    finally:
        logging.info("Bot shutdown complete.")
        close_client()


if __name__ == "__main__":
    main()
