from __future__ import annotations

import hmac
import json
import logging
from typing import Any, Final, Protocol

from aiohttp import web

from config import Settings
from triboar_bot.api.errors import api_bad_request, api_forbidden, api_unauthorized
from utils.time_utils import utc_now

LOGGER = logging.getLogger(__name__)

WEBHOOK_PATH: Final[str] = "/webhooks/rolebot"
HEALTH_PATH: Final[str] = "/health"
MAX_REQUEST_BYTES: Final[int] = 256 * 1024


class EventHandler(Protocol):
    async def handle(self, event: dict[str, Any]) -> str: ...


def _check_bearer(request: web.Request, expected: str) -> None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        LOGGER.warning("Webhook rejected: missing bearer token (remote=%s).", request.remote)
        raise api_unauthorized()
    if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        LOGGER.warning("Webhook rejected: invalid token (remote=%s).", request.remote)
        raise api_forbidden()


async def rolebot_webhook(request: web.Request) -> web.Response:
    settings: Settings = request.app["settings"]
    handler: EventHandler = request.app["event_handler"]
    _check_bearer(request, settings.backend_api_token)

    raw = await request.read()
    try:
        event = json.loads(raw)
    except ValueError:
        # UnicodeDecodeError is a ValueError, so undecodable bytes land here too.
        raise api_bad_request("Body must be valid JSON.", code="invalid_json") from None
    if not isinstance(event, dict):
        raise api_bad_request("Body must be a JSON object.", code="invalid_json")
    event_type = event.get("type")
    if not isinstance(event_type, str) or not event_type.strip():
        raise api_bad_request("Missing event type.", code="missing_type")

    handled = await handler.handle(event)
    LOGGER.info("Webhook event dispatched (type=%s handled=%s).", event_type, handled)
    return web.json_response({"ok": True})


async def health(_request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "timestamp": utc_now().isoformat()})


def create_app(*, handler: EventHandler, settings: Settings) -> web.Application:
    app = web.Application(client_max_size=MAX_REQUEST_BYTES)
    app["settings"] = settings
    app["event_handler"] = handler
    app.router.add_post(WEBHOOK_PATH, rolebot_webhook)
    app.router.add_get(HEALTH_PATH, health)
    return app


async def start_webhook_server(app: web.Application, *, host: str, port: int) -> web.AppRunner:
    """
    Serve ``app`` from the running event loop. The caller owns the runner and must
    ``cleanup()`` it on shutdown.
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    LOGGER.info("Webhook server listening on %s:%s.", host, port)
    return runner
