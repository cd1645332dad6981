from __future__ import annotations

import json
from typing import Any

from aiohttp import web


def _payload(code: str, message: str, details: dict[str, Any] | None = None) -> str:
    body: dict[str, Any] = {"ok": False, "error": {"code": code, "message": message}}
    if details:
        body["error"]["details"] = details
    return json.dumps(body)


def api_error(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> web.HTTPException:
    text = _payload(code, message, details)
    if status == 401:
        return web.HTTPUnauthorized(
            text=text, content_type="application/json", headers={"WWW-Authenticate": "Bearer"}
        )
    if status == 403:
        return web.HTTPForbidden(text=text, content_type="application/json")
    if status == 404:
        return web.HTTPNotFound(text=text, content_type="application/json")
    return web.HTTPBadRequest(text=text, content_type="application/json")


def api_unauthorized(message: str = "Missing or malformed bearer token.") -> web.HTTPException:
    return api_error(status=401, code="auth_required", message=message)


def api_forbidden(message: str = "Invalid token.") -> web.HTTPException:
    return api_error(status=403, code="forbidden", message=message)


def api_bad_request(message: str, *, code: str = "bad_request") -> web.HTTPException:
    return api_error(status=400, code=code, message=message)
