"""Admin capability check for the management endpoints."""

from __future__ import annotations

import hmac
from functools import wraps
from typing import Any, Callable, TypeVar

from flask import current_app, g, request
from werkzeug.datastructures import WWWAuthenticate
from werkzeug.exceptions import Unauthorized

F = TypeVar("F", bound=Callable[..., Any])


def require_admin(view: F) -> F:
    """Reject the request unless it carries valid admin credentials."""

    @wraps(view)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        admin = authenticate_admin()
        if admin is None:
            raise Unauthorized(
                "Admin authentication required.",
                www_authenticate=WWWAuthenticate("basic", {"realm": "memorial admin"}),
            )
        g.admin_username = admin
        return view(*args, **kwargs)

    return wrapped  # type: ignore[return-value]


def authenticate_admin() -> str | None:
    """Return the admin identity for the current request, or ``None``."""
    config = current_app.config
    admin_username = config.get("ADMIN_USERNAME")
    admin_password = config.get("ADMIN_PASSWORD")
    api_token = config.get("ADMIN_API_TOKEN")

    if not (admin_username and admin_password) and not api_token:
        current_app.logger.error("Admin credentials not configured in environment")
        return None

    auth = request.authorization
    if auth is None:
        return None

    if auth.type == "bearer":
        if api_token and _matches(auth.token, api_token):
            return "token"
        return None

    if (
        auth.type == "basic"
        and admin_username
        and admin_password
        and _matches(auth.username, admin_username)
        and _matches(auth.password, admin_password)
    ):
        return str(admin_username)

    current_app.logger.warning("Rejected admin credentials from %s", request.remote_addr)
    return None


def _matches(supplied: str | None, expected: str) -> bool:
    return hmac.compare_digest(
        (supplied or "").encode("utf-8"), str(expected).encode("utf-8")
    )
