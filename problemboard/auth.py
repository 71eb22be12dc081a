"""Authentication and authorisation helpers."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, abort, current_app, g, request

from .deps import get_datastore

SESSION_COOKIE = "session"


def session_token() -> Optional[str]:
    return request.cookies.get(SESSION_COOKIE)


def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    if not user:
        return False
    return user.get("username") in current_app.config.get("ADMIN_USERS", set())


def require_login() -> Dict[str, Any]:
    user = getattr(g, "user", None)
    if not user:
        abort(401)
    return user


def require_admin() -> Dict[str, Any]:
    user = require_login()
    if not is_admin(user):
        abort(403)
    return user


def init_auth(app: Flask) -> None:
    """Resolve the session cookie to ``g.user`` before every request."""

    @app.before_request
    def load_current_user() -> None:
        g.user = get_datastore().resolve_session(session_token())
