from __future__ import annotations

from functools import wraps

from flask import jsonify, request, session

from ..core.actor import Actor
from ..core.enums import EventSource, Role
from ..core.exceptions import AuthorizationError


def current_actor() -> Actor:
    """Caller identity from the signed session cookie set by the identity service."""
    try:
        role = Role(session.get("role", Role.STAFF.value))
    except ValueError:
        role = Role.STAFF
    return Actor(user_id=int(session["user_id"]), org_id=int(session["org_id"]), role=role)


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session or "org_id" not in session:
            return jsonify({"ok": False, "message": "Authentication required"}), 401
        return view(*args, **kwargs)

    return wrapper


def elevated_required(view):
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_actor().is_elevated:
            raise AuthorizationError("Access denied")
        return view(*args, **kwargs)

    return wrapper


def request_source() -> EventSource:
    platform = (request.headers.get("X-Client-Platform") or "").strip().lower()
    return EventSource.MOBILE if platform == "mobile" else EventSource.WEB


def client_ip() -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr
