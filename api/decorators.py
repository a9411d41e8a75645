from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from identity.gate import parse_bearer

ACCESS_COOKIE = "access_token"


def get_gate():
    return current_app.extensions["auth_gate"]


def request_token() -> str | None:
    """Bearer header first, then the access_token cookie."""
    token = parse_bearer(request.headers.get("Authorization"))
    return token or request.cookies.get(ACCESS_COOKIE) or None


def jwt_required(optional: bool = False):
    """
    Require a valid access token; sets g.current_identity.
    With optional=True a request without any token passes with
    g.current_identity = None, but a bad token is still rejected.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = request_token()
            if token is None and optional:
                g.current_identity = None
                return fn(*args, **kwargs)
            # NoToken / TokenExpired / InvalidToken go to the error handler
            g.current_identity = get_gate().authenticate(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
