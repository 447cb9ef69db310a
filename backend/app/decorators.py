# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user and g.session_token. Returns 401 if the header is
    missing, the token is invalid, expired or revoked, or the user is
    deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token", "code": "UNAUTHORIZED"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of `roles`.

    Must be applied after @require_auth. Returns 403 otherwise.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401
            if user.role not in roles:
                current_app.logger.warning(
                    "User %s (%s) denied access to %s", user.username, user.role, request.path
                )
                return jsonify({"error": "Permission denied", "code": "FORBIDDEN"}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
