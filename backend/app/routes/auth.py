# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

Users are created by administrators through the CLI (flask users create)
or the admin-only /api/users endpoints;
there is no self-registration endpoint.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from app.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "username/email and password required", "code": "VALIDATION_ERROR"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        return jsonify({"error": "Invalid credentials", "code": "UNAUTHORIZED"}), 401

    session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    current_app.logger.info("User %s logged in", user.username)

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expiresAt": to_utc_z(session.expires_at),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
