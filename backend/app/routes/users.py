# Overview: Flask API routes for staff accounts; admin only.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..validation import ConflictError, NotFoundError, ValidationError
from ..decorators import require_auth, require_role

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("admin")
def list_users_route():
    """Query params: includeInactive (default false)."""
    include_inactive = request.args.get("includeInactive", "false").lower() in ("1", "true", "yes")
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.get("/<int:user_id>")
@require_auth
@require_role("admin")
def get_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    return jsonify(user.to_dict()), 200


@users_bp.post("")
@require_auth
@require_role("admin")
def create_user_route():
    """Body: {username, email, password, role?, firstName?, lastName?}"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload", "code": "VALIDATION_ERROR"}), 400

    username = data.get("username")
    if not isinstance(username, str) or len(username.strip()) < 3:
        return jsonify({
            "error": "username must be at least 3 characters",
            "code": "VALIDATION_ERROR",
            "field": "username",
        }), 400

    try:
        user = auth_service.create_user(
            username=username,
            email=data.get("email") if isinstance(data.get("email"), str) else "",
            password=data.get("password"),
            role=data.get("role") or "seller",
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    current_app.logger.info("User %s created account %s", g.current_user.username, user.username)
    return jsonify(user.to_dict()), 201


@users_bp.put("/<int:user_id>")
@require_auth
@require_role("admin")
def update_user_route(user_id: int):
    """Body: any of {firstName, lastName, email, role, isActive}"""
    payload = request.get_json(silent=True)

    try:
        user = auth_service.update_user(user_id, payload, acting_user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return jsonify(user.to_dict()), 200
