# Overview: Request decorators establishing the acting user for API routes.

import re
from functools import wraps
from flask import request, jsonify, g

from .models.auth import VALID_ROLES, is_manager_role


def require_actor(f):
    """
    Establish the acting user from the trusted upstream identity headers.

    Sets the following Flask g attributes:
    - g.actor_id: id of the user performing the request
    - g.actor_role: POMPISTE, MANAGER or ADMIN

    Returns 401 when either header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = request.headers.get("X-Actor-Id", "").strip()
        actor_role = request.headers.get("X-Actor-Role", "").strip().upper()

        if not re.fullmatch(r"[0-9]+", actor_id) or actor_role not in VALID_ROLES:
            return jsonify({
                "error": "UNAUTHENTICATED",
                "message": "X-Actor-Id and X-Actor-Role headers are required",
            }), 401

        g.actor_id = int(actor_id)
        g.actor_role = actor_role
        return f(*args, **kwargs)

    return decorated_function


def require_manager(f):
    """Restrict a route to managers. Must be applied after @require_actor."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_manager_role(getattr(g, "actor_role", None)):
            return jsonify({
                "error": "FORBIDDEN",
                "message": "This operation requires a manager",
                "details": {"role": getattr(g, "actor_role", None)},
            }), 403
        return f(*args, **kwargs)

    return decorated_function
