# Overview: Request decorators for API routes (session auth and admin gate).

from functools import wraps
from flask import request, jsonify, g

from .models.auth import ACCOUNT_STATUS_ACTIVE
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.user_session: The UserSession row
    - g.session_token: The plaintext bearer token

    SECURITY: Returns 401 if:
    - No Authorization header
    - Unknown, expired or idle-timed-out token
    - User account is locked or inactive
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        validation = session_service.validate_session(token)
        if not validation.is_valid:
            return jsonify({"error": "Invalid or expired token"}), 401

        user = validation.user
        if user is None or user.account_status != ACCOUNT_STATUS_ACTIVE:
            return jsonify({"error": "Account is not active"}), 401

        session_service.touch_session(token)

        g.current_user = user
        g.user_session = validation.session
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require the admin role. Must be applied after @require_auth.

    Returns 403 if the current user is not an administrator.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if not user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function
