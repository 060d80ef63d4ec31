# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/groceries/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration and password change
- Every login attempt recorded; account lockout after repeated failures
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import GroceryError
from ..services import auth_service
from ..services import credential_service
from ..services import session_service
from ..services.account_guard_service import get_lockout_status
from ..services.auth_service import LOGIN_REASON_ACCOUNT_LOCKED
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Create a customer account.

    Request body: {"name", "email", "password", "phone" (optional)}
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            phone=data.get("phone"),
        )
        return jsonify({"user": user.to_dict(), "message": "Registration successful"}), 201
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in Authorization header for protected routes.

    Responses:
    - 200: token issued
    - 401: invalid credentials (with attempts remaining)
    - 423: account locked
    - 403: account inactive
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        result = auth_service.authenticate(email, password, ip_address, user_agent)

        if not result.success:
            if result.reason == LOGIN_REASON_ACCOUNT_LOCKED:
                return jsonify({
                    "error": "Account locked due to too many failed login attempts. Contact an administrator.",
                    "locked": True,
                }), 423
            if result.reason == auth_service.LOGIN_REASON_ACCOUNT_INACTIVE:
                return jsonify({"error": "Account is inactive"}), 403

            status = get_lockout_status(email)
            body = {"error": "Invalid credentials"}
            if status["failed_attempts"] and status["attempts_remaining"] <= 3:
                body["warning"] = f"{status['attempts_remaining']} attempts remaining before account lockout"
            return jsonify(body), 401

        session, token = session_service.create_session(
            user_id=result.user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return jsonify({
            "user": result.user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.destroy_session(g.session_token)
        return jsonify({"message": "Logged out"}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
def validate_route():
    """
    Check a token without refreshing its activity.

    Request body: {"token": "..."} or an Authorization: Bearer header.
    """
    try:
        data = request.get_json(silent=True) or {}
        token = data.get("token")
        if not token:
            header = request.headers.get("Authorization", "")
            if header.startswith("Bearer "):
                token = header.split(" ", 1)[1].strip()

        validation = session_service.validate_session(token)
        body = {"valid": validation.is_valid, "status": validation.status.value}
        if validation.is_valid:
            body["user"] = validation.user.to_dict()
            body["session"] = validation.session.to_dict()
        return jsonify(body), 200
    except Exception:
        current_app.logger.exception("Failed to validate session")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Request body: {"current_password", "new_password"}

    All sessions, including the current one, are revoked; log in again.
    """
    try:
        data = request.get_json(silent=True) or {}
        current_password = data.get("current_password")
        new_password = data.get("new_password")
        if not current_password or not new_password:
            return jsonify({"error": "current_password and new_password required"}), 400

        credential_service.change_password(
            g.current_user.id,
            new_password,
            current_password=current_password,
            ip_address=request.remote_addr,
        )
        return jsonify({"message": "Password changed. Please log in again."}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
