# Overview: Flask API routes for administrators: order lifecycle, catalog, stock and accounts.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import GroceryError, UserNotFoundError, ValidationError
from ..decorators import require_auth, require_admin
from ..models import User
from ..services import catalog_service
from ..services import order_service
from ..services import stock_ledger
from ..services.account_guard_service import get_lockout_status, set_account_status, unlock_account
from ..services.credential_service import list_password_history
from ..services.session_service import destroy_user_sessions


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value in (None, ""):
        return default
    return int(value)


@admin_bp.get("/orders")
@require_auth
@require_admin
def list_orders_route():
    """
    Query params: status (optional), page (default 1), per_page (default 20)
    """
    try:
        try:
            page = _int_arg("page", 1)
            per_page = _int_arg("per_page", 20)
        except ValueError:
            return jsonify({"error": "page and per_page must be integers"}), 400

        pagination = order_service.list_orders(
            status=request.args.get("status") or None,
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "orders": [o.to_dict() for o in pagination.items],
            "page": pagination.page,
            "per_page": pagination.per_page,
            "total": pagination.total,
        }), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/orders/<int:order_id>/status")
@require_auth
@require_admin
def update_order_status_route(order_id: int):
    """Request body: {"status": "processing" | "completed" | "cancelled" | "pending"}"""
    try:
        data = request.get_json(silent=True) or {}
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status required"}), 400

        order = order_service.update_order_status(order_id, new_status, actor_user_id=g.current_user.id)
        return jsonify({"order": order.to_dict()}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/products/<int:product_id>/stock")
@require_auth
@require_admin
def adjust_stock_route(product_id: int):
    """
    Restock or correct stock.

    Request body: {"delta": 25, "reason": "Weekly delivery"}
    Positive deltas are logged as restocks, negative ones as adjustments.
    """
    try:
        data = request.get_json(silent=True) or {}
        delta = data.get("delta")
        if isinstance(delta, bool) or not isinstance(delta, int):
            return jsonify({"error": "delta must be an integer"}), 400

        entry = stock_ledger.adjust(
            product_id,
            delta,
            data.get("reason"),
            user_id=g.current_user.id,
        )
        return jsonify({"inventory_log": entry.to_dict(), "stock_quantity": entry.after_quantity}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/products/<int:product_id>/inventory-log")
@require_auth
@require_admin
def inventory_log_route(product_id: int):
    try:
        try:
            limit = _int_arg("limit", 200)
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400

        entries = stock_ledger.list_inventory_log(product_id, limit=max(1, min(limit, 1000)))
        return jsonify({"inventory_log": [e.to_dict() for e in entries]}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list inventory log")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/products/low-stock")
@require_auth
@require_admin
def low_stock_route():
    try:
        products = catalog_service.list_low_stock_products()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        current_app.logger.exception("Failed to list low stock products")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/unlock")
@require_auth
@require_admin
def unlock_user_route(user_id: int):
    try:
        user = unlock_account(user_id, admin_user_id=g.current_user.id, ip_address=request.remote_addr)
        return jsonify({"user": user.to_dict(), "message": "Account unlocked"}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to unlock user")
        return jsonify({"error": "Internal server error"}), 500


# --- Catalog management -------------------------------------------------------

def _price_arg(data: dict):
    """Prices travel as decimal strings ("3.49"); JSON floats are refused."""
    price = data.get("price")
    if price is not None and not isinstance(price, (str, int)):
        raise ValidationError("price must be a decimal string, e.g. \"3.49\"")
    return price


@admin_bp.post("/products")
@require_auth
@require_admin
def create_product_route():
    """
    Request body:
    {
        "name": "...", "price": "3.49",
        "stock_quantity": 0, "low_stock_threshold": 10,   (optional)
        "description": "...", "image_path": "...",        (optional)
        "is_active": true                                 (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        price = _price_arg(data)
        if price is None:
            return jsonify({"error": "price required"}), 400

        product = catalog_service.create_product(
            name=data.get("name"),
            price=price,
            stock_quantity=data.get("stock_quantity", 0),
            description=data.get("description"),
            image_path=data.get("image_path"),
            low_stock_threshold=data.get("low_stock_threshold", 10),
            is_active=bool(data.get("is_active", True)),
        )
        return jsonify({"product": product.to_dict()}), 201
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/products/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    """Edit name, description, image_path, price or low_stock_threshold. Stock goes through /stock."""
    try:
        data = request.get_json(silent=True) or {}
        if "stock_quantity" in data:
            return jsonify({"error": "stock_quantity cannot be edited here; use the stock endpoint"}), 400

        product = catalog_service.update_product(
            product_id,
            name=data.get("name"),
            description=data.get("description"),
            image_path=data.get("image_path"),
            price=_price_arg(data),
            low_stock_threshold=data.get("low_stock_threshold"),
        )
        return jsonify({"product": product.to_dict()}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/products/<int:product_id>/active")
@require_auth
@require_admin
def set_product_active_route(product_id: int):
    """Request body: {"is_active": false}"""
    try:
        data = request.get_json(silent=True) or {}
        is_active = data.get("is_active")
        if not isinstance(is_active, bool):
            return jsonify({"error": "is_active must be true or false"}), 400

        product = catalog_service.set_product_active(product_id, is_active)
        return jsonify({"product": product.to_dict()}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change product availability")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/products/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    """Only products with no order or stock history can be deleted (409 otherwise)."""
    try:
        catalog_service.delete_product(product_id)
        return jsonify({"message": "Product deleted"}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


# --- Accounts -----------------------------------------------------------------

def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


@admin_bp.get("/users/<int:user_id>/status")
@require_auth
@require_admin
def user_status_route(user_id: int):
    try:
        user = _get_user(user_id)
        return jsonify({"user": user.to_dict(), "lockout": get_lockout_status(user.email)}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get user status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/users/<int:user_id>/status")
@require_auth
@require_admin
def set_user_status_route(user_id: int):
    """
    Request body: {"status": "active" | "inactive"}

    Deactivating signs the user out everywhere.
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        user = set_account_status(
            user_id,
            status,
            admin_user_id=g.current_user.id,
            ip_address=request.remote_addr,
        )
        return jsonify({"user": user.to_dict()}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to change user status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/revoke-sessions")
@require_auth
@require_admin
def revoke_user_sessions_route(user_id: int):
    try:
        _get_user(user_id)
        revoked = destroy_user_sessions(user_id)
        return jsonify({"revoked": revoked}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to revoke user sessions")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/users/<int:user_id>/password-history")
@require_auth
@require_admin
def password_history_route(user_id: int):
    """Change dates only; hashes never leave the server."""
    try:
        _get_user(user_id)
        history = list_password_history(user_id)
        return jsonify({"password_history": [h.to_dict() for h in history]}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list password history")
        return jsonify({"error": "Internal server error"}), 500
