# Overview: Flask API routes for customer orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import GroceryError, NotFoundError, StoreFailureError, StoreTimeoutError
from ..decorators import require_auth
from ..services import order_service
from ..services.order_history_service import list_order_history


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _owner_scope() -> int | None:
    """Admins can read any order; customers only their own."""
    return None if g.current_user.is_admin else g.current_user.id


@orders_bp.post("")
@require_auth
def place_order_route():
    """
    Place an order for the current user.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}, ...],
        "shipping_address": "...",   (optional)
        "payment_method": "...",     (optional, label only)
        "notes": "..."               (optional)
    }

    Returns 201 with {"order_id", "total_amount", "item_count", "message"}.
    """
    try:
        data = request.get_json(silent=True) or {}
        items = data.get("items")
        if items is not None and not isinstance(items, list):
            return jsonify({"error": "items must be a list"}), 400

        receipt = order_service.place_order(
            g.current_user.id,
            items or [],
            shipping_address=data.get("shipping_address"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
        )
        return jsonify(receipt.to_dict()), 201

    # Already logged with full context by place_order
    except StoreTimeoutError:
        return jsonify({"error": "Order could not be processed"}), 503
    except StoreFailureError:
        return jsonify({"error": "Order could not be processed"}), 500
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Order could not be processed"}), 500


@orders_bp.get("")
@require_auth
def list_my_orders_route():
    try:
        orders = order_service.list_orders_for_user(g.current_user.id)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    """Order header with items. 404 for missing orders and for other users' orders."""
    try:
        details = order_service.get_order_details(order_id, user_id=_owner_scope())
        return jsonify({"order": details}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    try:
        order = order_service.cancel_order(order_id, g.current_user.id)
        return jsonify({"order": order.to_dict(), "message": "Order cancelled"}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/history")
@require_auth
def order_history_route(order_id: int):
    try:
        order_service.get_order(order_id, user_id=_owner_scope())
        history = list_order_history(order_id)
        return jsonify({"history": [h.to_dict() for h in history]}), 200
    except NotFoundError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get order history")
        return jsonify({"error": "Internal server error"}), 500
