# Overview: Flask API routes for the public catalog.

from flask import Blueprint, jsonify, current_app

from ..errors import GroceryError
from ..services import catalog_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """List active products, by name."""
    try:
        products = catalog_service.list_active_products()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        if not product.is_active:
            return jsonify({"error": f"Product ID {product_id} not found."}), 404
        return jsonify({"product": product.to_dict()}), 200
    except GroceryError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500
