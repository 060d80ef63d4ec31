# Overview: Catalog reads and product master-data writes.

"""
Catalog Store

Products are read here by the order engine (with row locks) and by the
catalog endpoints. Stock levels are NOT written here: every change to
stock_quantity goes through stock_ledger so that it is logged.

Deleting a product with order items or inventory log rows is refused;
deactivate it with set_product_active(..., False) instead.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryLogEntry, OrderItem, Product
from ..money import to_cents
from ..errors import ProductNotFoundError, ValidationError, ConflictError
from .concurrency import acquire_write_lock, lock_for_update, run_with_retry


def get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def lock_products(product_ids) -> dict[int, Product]:
    """
    Lock the given product rows in ascending id order and return them by id.

    Fixed lock order keeps two orders touching the same products from
    deadlocking. Missing ids are simply absent from the result.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id.asc())
    return {p.id: p for p in lock_for_update(query).all()}


def list_active_products():
    return Product.query.filter_by(is_active=True).order_by(Product.name.asc(), Product.id.asc()).all()


def list_low_stock_products(*, include_inactive: bool = False):
    """Products at or below their low_stock_threshold, lowest stock first."""
    q = Product.query.filter(Product.stock_quantity <= Product.low_stock_threshold)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.stock_quantity.asc(), Product.id.asc()).all()


def _validate_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    name = name.strip()
    if len(name) > 100:
        raise ValidationError("name must be at most 100 characters")
    return name


def _validate_threshold(low_stock_threshold) -> int:
    if isinstance(low_stock_threshold, bool) or not isinstance(low_stock_threshold, int) or low_stock_threshold < 0:
        raise ValidationError("low_stock_threshold must be a non-negative integer")
    return low_stock_threshold


def create_product(
    *,
    name: str,
    price,
    stock_quantity: int = 0,
    description: str | None = None,
    image_path: str | None = None,
    low_stock_threshold: int = 10,
    is_active: bool = True,
) -> Product:
    """
    Create a product.

    price is a Decimal or decimal string (whole currency units). The initial
    stock_quantity is master data, not a stock movement, so no inventory log
    row is written for it; later changes go through stock_ledger.
    """
    name = _validate_name(name)
    price_cents = to_cents(price)

    if isinstance(stock_quantity, bool) or not isinstance(stock_quantity, int) or stock_quantity < 0:
        raise ValidationError("stock_quantity must be a non-negative integer")
    _validate_threshold(low_stock_threshold)

    def _op():
        product = Product(
            name=name,
            description=description,
            image_path=image_path,
            price_cents=price_cents,
            stock_quantity=stock_quantity,
            low_stock_threshold=low_stock_threshold,
            is_active=is_active,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op, operation="create_product")


def update_product(
    product_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
    image_path: str | None = None,
    price=None,
    low_stock_threshold: int | None = None,
) -> Product:
    """
    Edit product master data. Fields left as None are unchanged.

    Stock is not editable here (use stock_ledger.adjust), and existing order
    items keep the price they were placed at.
    """
    changes = {}
    if name is not None:
        changes["name"] = _validate_name(name)
    if description is not None:
        changes["description"] = description
    if image_path is not None:
        changes["image_path"] = image_path
    if price is not None:
        changes["price_cents"] = to_cents(price)
    if low_stock_threshold is not None:
        changes["low_stock_threshold"] = _validate_threshold(low_stock_threshold)
    if not changes:
        raise ValidationError("no product fields to update")

    def _op():
        product = get_product(product_id, lock=True)
        for field, value in changes.items():
            setattr(product, field, value)
        db.session.commit()
        return product

    product = run_with_retry(_op, operation="update_product")
    current_app.logger.info("Product %s updated: %s", product_id, ", ".join(sorted(changes)))
    return product


def update_product_price(product_id: int, price) -> Product:
    """Change the catalog price. Existing order items keep their captured price."""
    return update_product(product_id, price=price)


def set_product_active(product_id: int, is_active: bool) -> Product:
    def _op():
        product = get_product(product_id, lock=True)
        product.is_active = bool(is_active)
        db.session.commit()
        return product

    return run_with_retry(_op, operation="set_product_active")


def _referenced_by_history(product_id: int) -> bool:
    if db.session.query(OrderItem.id).filter_by(product_id=product_id).first() is not None:
        return True
    return db.session.query(InventoryLogEntry.id).filter_by(product_id=product_id).first() is not None


def delete_product(product_id: int) -> None:
    """
    Hard-delete a product.

    Only a product with no order items and no inventory log rows can be
    deleted; otherwise ConflictError. The check runs first for a clear
    message, and the RESTRICT foreign keys back it up against an order or a
    restock committed concurrently.
    """
    def _conflict():
        return ConflictError(
            "Product has order or stock history and cannot be deleted. Deactivate it instead.",
            {"product_id": product_id},
        )

    def _op():
        acquire_write_lock()
        product = get_product(product_id, lock=True)
        if _referenced_by_history(product_id):
            raise _conflict()
        db.session.delete(product)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise _conflict()

    run_with_retry(_op, operation="delete_product")
    current_app.logger.info("Product %s deleted", product_id)
