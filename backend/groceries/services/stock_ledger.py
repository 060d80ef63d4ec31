# Overview: The only writer of Product.stock_quantity; every change is logged.

"""
Stock Ledger

Invariants (authoritative):
- stock_quantity is never negative. Checks run against the locked row
  before anything is written, and the CHECK constraint backs them up.
- Every mutation appends exactly one InventoryLogEntry in the same DB
  transaction with a before/after snapshot. Order events log the units
  sold as a positive quantity; adjustments log the signed delta.
- decrement() participates in the caller's unit of work (no commit);
  adjust()/restock() are their own unit of work with retry.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, InventoryLogEntry
from ..models.inventory import (
    INVENTORY_EVENT_ORDER,
    INVENTORY_EVENT_RESTOCK,
    INVENTORY_EVENT_ADJUSTMENT,
    INVENTORY_EVENT_TYPES,
)
from ..errors import InsufficientStockError, ValidationError
from .catalog_service import get_product
from .concurrency import acquire_write_lock, run_with_retry


def _append_log(
    product: Product,
    *,
    event_type: str,
    quantity: int,
    before: int,
    after: int,
    order_id: int | None = None,
    user_id: int | None = None,
    description: str | None = None,
) -> InventoryLogEntry:
    entry = InventoryLogEntry(
        product_id=product.id,
        event_type=event_type,
        quantity=quantity,
        before_quantity=before,
        after_quantity=after,
        order_id=order_id,
        user_id=user_id,
        low_stock_threshold=product.low_stock_threshold,
        description=description,
    )
    db.session.add(entry)
    return entry


def _require_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


def decrement(
    product_id: int,
    quantity: int,
    *,
    order_id: int | None = None,
    user_id: int | None = None,
    description: str | None = None,
    product: Product | None = None,
) -> int:
    """
    Remove quantity units from stock for an order line.

    Runs inside the caller's transaction and does not commit. Pass the
    already-locked product to skip the reload.

    Returns the new stock level. Raises InsufficientStockError without
    writing anything if the stock would go negative.
    """
    quantity = _require_int("quantity", quantity)
    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    if product is None:
        product = get_product(product_id, lock=True)

    before = product.stock_quantity
    if before < quantity:
        raise InsufficientStockError(product.id, product.name, quantity, before)

    product.stock_quantity = before - quantity
    _append_log(
        product,
        event_type=INVENTORY_EVENT_ORDER,
        quantity=quantity,
        before=before,
        after=product.stock_quantity,
        order_id=order_id,
        user_id=user_id,
        description=description,
    )
    db.session.flush()
    return product.stock_quantity


def adjust(
    product_id: int,
    delta: int,
    reason: str | None,
    *,
    user_id: int | None = None,
    event_type: str | None = None,
) -> InventoryLogEntry:
    """
    Administrative stock change (restock or correction).

    event_type defaults to 'restock' for positive deltas and 'adjustment'
    otherwise. A delta of zero is rejected, and no adjustment may take stock
    below zero.
    """
    delta = _require_int("delta", delta)
    if delta == 0:
        raise ValidationError("delta cannot be zero")

    if event_type is None:
        event_type = INVENTORY_EVENT_RESTOCK if delta > 0 else INVENTORY_EVENT_ADJUSTMENT
    if event_type not in INVENTORY_EVENT_TYPES or event_type == INVENTORY_EVENT_ORDER:
        raise ValidationError(f"invalid event_type for an adjustment: {event_type}")

    def _op():
        acquire_write_lock()
        product = get_product(product_id, lock=True)

        before = product.stock_quantity
        if before + delta < 0:
            raise InsufficientStockError(product.id, product.name, -delta, before)

        product.stock_quantity = before + delta
        entry = _append_log(
            product,
            event_type=event_type,
            quantity=delta,
            before=before,
            after=product.stock_quantity,
            user_id=user_id,
            description=reason,
        )
        db.session.commit()
        return entry

    entry = run_with_retry(_op, operation="adjust_stock")
    current_app.logger.info(
        "Stock for product %s changed by %d (%s -> %s)",
        product_id, delta, entry.before_quantity, entry.after_quantity,
    )
    return entry


def restock(product_id: int, quantity: int, *, user_id: int | None = None, note: str | None = None) -> InventoryLogEntry:
    quantity = _require_int("quantity", quantity)
    if quantity <= 0:
        raise ValidationError("restock quantity must be a positive integer")
    return adjust(
        product_id,
        quantity,
        note or f"Restocked {quantity} units",
        user_id=user_id,
        event_type=INVENTORY_EVENT_RESTOCK,
    )


def list_inventory_log(product_id: int, limit: int = 200):
    get_product(product_id)
    return (
        InventoryLogEntry.query
        .filter_by(product_id=product_id)
        .order_by(InventoryLogEntry.log_date.desc(), InventoryLogEntry.id.desc())
        .limit(limit)
        .all()
    )
