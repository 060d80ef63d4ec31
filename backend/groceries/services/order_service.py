# Overview: Order placement and order lifecycle; the consistency-critical core.

"""
Order Engine

place_order() is one unit of work:
    validate user -> validate items (in input order) -> insert header ->
    batch insert items -> decrement stock + inventory log per line -> commit

Any failure, including cancellation of the calling thread, rolls the whole
unit back: no header, no items, no stock change, no log rows.

CONCURRENCY:
- Product rows are locked in ascending id order before any stock check
  (SELECT ... FOR UPDATE; BEGIN IMMEDIATE on SQLite), so two orders for the
  last unit of a product serialize and exactly one succeeds.
- Product.version_id catches writes based on a stale read; run_with_retry
  retries those up to STORE_RETRY_ATTEMPTS times.

PRICING:
- Unit price is read once from the locked product row and frozen into
  OrderItem.price_cents. The total is an exact integer-cent sum.

STATUS:
- pending -> processing | cancelled
- processing -> completed | cancelled
- completed and cancelled are terminal. Setting the current status again
  is a no-op and writes no history.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import insert

from ..extensions import db
from ..models import Order, OrderItem, Product, User
from ..models.orders import (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUSES,
)
from ..money import cents_to_decimal, format_cents
from ..errors import (
    ConcurrentModificationError,
    EmptyOrderError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    ProductNotFoundError,
    ProductUnavailableError,
    StoreFailureError,
    StoreTimeoutError,
    UserNotFoundError,
    ValidationError,
)
from . import stock_ledger
from .catalog_service import lock_products
from .concurrency import acquire_write_lock, lock_for_update, run_with_retry
from .order_history_service import record_status_change


ALLOWED_TRANSITIONS = {
    ORDER_STATUS_PENDING: {ORDER_STATUS_PROCESSING, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_PROCESSING: {ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_COMPLETED: set(),
    ORDER_STATUS_CANCELLED: set(),
}


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderReceipt:
    order_id: int
    total_amount: Decimal
    total_amount_cents: int
    item_count: int
    message: str

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "total_amount": format_cents(self.total_amount_cents),
            "item_count": self.item_count,
            "message": self.message,
        }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _raw_line(item) -> tuple:
    if isinstance(item, OrderLine):
        return item.product_id, item.quantity
    if isinstance(item, Mapping):
        return item.get("product_id"), item.get("quantity")
    return None, None


def _validate_line(index: int, product_id, quantity) -> OrderLine:
    if not _is_int(product_id):
        raise ValidationError("product_id must be an integer", {"item_index": index})
    if not _is_int(quantity) or quantity <= 0:
        raise ValidationError(
            "quantity must be a positive integer",
            {"item_index": index, "product_id": product_id},
        )
    return OrderLine(product_id=product_id, quantity=quantity)


def _describe_items(items) -> list:
    return [
        {"product_id": product_id, "quantity": quantity}
        for product_id, quantity in (_raw_line(item) for item in (items or []))
    ]


def place_order(
    user_id: int,
    items,
    *,
    shipping_address: str | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
) -> OrderReceipt:
    """
    Validate and persist an order atomically.

    Validation order (the first failure aborts with nothing written):
    1. user exists (UserNotFoundError)
    2. at least one item (EmptyOrderError)
    3. per item, in input order: well-formed (ValidationError), product
       exists (ProductNotFoundError), product active (ProductUnavailableError),
       enough stock for the cumulative quantity requested so far
       (InsufficientStockError)

    Returns an OrderReceipt. Store failures, timeouts and exhausted retries
    are logged with the user and item list and re-raised.
    """
    def _op():
        acquire_write_lock()

        if db.session.get(User, user_id) is None:
            raise UserNotFoundError(user_id)

        raw_lines = [_raw_line(item) for item in (items or [])]
        if not raw_lines:
            raise EmptyOrderError()

        # Lock every well-formed product id up front, in ascending id order
        products = lock_products(pid for pid, _ in raw_lines if _is_int(pid))

        lines: list[OrderLine] = []
        requested: dict[int, int] = {}
        for index, (product_id, quantity) in enumerate(raw_lines):
            line = _validate_line(index, product_id, quantity)
            product = products.get(line.product_id)
            if product is None:
                raise ProductNotFoundError(line.product_id)
            if not product.is_active:
                raise ProductUnavailableError(product.id, product.name)

            wanted = requested.get(product.id, 0) + line.quantity
            if product.stock_quantity < wanted:
                raise InsufficientStockError(product.id, product.name, wanted, product.stock_quantity)
            requested[product.id] = wanted
            lines.append(line)

        # Prices captured once, from the locked rows
        unit_prices = {pid: products[pid].price_cents for pid in requested}
        total_cents = sum(line.quantity * unit_prices[line.product_id] for line in lines)

        order = Order(
            user_id=user_id,
            total_amount_cents=total_cents,
            status=ORDER_STATUS_PENDING,
            shipping_address=shipping_address,
            payment_method=payment_method,
            notes=notes,
        )
        db.session.add(order)
        db.session.flush()

        db.session.execute(
            insert(OrderItem),
            [
                {
                    "order_id": order.id,
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    "price_cents": unit_prices[line.product_id],
                }
                for line in lines
            ],
        )

        for line in lines:
            product = products[line.product_id]
            stock_ledger.decrement(
                product.id,
                line.quantity,
                order_id=order.id,
                user_id=user_id,
                description=f'Order #{order.id}: {line.quantity} units of "{product.name}" purchased',
                product=product,
            )

        order_id = order.id
        db.session.commit()

        return OrderReceipt(
            order_id=order_id,
            total_amount=cents_to_decimal(total_cents),
            total_amount_cents=total_cents,
            item_count=len(lines),
            message=f"Order created successfully with {len(lines)} items.",
        )

    try:
        receipt = run_with_retry(_op, operation="place_order")
    except (StoreFailureError, StoreTimeoutError, ConcurrentModificationError) as e:
        current_app.logger.error(
            "Order placement failed (%s): user_id=%s items=%s cause=%s",
            e.message, user_id, _describe_items(items), getattr(e, "cause", None),
        )
        raise

    current_app.logger.info(
        "Order %s placed by user %s: %d items, total %s",
        receipt.order_id, user_id, receipt.item_count, receipt.total_amount,
    )
    return receipt


def _get_order(order_id: int, *, user_id: int | None = None, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if user_id is not None:
        # Someone else's order looks exactly like a missing one
        query = query.filter_by(user_id=user_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def get_order(order_id: int, *, user_id: int | None = None) -> Order:
    return _get_order(order_id, user_id=user_id)


def get_order_details(order_id: int, *, user_id: int | None = None) -> dict:
    """
    Order header plus items joined with the product name and image.

    With user_id, orders belonging to another user raise OrderNotFoundError.
    """
    order = _get_order(order_id, user_id=user_id)

    rows = (
        db.session.query(OrderItem, Product.name, Product.image_path)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(OrderItem.order_id == order.id)
        .order_by(OrderItem.id.asc())
        .all()
    )

    items = []
    for item, product_name, image_path in rows:
        data = item.to_dict()
        data["product_name"] = product_name
        data["image_path"] = image_path
        items.append(data)

    payload = order.to_dict()
    payload["items"] = items
    payload["item_count"] = len(items)
    return payload


def list_orders_for_user(user_id: int):
    return (
        Order.query
        .filter_by(user_id=user_id)
        .order_by(Order.order_date.desc(), Order.id.desc())
        .all()
    )


def list_orders(*, status: str | None = None, page: int = 1, per_page: int = 20):
    """Admin listing, newest first. Returns a Flask-SQLAlchemy Pagination."""
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"invalid status: {status}", {"allowed": list(ORDER_STATUSES)})
    if page < 1 or per_page < 1 or per_page > 100:
        raise ValidationError("page must be >= 1 and per_page between 1 and 100")

    query = Order.query
    if status is not None:
        query = query.filter_by(status=status)
    query = query.order_by(Order.order_date.desc(), Order.id.desc())
    return query.paginate(page=page, per_page=per_page, error_out=False)


def _apply_transition(order: Order, new_status: str, actor_user_id: int | None) -> Order:
    previous = order.status
    if previous == new_status:
        return order
    if new_status not in ALLOWED_TRANSITIONS.get(previous, set()):
        raise InvalidStatusTransitionError(order.id, previous, new_status)

    order.status = new_status
    db.session.flush()
    record_status_change(order, previous, new_status, actor_user_id=actor_user_id)
    return order


def update_order_status(order_id: int, new_status: str, actor_user_id: int | None = None) -> Order:
    """
    Move an order to new_status and record the transition in order history,
    in one transaction.
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"invalid status: {new_status}", {"allowed": list(ORDER_STATUSES)})

    def _op():
        acquire_write_lock()
        order = _get_order(order_id, lock=True)
        _apply_transition(order, new_status, actor_user_id)
        db.session.commit()
        return order

    order = run_with_retry(_op, operation="update_order_status")
    current_app.logger.info("Order %s status is now %s", order_id, order.status)
    return order


def cancel_order(order_id: int, user_id: int) -> Order:
    """
    Customer cancellation of their own order. Only pending orders can be
    cancelled this way. Stock is not returned.
    """
    def _op():
        acquire_write_lock()
        order = _get_order(order_id, user_id=user_id, lock=True)
        if order.status != ORDER_STATUS_PENDING:
            raise InvalidStatusTransitionError(order.id, order.status, ORDER_STATUS_CANCELLED)
        _apply_transition(order, ORDER_STATUS_CANCELLED, user_id)
        db.session.commit()
        return order

    return run_with_retry(_op, operation="cancel_order")

