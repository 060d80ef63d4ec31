from __future__ import annotations

from ..extensions import db
from ..money import cents_to_decimal, format_cents
from ..time_utils import to_utc_z


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
)


class Order(db.Model):
    """
    Customer order header.

    total_amount_cents is fixed when the order is placed and never
    recalculated: it always equals sum(quantity * price_cents) over the
    order's items.

    Lifecycle: pending -> processing -> completed, or -> cancelled.
    completed and cancelled are terminal.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'cancelled')",
            name="ck_orders_status",
        ),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_orders_total_non_negative"),
        db.Index("ix_orders_user_date", "user_id", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    order_date = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    shipping_address = db.Column(db.Text, nullable=True)
    # Opaque label, no payment processing happens here
    payment_method = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    last_modified = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("orders", lazy=True, passive_deletes=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id",
    )
    # Read-only: rows are written by order_history_service and never removed
    history = db.relationship(
        "OrderHistoryEntry",
        lazy=True,
        viewonly=True,
        order_by="OrderHistoryEntry.id",
    )

    @property
    def total_amount(self):
        return cents_to_decimal(self.total_amount_cents)

    def __repr__(self) -> str:
        return f"<Order id={self.id} user_id={self.user_id} status={self.status!r} total_cents={self.total_amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_date": to_utc_z(self.order_date),
            "total_amount": format_cents(self.total_amount_cents),
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "last_modified": to_utc_z(self.last_modified),
        }


class OrderItem(db.Model):
    """
    Order line item.

    price_cents is the unit price captured when the order was placed and is
    immutable even if Product.price_cents later changes.

    product_id is ON DELETE RESTRICT: a product that appears on any order
    cannot be hard-deleted (deactivate it instead).
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        db.CheckConstraint("price_cents >= 0", name="ck_order_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": format_cents(self.price_cents),
            "price_cents": self.price_cents,
            "subtotal": format_cents(self.line_total_cents),
        }


class OrderHistoryEntry(db.Model):
    """
    Order status audit trail.

    One row per status transition, with the note "Status changed from A to B".
    user_id is the acting user when known; system transitions carry None.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "order_history"
    __table_args__ = (
        db.Index("ix_order_history_order_date", "order_id", "change_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    change_date = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "user_id": self.user_id,
            "notes": self.notes,
            "change_date": to_utc_z(self.change_date),
        }
