from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


INVENTORY_EVENT_ORDER = "order"
INVENTORY_EVENT_RESTOCK = "restock"
INVENTORY_EVENT_ADJUSTMENT = "adjustment"
INVENTORY_EVENT_LOW_STOCK = "low_stock"

INVENTORY_EVENT_TYPES = (
    INVENTORY_EVENT_ORDER,
    INVENTORY_EVENT_RESTOCK,
    INVENTORY_EVENT_ADJUSTMENT,
    INVENTORY_EVENT_LOW_STOCK,
)


class InventoryLogEntry(db.Model):
    """
    Inventory audit log.

    quantity for an order event is the positive number of units sold, so
    after_quantity == before_quantity - quantity. For restock and adjustment
    events quantity is the signed delta: after_quantity == before_quantity + quantity.

    Rows are written in the same DB transaction as the stock mutation they
    describe, by the stock ledger only.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.CheckConstraint(
            "event_type IN ('order', 'restock', 'adjustment', 'low_stock')",
            name="ck_inventory_logs_event_type",
        ),
        db.Index("ix_inventory_logs_product_date", "product_id", "log_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)

    event_type = db.Column(db.String(20), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    before_quantity = db.Column(db.Integer, nullable=True)
    after_quantity = db.Column(db.Integer, nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    description = db.Column(db.Text, nullable=True)
    log_date = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<InventoryLogEntry id={self.id} product_id={self.product_id} "
            f"type={self.event_type} {self.before_quantity}->{self.after_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "event_type": self.event_type,
            "quantity": self.quantity,
            "before_quantity": self.before_quantity,
            "after_quantity": self.after_quantity,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "low_stock_threshold": self.low_stock_threshold,
            "description": self.description,
            "log_date": to_utc_z(self.log_date),
        }
