# Overview: Order status audit trail.

from __future__ import annotations

from ..extensions import db
from ..models import Order, OrderHistoryEntry


def status_change_note(previous_status: str, new_status: str) -> str:
    return f"Status changed from {previous_status} to {new_status}"


def record_status_change(
    order: Order,
    previous_status: str,
    new_status: str,
    actor_user_id: int | None = None,
) -> OrderHistoryEntry | None:
    """
    Append one history row for a status transition.

    Must be called inside the transaction that writes the new status
    (flushes, never commits). Returns None and writes nothing when the
    status did not actually change.
    """
    if previous_status == new_status:
        return None

    entry = OrderHistoryEntry(
        order_id=order.id,
        status=new_status,
        user_id=actor_user_id,
        notes=status_change_note(previous_status, new_status),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_order_history(order_id: int):
    """History for an order, oldest first."""
    return (
        OrderHistoryEntry.query
        .filter_by(order_id=order_id)
        .order_by(OrderHistoryEntry.change_date.asc(), OrderHistoryEntry.id.asc())
        .all()
    )
