"""
Order history recorder tests.
"""

from groceries.extensions import db
from groceries.models import Order, OrderHistoryEntry
from groceries.services import order_service
from groceries.services.order_history_service import list_order_history, record_status_change


class TestRecordStatusChange:

    def test_equal_status_writes_nothing(self, customer, bread):
        receipt = order_service.place_order(customer.id, [{"product_id": bread.id, "quantity": 1}])
        order = db.session.get(Order, receipt.order_id)

        assert record_status_change(order, "pending", "pending") is None
        db.session.commit()
        assert db.session.query(OrderHistoryEntry).count() == 0

    def test_entry_note_and_actor(self, customer, admin, bread):
        receipt = order_service.place_order(customer.id, [{"product_id": bread.id, "quantity": 1}])
        order = db.session.get(Order, receipt.order_id)

        entry = record_status_change(order, "pending", "processing", actor_user_id=admin.id)
        db.session.commit()

        assert entry.status == "processing"
        assert entry.notes == "Status changed from pending to processing"
        assert entry.user_id == admin.id

    def test_history_is_oldest_first(self, customer, bread):
        receipt = order_service.place_order(customer.id, [{"product_id": bread.id, "quantity": 1}])
        order_service.update_order_status(receipt.order_id, "processing")
        order_service.update_order_status(receipt.order_id, "cancelled")

        history = list_order_history(receipt.order_id)
        assert [h.status for h in history] == ["processing", "cancelled"]
        assert all(h.user_id is None for h in history)
