"""
Stock ledger tests.

Verifies:
- Restocks and adjustments change stock and write exactly one log row
- Stock never goes negative
- Log rows cannot be edited or deleted through the ORM
"""

import pytest

from groceries.errors import InsufficientStockError, ProductNotFoundError, ValidationError
from groceries.extensions import db
from groceries.models import AppendOnlyViolation, InventoryLogEntry, Product
from groceries.services import catalog_service, stock_ledger


class TestAdjust:

    def test_restock_logs_before_and_after(self, bread, admin):
        entry = stock_ledger.restock(bread.id, 25, user_id=admin.id, note="Weekly delivery")

        assert db.session.get(Product, bread.id).stock_quantity == 175
        assert entry.event_type == "restock"
        assert (entry.quantity, entry.before_quantity, entry.after_quantity) == (25, 150, 175)
        assert entry.user_id == admin.id
        assert entry.description == "Weekly delivery"
        assert entry.low_stock_threshold == 10

    def test_negative_adjustment(self, bread):
        entry = stock_ledger.adjust(bread.id, -10, "Damaged in transit")
        assert entry.event_type == "adjustment"
        assert (entry.quantity, entry.after_quantity) == (-10, 140)

    def test_adjustment_cannot_go_negative(self, last_salmon):
        with pytest.raises(InsufficientStockError):
            stock_ledger.adjust(last_salmon.id, -2, "Count correction")
        assert db.session.get(Product, last_salmon.id).stock_quantity == 1
        assert db.session.query(InventoryLogEntry).count() == 0

    def test_zero_delta_rejected(self, bread):
        with pytest.raises(ValidationError):
            stock_ledger.adjust(bread.id, 0, "nothing")

    def test_order_event_type_reserved_for_orders(self, bread):
        with pytest.raises(ValidationError):
            stock_ledger.adjust(bread.id, -1, "sneaky", event_type="order")

    def test_restock_requires_positive_quantity(self, bread):
        with pytest.raises(ValidationError):
            stock_ledger.restock(bread.id, -5)

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            stock_ledger.adjust(31337, 5, "ghost")

    def test_version_moves_with_each_write(self, bread):
        before = db.session.get(Product, bread.id).version_id
        stock_ledger.restock(bread.id, 1)
        assert db.session.get(Product, bread.id).version_id == before + 1


class TestInventoryLog:

    def test_newest_first(self, bread):
        stock_ledger.restock(bread.id, 5)
        stock_ledger.adjust(bread.id, -3, "Shrinkage")

        entries = stock_ledger.list_inventory_log(bread.id)
        assert [e.quantity for e in entries] == [-3, 5]

    def test_log_rows_are_append_only(self, bread):
        entry = stock_ledger.restock(bread.id, 5)

        entry.description = "rewritten"
        with pytest.raises(AppendOnlyViolation):
            db.session.flush()
        db.session.rollback()

        db.session.delete(db.session.get(InventoryLogEntry, entry.id))
        with pytest.raises(AppendOnlyViolation):
            db.session.flush()
        db.session.rollback()

        assert db.session.get(InventoryLogEntry, entry.id).description == "Restocked 5 units"


class TestLowStock:

    def test_low_stock_listing(self, bread, last_salmon, croissants):
        catalog_service.set_product_active(croissants.id, False)
        stock_ledger.adjust(croissants.id, -85, "Spoiled batch")

        low = catalog_service.list_low_stock_products()
        assert [p.id for p in low] == [last_salmon.id]

        low_all = catalog_service.list_low_stock_products(include_inactive=True)
        assert {p.id for p in low_all} == {last_salmon.id, croissants.id}
