# Overview: Pytest coverage for the stock ledger.

"""
Stock ledger tests.

Covers:
- balance_after always equals the product quantity after the change
- decrements below zero are refused and leave no trace
- history ordering and owner scoping
"""

import pytest

from backoffice.models import Product, StockTransaction
from backoffice.services import stock_ledger_service
from backoffice.services.errors import InsufficientStockError, InvalidStateError, NotFoundError

OWNER = "owner-a"


class TestAdjustStock:

    def test_increase_records_in_with_balance(self, db_session, product):
        record = stock_ledger_service.adjust_stock(OWNER, product.id, 5, "Count correction")

        assert record.direction == "IN"
        assert record.quantity_change == 5
        assert record.balance_after == 5
        assert db_session.get(Product, product.id).quantity == 5

    def test_decrease_records_out(self, db_session, make_product):
        product = make_product(quantity=10)

        record = stock_ledger_service.adjust_stock(OWNER, product.id, -4, "Damaged")

        assert record.direction == "OUT"
        assert record.balance_after == 6
        assert db_session.get(Product, product.id).quantity == 6

    def test_below_zero_is_refused(self, db_session, make_product):
        """A decrement past zero fails and appends nothing."""
        product = make_product(quantity=2)

        with pytest.raises(InsufficientStockError) as exc:
            stock_ledger_service.adjust_stock(OWNER, product.id, -3, "Too much")

        assert exc.value.details["product_id"] == product.id
        assert exc.value.details["on_hand"] == 2
        assert db_session.get(Product, product.id).quantity == 2
        assert db_session.query(StockTransaction).count() == 0

    def test_zero_delta_rejected(self, db_session, product):
        with pytest.raises(InvalidStateError):
            stock_ledger_service.adjust_stock(OWNER, product.id, 0, "noop")

    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_ledger_service.adjust_stock(OWNER, 9999, 1, "ghost")

    def test_other_owner_cannot_adjust(self, db_session, product):
        with pytest.raises(NotFoundError):
            stock_ledger_service.adjust_stock("owner-b", product.id, 1, "not mine")


class TestStockHistory:

    def test_history_newest_first_and_balances_chain(self, db_session, product):
        stock_ledger_service.adjust_stock(OWNER, product.id, 10, "first")
        stock_ledger_service.adjust_stock(OWNER, product.id, -3, "second")
        stock_ledger_service.adjust_stock(OWNER, product.id, 2, "third")

        history = stock_ledger_service.get_stock_history(OWNER, product.id)

        assert [r.reason for r in history] == ["third", "second", "first"]
        assert [r.balance_after for r in history] == [9, 7, 10]
        # Each record's balance is the previous balance plus its change
        oldest_first = list(reversed(history))
        running = 0
        for record in oldest_first:
            running += record.quantity_change
            assert record.balance_after == running

    def test_history_limit(self, db_session, product):
        for _ in range(4):
            stock_ledger_service.adjust_stock(OWNER, product.id, 1, "tick")

        assert len(stock_ledger_service.get_stock_history(OWNER, product.id, limit=2)) == 2

    def test_stock_level_in_sync(self, db_session, product):
        stock_ledger_service.adjust_stock(OWNER, product.id, 7, "receive")

        level = stock_ledger_service.get_stock_level(OWNER, product.id)

        assert level == {"product_id": product.id, "quantity": 7, "ledger_balance": 7, "in_sync": True}
