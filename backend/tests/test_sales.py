# Overview: Pytest coverage for sale opening and settlement.

"""
Sale settlement tests.

Covers:
- open_sale pricing, discounts, miscellaneous charges and stock checks
- single-method and split finalization
- Completed is terminal
- open-account charges and limits
"""

from decimal import Decimal

import pytest

from backoffice.models import Customer, Payment, Product, Sale, StockTransaction
from backoffice.services import sales_service
from backoffice.services.errors import (
    AlreadyCompletedError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
)

OWNER = "owner-a"


@pytest.fixture
def stocked(make_product):
    return make_product(name="Cay", quantity=10, purchase_price="4.00", sale_price="10.00")


class TestOpenSale:

    def test_open_prices_lines_without_touching_stock(self, db_session, stocked):
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 3}])

        assert sale.is_completed is False
        assert sale.sub_total == Decimal("30.00")
        assert sale.total_amount == Decimal("30.00")
        assert sale.total_quantity == 3
        assert sale.lines[0].unit_price == Decimal("10.00")
        assert db_session.get(Product, stocked.id).quantity == 10
        assert db_session.query(StockTransaction).count() == 0

    def test_insufficient_stock_lists_products(self, db_session, stocked, make_product):
        """Quantities for the same product are added up across lines."""
        other = make_product(name="Seker", quantity=1)

        with pytest.raises(InsufficientStockError) as exc:
            sales_service.open_sale(OWNER, [
                {"product_id": stocked.id, "quantity": 6},
                {"product_id": stocked.id, "quantity": 6},
                {"product_id": other.id, "quantity": 1},
            ])

        items = exc.value.details["items"]
        assert items == [{"product_id": stocked.id, "requested_quantity": 12, "on_hand": 10}]
        assert db_session.query(Sale).count() == 0

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.open_sale(OWNER, [{"product_id": 555, "quantity": 1}])

    def test_percentage_discount_and_miscellaneous(self, db_session, stocked):
        sale = sales_service.open_sale(
            OWNER,
            [{"product_id": stocked.id, "quantity": 4}],
            discount_type="PERCENTAGE",
            discount_value="25",
            miscellaneous=[{"description": "Delivery", "amount": "5.50"}],
        )

        assert sale.sub_total == Decimal("40.00")
        assert sale.discount_amount == Decimal("10.00")
        assert sale.miscellaneous_total == Decimal("5.50")
        assert sale.total_amount == Decimal("35.50")

    @pytest.mark.parametrize("item", ["Delivery", 5, None])
    def test_miscellaneous_item_must_be_object(self, db_session, stocked, item):
        with pytest.raises(InvalidStateError) as exc:
            sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 1}], miscellaneous=[item])

        assert exc.value.details == {"item": 0}
        assert db_session.query(Sale).count() == 0

    def test_amount_discount_cannot_exceed_subtotal(self, db_session, stocked):
        with pytest.raises(InvalidStateError):
            sales_service.open_sale(
                OWNER,
                [{"product_id": stocked.id, "quantity": 1}],
                discount_type="AMOUNT",
                discount_value="10.01",
            )

    def test_percentage_over_hundred_rejected(self, db_session, stocked):
        with pytest.raises(InvalidStateError):
            sales_service.open_sale(
                OWNER,
                [{"product_id": stocked.id, "quantity": 1}],
                discount_type="PERCENTAGE",
                discount_value="150",
            )

    def test_add_line_recomputes(self, db_session, stocked):
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 1}])

        sales_service.add_line(OWNER, sale.id, stocked.id, 2)

        sale = db_session.get(Sale, sale.id)
        assert sale.total_quantity == 3
        assert sale.total_amount == Decimal("30.00")

    def test_add_line_checks_combined_quantity(self, db_session, stocked):
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 8}])

        with pytest.raises(InsufficientStockError):
            sales_service.add_line(OWNER, sale.id, stocked.id, 3)


class TestFinalizeSale:

    def test_cash_finalize_decrements_stock_and_snapshots_cost(self, db_session, stocked):
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 3}])

        sale = sales_service.finalize_sale(OWNER, sale.id, "Nakit")

        assert sale.is_completed is True
        assert sale.settlement_bucket == "CASH"
        assert sale.completed_at is not None
        assert sale.lines[0].unit_cost == Decimal("4.00")
        assert db_session.get(Product, stocked.id).quantity == 7
        record = db_session.query(StockTransaction).one()
        assert record.reason == f"Sale:{sale.id}"
        assert record.balance_after == 7

    def test_finalize_twice_fails(self, db_session, stocked):
        """Completed is terminal; the second attempt changes nothing."""
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 1}])
        sales_service.finalize_sale(OWNER, sale.id, "POS")

        with pytest.raises(AlreadyCompletedError):
            sales_service.finalize_sale(OWNER, sale.id, "Nakit")

        assert db_session.get(Product, stocked.id).quantity == 9
        assert db_session.get(Sale, sale.id).settlement_bucket == "CARD"
        assert db_session.query(StockTransaction).count() == 1

    def test_finalize_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.finalize_sale(OWNER, 31337, "Nakit")

    def test_stock_sold_out_between_open_and_finalize(self, db_session, stocked):
        first = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 8}])
        second = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 8}])
        sales_service.finalize_sale(OWNER, first.id, "Nakit")

        with pytest.raises(InsufficientStockError):
            sales_service.finalize_sale(OWNER, second.id, "Nakit")

        assert db_session.get(Sale, second.id).is_completed is False
        assert db_session.get(Product, stocked.id).quantity == 2

    def test_open_account_charges_customer(self, db_session, stocked, customer):
        sale = sales_service.open_sale(
            OWNER, [{"product_id": stocked.id, "quantity": 2}], customer_id=customer.id
        )

        sales_service.finalize_sale(OWNER, sale.id, "Açık Hesap")

        assert db_session.get(Customer, customer.id).balance == Decimal("20.00")

    def test_open_account_requires_customer(self, db_session, stocked):
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 1}])

        with pytest.raises(InvalidStateError):
            sales_service.finalize_sale(OWNER, sale.id, "Açık Hesap")

        assert db_session.get(Product, stocked.id).quantity == 10

    def test_open_account_limit(self, db_session, stocked, customer):
        customer.open_account_limit = Decimal("15.00")
        db_session.commit()
        sale = sales_service.open_sale(
            OWNER, [{"product_id": stocked.id, "quantity": 2}], customer_id=customer.id
        )

        with pytest.raises(InvalidStateError) as exc:
            sales_service.finalize_sale(OWNER, sale.id, "Açık Hesap")

        assert exc.value.details["limit"] == Decimal("15.00")
        assert db_session.get(Customer, customer.id).balance == Decimal("0.00")


class TestSplitSale:

    def test_split_creates_payments_and_decrements_stock(self, db_session, stocked, customer):
        sale = sales_service.open_sale(
            OWNER, [{"product_id": stocked.id, "quantity": 5}], customer_id=customer.id
        )

        sale = sales_service.finalize_split_sale(OWNER, sale.id, [
            {"payment_method": "Nakit", "amount": "20"},
            {"payment_method": "POS", "amount": "20"},
            {"payment_method": "Açık Hesap", "amount": "10"},
        ])

        assert sale.is_completed is True
        assert sale.is_split is True
        payments = db_session.query(Payment).filter_by(sale_id=sale.id).order_by(Payment.id).all()
        assert [p.settlement_bucket for p in payments] == ["CASH", "CARD", "OPEN_ACCOUNT"]
        assert db_session.get(Product, stocked.id).quantity == 5
        assert db_session.get(Customer, customer.id).balance == Decimal("10.00")

    def test_split_sum_must_match_total(self, db_session, stocked):
        sale = sales_service.open_sale(OWNER, [{"product_id": stocked.id, "quantity": 1}])

        with pytest.raises(InvalidStateError) as exc:
            sales_service.finalize_split_sale(OWNER, sale.id, [
                {"payment_method": "Nakit", "amount": "4"},
                {"payment_method": "POS", "amount": "5"},
            ])

        assert exc.value.details["payments_total"] == Decimal("9.00")
        assert db_session.query(Payment).count() == 0
        assert db_session.get(Sale, sale.id).is_completed is False
