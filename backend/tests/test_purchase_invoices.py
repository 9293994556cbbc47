# Overview: Pytest coverage for purchase invoice math and stock effects.

from datetime import datetime
from decimal import Decimal

import pytest

from backoffice.models import Product, PurchaseInvoice, PurchaseInvoiceLine, StockTransaction
from backoffice.services import purchase_invoice_service
from backoffice.services.errors import InsufficientStockError, InvalidStateError, NotFoundError
from backoffice.services.stock_ledger_service import adjust_stock

OWNER = "owner-a"


def _line(product_id, quantity=2, unit_price="100", r1="10", r2="10", tax="18"):
    return {
        "product_id": product_id,
        "quantity": quantity,
        "unit_price": unit_price,
        "discount_rate_1": r1,
        "discount_rate_2": r2,
        "tax_rate": tax,
    }


class TestLineMath:

    def test_compounding_discounts_and_tax(self):
        """100 x 2 at 10% then 10% with 18% tax."""
        amounts = purchase_invoice_service.compute_line_amounts(2, Decimal("100"), 10, 10, 18)

        assert amounts.line_total == Decimal("200.00")
        assert amounts.discount == Decimal("38.00")
        assert amounts.net == Decimal("162.00")
        assert amounts.tax == Decimal("29.16")
        assert amounts.grand_total == Decimal("191.16")

    def test_no_discount_no_tax(self):
        amounts = purchase_invoice_service.compute_line_amounts(3, Decimal("9.99"))

        assert amounts.line_total == Decimal("29.97")
        assert amounts.discount == Decimal("0.00")
        assert amounts.grand_total == Decimal("29.97")

    def test_rounds_half_up_to_cents(self):
        amounts = purchase_invoice_service.compute_line_amounts(1, Decimal("0.05"), 0, 0, 10)
        assert amounts.tax == Decimal("0.01")


class TestCreateInvoice:

    def test_create_updates_stock_and_totals(self, db_session, company, product):
        invoice = purchase_invoice_service.create_invoice(
            OWNER,
            invoice_number="INV-001",
            company_id=company.id,
            invoice_date=datetime(2024, 3, 1, 9, 0),
            lines=[_line(product.id)],
        )

        assert invoice.total_amount == Decimal("200.00")
        assert invoice.total_discount == Decimal("38.00")
        assert invoice.total_tax == Decimal("29.16")
        assert invoice.grand_total == Decimal("191.16")
        assert db_session.get(Product, product.id).quantity == 2

        record = db_session.query(StockTransaction).one()
        assert record.reason == f"PurchaseInvoice:{invoice.id}"
        assert record.quantity_change == 2
        assert record.balance_after == 2

    def test_lines_snapshot_product(self, db_session, company, product):
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-002", company_id=company.id, lines=[_line(product.id)],
        )
        line = db_session.query(PurchaseInvoiceLine).filter_by(invoice_id=invoice.id).one()
        assert line.product_name == product.name
        assert line.tax_amount == Decimal("29.16")

    def test_empty_lines_rejected(self, db_session, company):
        with pytest.raises(InvalidStateError):
            purchase_invoice_service.create_invoice(
                OWNER, invoice_number="INV-003", company_id=company.id, lines=[],
            )

    @pytest.mark.parametrize("bad", [
        {"quantity": 0},
        {"quantity": -1},
        {"r1": "101"},
        {"r2": "-5"},
        {"tax": "-1"},
        {"unit_price": "abc"},
    ])
    def test_malformed_line_rejected(self, db_session, company, product, bad):
        with pytest.raises(InvalidStateError):
            purchase_invoice_service.create_invoice(
                OWNER, invoice_number="INV-004", company_id=company.id, lines=[_line(product.id, **bad)],
            )

    def test_unknown_product_rolls_back_everything(self, db_session, company, product):
        """A bad second line leaves no trace of the first."""
        with pytest.raises(NotFoundError):
            purchase_invoice_service.create_invoice(
                OWNER,
                invoice_number="INV-005",
                company_id=company.id,
                lines=[_line(product.id), _line(424242)],
            )

        assert db_session.query(PurchaseInvoice).count() == 0
        assert db_session.query(StockTransaction).count() == 0
        assert db_session.get(Product, product.id).quantity == 0

    def test_unknown_company(self, db_session, product):
        with pytest.raises(NotFoundError):
            purchase_invoice_service.create_invoice(
                OWNER, invoice_number="INV-006", company_id=777, lines=[_line(product.id)],
            )


class TestUpdateInvoice:

    def test_same_lines_are_net_zero(self, db_session, company, product):
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-010", company_id=company.id, lines=[_line(product.id, quantity=5)],
        )

        purchase_invoice_service.update_invoice(
            OWNER,
            invoice.id,
            invoice_number="INV-010",
            company_id=company.id,
            lines=[_line(product.id, quantity=5)],
        )

        assert db_session.get(Product, product.id).quantity == 5
        reasons = [r.reason for r in db_session.query(StockTransaction).order_by(StockTransaction.id)]
        assert reasons == [
            f"PurchaseInvoice:{invoice.id}",
            f"InvoiceUpdateReversal:{invoice.id}",
            f"PurchaseInvoiceUpdate:{invoice.id}",
        ]

    def test_changed_lines_recompute_totals(self, db_session, company, make_product):
        first = make_product(name="First")
        second = make_product(name="Second")
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-011", company_id=company.id, lines=[_line(first.id, quantity=4)],
        )

        updated = purchase_invoice_service.update_invoice(
            OWNER,
            invoice.id,
            invoice_number="INV-011",
            company_id=company.id,
            lines=[_line(second.id, quantity=1, unit_price="50", r1="0", r2="0", tax="0")],
        )

        assert updated.grand_total == Decimal("50.00")
        assert len(updated.lines) == 1
        assert db_session.get(Product, first.id).quantity == 0
        assert db_session.get(Product, second.id).quantity == 1

    def test_reversal_below_zero_fails_and_changes_nothing(self, db_session, company, product):
        """Goods already sold cannot be taken back out by an update."""
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-012", company_id=company.id, lines=[_line(product.id, quantity=3)],
        )
        adjust_stock(OWNER, product.id, -2, "Sold elsewhere")

        with pytest.raises(InsufficientStockError):
            purchase_invoice_service.update_invoice(
                OWNER,
                invoice.id,
                invoice_number="INV-012",
                company_id=company.id,
                lines=[_line(product.id, quantity=1)],
            )

        db_session.expire_all()
        assert db_session.get(Product, product.id).quantity == 1
        assert len(db_session.get(PurchaseInvoice, invoice.id).lines) == 1
        assert db_session.query(StockTransaction).count() == 2

    def test_header_fix_after_partial_sale(self, db_session, company, product):
        """Only the final quantity has to stay non-negative, not the reversal step."""
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-013", company_id=company.id, lines=[_line(product.id, quantity=3)],
        )
        adjust_stock(OWNER, product.id, -2, "Sold elsewhere")

        updated = purchase_invoice_service.update_invoice(
            OWNER,
            invoice.id,
            invoice_number="INV-013-FIXED",
            company_id=company.id,
            lines=[_line(product.id, quantity=3)],
        )

        assert updated.invoice_number == "INV-013-FIXED"
        assert db_session.get(Product, product.id).quantity == 1
        records = db_session.query(StockTransaction).order_by(StockTransaction.id).all()
        assert [r.reason for r in records[-2:]] == [
            f"InvoiceUpdateReversal:{invoice.id}",
            f"PurchaseInvoiceUpdate:{invoice.id}",
        ]
        assert records[-1].balance_after == 1

    def test_reapply_split_across_lines_after_partial_sale(self, db_session, company, product):
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-015", company_id=company.id, lines=[_line(product.id, quantity=3)],
        )
        adjust_stock(OWNER, product.id, -2, "Sold elsewhere")

        purchase_invoice_service.update_invoice(
            OWNER,
            invoice.id,
            invoice_number="INV-015",
            company_id=company.id,
            lines=[_line(product.id, quantity=1), _line(product.id, quantity=2)],
        )

        assert db_session.get(Product, product.id).quantity == 1
        last = db_session.query(StockTransaction).order_by(StockTransaction.id.desc()).first()
        assert last.balance_after == 1

    def test_final_quantity_checked_per_product(self, db_session, company, make_product):
        sold = make_product(name="Sold")
        other = make_product(name="Other")
        invoice = purchase_invoice_service.create_invoice(
            OWNER,
            invoice_number="INV-014",
            company_id=company.id,
            lines=[_line(sold.id, quantity=3), _line(other.id, quantity=2)],
        )
        adjust_stock(OWNER, sold.id, -2, "Sold elsewhere")

        with pytest.raises(InsufficientStockError) as exc:
            purchase_invoice_service.update_invoice(
                OWNER,
                invoice.id,
                invoice_number="INV-014",
                company_id=company.id,
                lines=[_line(sold.id, quantity=1), _line(other.id, quantity=5)],
            )

        assert exc.value.details["items"] == [{"product_id": sold.id, "on_hand": 1, "final_quantity": -1}]
        db_session.expire_all()
        assert db_session.get(Product, other.id).quantity == 2

    def test_update_missing_invoice(self, db_session, company, product):
        with pytest.raises(NotFoundError):
            purchase_invoice_service.update_invoice(
                OWNER, 999, invoice_number="X", company_id=company.id, lines=[_line(product.id)],
            )


class TestDeleteInvoice:

    def test_delete_reverses_stock(self, db_session, company, product):
        invoice = purchase_invoice_service.create_invoice(
            OWNER, invoice_number="INV-020", company_id=company.id, lines=[_line(product.id, quantity=6)],
        )
        invoice_id = invoice.id

        purchase_invoice_service.delete_invoice(OWNER, invoice_id)

        assert db_session.get(Product, product.id).quantity == 0
        assert db_session.get(PurchaseInvoice, invoice_id) is None
        assert db_session.query(PurchaseInvoiceLine).count() == 0
        last = db_session.query(StockTransaction).order_by(StockTransaction.id.desc()).first()
        assert last.reason == f"PurchaseInvoiceDelete:{invoice_id}"
        assert last.balance_after == 0

    def test_list_by_company(self, db_session, company, product):
        purchase_invoice_service.create_invoice(
            OWNER, invoice_number="A", company_id=company.id, lines=[_line(product.id)],
            invoice_date=datetime(2024, 1, 1),
        )
        purchase_invoice_service.create_invoice(
            OWNER, invoice_number="B", company_id=company.id, lines=[_line(product.id)],
            invoice_date=datetime(2024, 2, 1),
        )

        invoices = purchase_invoice_service.list_invoices(OWNER, company_id=company.id)
        assert [inv.invoice_number for inv in invoices] == ["B", "A"]
