# Overview: Pytest coverage for the HTTP surface; identity context, status mapping and JSON shapes.

from backoffice.models import Product

OWNER = "owner-a"
HEADERS = {"X-Owner-Id": OWNER}


class TestIdentityContext:

    def test_missing_owner_header_is_401(self, client, db_session, product):
        response = client.get(f"/api/stock/{product.id}")
        assert response.status_code == 401

    def test_other_owner_sees_not_found(self, client, db_session, product):
        response = client.get(f"/api/stock/{product.id}", headers={"X-Owner-Id": "owner-b"})
        assert response.status_code == 404
        assert response.json["details"] == {"product_id": product.id}


class TestStockRoutes:

    def test_adjust_and_history(self, client, db_session, product):
        response = client.post(
            f"/api/stock/{product.id}/adjust",
            json={"quantity_change": 4, "reason": "Count"},
            headers=HEADERS,
        )
        assert response.status_code == 201
        assert response.json["transaction"]["balance_after"] == 4

        history = client.get(f"/api/stock/{product.id}/history", headers=HEADERS)
        assert history.status_code == 200
        assert [t["reason"] for t in history.json["transactions"]] == ["Count"]

    def test_negative_stock_is_409(self, client, db_session, product):
        response = client.post(
            f"/api/stock/{product.id}/adjust",
            json={"quantity_change": -1},
            headers=HEADERS,
        )
        assert response.status_code == 409
        assert response.json["error"] == "Cannot decrease stock below zero"

    def test_missing_field_is_400(self, client, db_session, product):
        response = client.post(f"/api/stock/{product.id}/adjust", json={}, headers=HEADERS)
        assert response.status_code == 400


class TestInvoiceAndSaleRoutes:

    def test_invoice_then_sale_flow(self, client, db_session, company, product):
        created = client.post(
            "/api/purchase-invoices/",
            json={
                "invoice_number": "INV-100",
                "company_id": company.id,
                "invoice_date": "2024-03-01T09:00:00Z",
                "lines": [{
                    "product_id": product.id,
                    "quantity": 2,
                    "unit_price": "100",
                    "discount_rate_1": 10,
                    "discount_rate_2": 10,
                    "tax_rate": 18,
                }],
            },
            headers=HEADERS,
        )
        assert created.status_code == 201
        assert created.json["invoice"]["grand_total"] == "191.16"
        assert created.json["invoice"]["invoice_date"] == "2024-03-01T09:00:00Z"

        opened = client.post(
            "/api/sales/",
            json={"lines": [{"product_id": product.id, "quantity": 1}]},
            headers=HEADERS,
        )
        assert opened.status_code == 201
        sale_id = opened.json["sale"]["id"]

        finalized = client.post(f"/api/sales/{sale_id}/finalize", json={"payment_method": "Nakit"}, headers=HEADERS)
        assert finalized.status_code == 200
        assert finalized.json["sale"]["settlement_bucket"] == "CASH"

        again = client.post(f"/api/sales/{sale_id}/finalize", json={"payment_method": "Nakit"}, headers=HEADERS)
        assert again.status_code == 409

        db_session.expire_all()
        assert db_session.get(Product, product.id).quantity == 1

    def test_delete_unknown_invoice_is_404(self, client, db_session):
        response = client.delete("/api/purchase-invoices/999", headers=HEADERS)
        assert response.status_code == 404

    def test_malformed_miscellaneous_is_400(self, client, db_session, make_product):
        stocked = make_product(quantity=3)
        response = client.post(
            "/api/sales/",
            json={"lines": [{"product_id": stocked.id, "quantity": 1}], "miscellaneous": ["Delivery"]},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json["details"] == {"item": 0}

    def test_insufficient_stock_details(self, client, db_session, product):
        response = client.post(
            "/api/sales/",
            json={"lines": [{"product_id": product.id, "quantity": 2}]},
            headers=HEADERS,
        )
        assert response.status_code == 409
        assert response.json["details"]["items"][0]["on_hand"] == 0


class TestAccountRoutes:

    def test_customer_statement(self, client, db_session, customer):
        client.post(
            f"/api/customers/{customer.id}/debts",
            json={"amount": "100", "debt_date": "2024-05-01T10:00:00Z"},
            headers=HEADERS,
        )
        client.post(
            f"/api/customers/{customer.id}/payments",
            json={"amount": "40", "payment_method": "Nakit", "payment_date": "2024-05-02T10:00:00Z"},
            headers=HEADERS,
        )
        client.post(
            f"/api/customers/{customer.id}/debts",
            json={"amount": "30", "debt_date": "2024-05-03T10:00:00Z"},
            headers=HEADERS,
        )

        response = client.get(
            f"/api/customers/{customer.id}/statement?start=2024-05-02&end=2024-05-03",
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert [r["balance"] for r in response.json["rows"]] == ["90.00", "60.00"]
        assert response.json["remaining_balance"] == "90.00"

        summary = client.get(f"/api/customers/{customer.id}/summary", headers=HEADERS)
        assert summary.json["balance_in_sync"] is True

    def test_company_payment_without_method_is_400(self, client, db_session, company):
        response = client.post(
            f"/api/companies/{company.id}/transactions",
            json={"type": "PAYMENT", "amount": "10"},
            headers=HEADERS,
        )
        assert response.status_code == 400


class TestReportRoutes:

    def test_bad_window_is_400(self, client, db_session):
        response = client.get("/api/reports/summary?start=2024-01-03&end=2024-01-01", headers=HEADERS)
        assert response.status_code == 400
        assert response.json["error"] == "start must be before end"

    def test_missing_window_is_400(self, client, db_session):
        response = client.get("/api/reports/cash-flow", headers=HEADERS)
        assert response.status_code == 400

    def test_income_feeds_cash_flow(self, client, db_session):
        created = client.post(
            "/api/finance/incomes",
            json={"amount": "12.50", "payment_method": "Nakit", "occurred_at": "2024-02-10T12:00:00Z"},
            headers=HEADERS,
        )
        assert created.status_code == 201

        response = client.get("/api/reports/cash-flow?start=2024-02-10&end=2024-02-10", headers=HEADERS)

        assert response.status_code == 200
        assert response.json["incomes"]["cash"] == "12.50"
        assert response.json["net_cash"] == "12.50"

    def test_register_totals_and_dashboard(self, client, db_session):
        client.post(
            "/api/finance/expenses",
            json={"amount": "4", "payment_method": "Nakit", "category": "Rent", "occurred_at": "2024-02-10T12:00:00Z"},
            headers=HEADERS,
        )

        totals = client.get("/api/reports/register-totals", headers=HEADERS)
        metrics = client.get("/api/reports/net-profit-metrics", headers=HEADERS)

        assert totals.status_code == 200
        assert totals.json["expenses"]["by_category"] == [{"category": "Rent", "total": "4.00"}]
        assert metrics.status_code == 200
        assert metrics.json["today"]["compared_to"] == "yesterday"

    def test_product_sales_report(self, client, db_session, make_product):
        stocked = make_product(quantity=2)
        opened = client.post(
            "/api/sales/",
            json={"lines": [{"product_id": stocked.id, "quantity": 2}]},
            headers=HEADERS,
        )
        finalized = client.post(
            f"/api/sales/{opened.json['sale']['id']}/finalize", json={"payment_method": "POS"}, headers=HEADERS
        )
        completed_day = finalized.json["sale"]["completed_at"][:10]

        response = client.get(
            f"/api/reports/product-sales?start={completed_day}&end={completed_day}",
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json["rows"][0]["quantity_sold"] == 2
        assert response.json["rows"][0]["remaining_stock"] == 0

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["database"]["status"] == "healthy"
