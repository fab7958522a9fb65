"""
HTTP API tests.

Drives the counter flows end to end through the Flask test client and checks
the error contract ({"error": ...} with 400 / 404 / 409 / 422).
"""

from io import BytesIO

from backoffice.models import Tax


def _ticket(client, headers, article, quantity=2, **extra):
    body = {"items": [{"article_id": article.id, "quantity": quantity, "discount": 10}]}
    body.update(extra)
    return client.post("/api/tickets", json=body, headers=headers)


# =============================================================================
# SYSTEM
# =============================================================================

class TestSystem:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"


# =============================================================================
# CATALOG
# =============================================================================

class TestArticles:

    def test_create_and_lookup(self, client, cashier_headers):
        resp = client.post(
            "/api/articles",
            json={"cb": "3021", "cb_ref": "BP-77", "name": "Plaquettes", "sale_price": 15000, "stock": 4},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        article_id = resp.get_json()["article"]["id"]

        resp = client.get("/api/articles/barcode/BP-77", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["article"]["id"] == article_id

        resp = client.get("/api/articles?search=plaq", headers=cashier_headers)
        assert resp.get_json()["pagination"]["total"] == 1

    def test_duplicate_barcode(self, client, cashier_headers, article):
        resp = client.post(
            "/api/articles",
            json={"cb": article.cb, "name": "Copie", "sale_price": 1},
            headers=cashier_headers,
        )
        assert resp.status_code == 409

    def test_unknown_field(self, client, cashier_headers):
        resp = client.post(
            "/api/articles",
            json={"cb": "1", "name": "X", "sale_price": 1, "owner": "me"},
            headers=cashier_headers,
        )
        assert resp.status_code == 400
        assert "owner" in resp.get_json()["error"]

    def test_negative_price(self, client, cashier_headers, article):
        resp = client.patch(f"/api/articles/{article.id}", json={"sale_price": -1}, headers=cashier_headers)
        assert resp.status_code == 400

    def test_not_found(self, client, cashier_headers):
        assert client.get("/api/articles/999", headers=cashier_headers).status_code == 404

    def test_history(self, client, cashier_headers, article):
        _ticket(client, cashier_headers, article)
        resp = client.get(f"/api/articles/{article.id}/history", headers=cashier_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert [(s["document_type"], s["quantity"], s["total"]) for s in data["sales"]] == [("ticket", 2, 1800)]
        assert data["purchases"] == []

        assert client.get("/api/articles/999/history", headers=cashier_headers).status_code == 404

    def test_low_stock(self, client, cashier_headers, article):
        client.patch(f"/api/articles/{article.id}", json={"stock": 1}, headers=cashier_headers)
        resp = client.get("/api/articles/low-stock", headers=cashier_headers)
        assert [a["id"] for a in resp.get_json()["items"]] == [article.id]

    def test_image_upload(self, client, app, cashier_headers, article):
        resp = client.post(
            f"/api/articles/{article.id}/image",
            data={"file": (BytesIO(b"\x89PNG fake"), "photo.png")},
            headers=cashier_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        url = resp.get_json()["image_url"]
        assert url == f"/uploads/articles/{article.id}/image.png"
        assert client.get(url).status_code == 200

    def test_image_upload_rejects_other_files(self, client, cashier_headers, article):
        resp = client.post(
            f"/api/articles/{article.id}/image",
            data={"file": (BytesIO(b"MZ"), "tool.exe")},
            headers=cashier_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_referenced_article_cannot_be_deleted(self, client, admin_headers, article):
        _ticket(client, admin_headers, article)
        assert client.delete(f"/api/articles/{article.id}", headers=admin_headers).status_code == 409


class TestTaxes:

    def test_percentage_over_100(self, client, admin_headers):
        resp = client.post("/api/taxes", json={"name": "X", "rate": 120, "type": "percentage"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_misconfigured_tax_is_422(self, client, db_session, cashier_headers, article):
        db_session.add(Tax(name="Broken", rate=5, type="compound", is_active=True))
        db_session.commit()

        resp = client.post(
            "/api/pricing/preview",
            json={"items": [{"article_id": article.id, "quantity": 1}]},
            headers=cashier_headers,
        )
        assert resp.status_code == 422


# =============================================================================
# COUNTER FLOW
# =============================================================================

class TestCounterFlow:

    def test_preview(self, client, cashier_headers, vat, article):
        resp = client.post(
            "/api/pricing/preview",
            json={"items": [{"article_id": article.id, "quantity": 2, "discount": 10}]},
            headers=cashier_headers,
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert (data["subtotal"], data["tax_total"], data["total"]) == (1800, 324, 2124)

    def test_ticket_paid_in_two_steps(self, client, cashier_headers, vat, article):
        resp = _ticket(client, cashier_headers, article)
        assert resp.status_code == 201
        ticket = resp.get_json()["ticket"]
        assert ticket["total_amount"] == 2124

        resp = client.post(
            "/api/payments",
            json={"document_type": "ticket", "document_id": ticket["id"], "method": "cash", "amount": 1000},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["summary"]["status"] == "avance"
        assert resp.get_json()["summary"]["remaining_amount"] == 1124

        resp = client.post(
            "/api/payments",
            json={"document_type": "ticket", "document_id": ticket["id"], "method": "cash", "amount": "1124"},
            headers=cashier_headers,
        )
        assert resp.get_json()["summary"]["status"] == "payé"

        resp = client.post(
            "/api/payments",
            json={"document_type": "ticket", "document_id": ticket["id"], "method": "cash", "amount": 1},
            headers=cashier_headers,
        )
        assert resp.status_code == 400

        resp = client.post(f"/api/tickets/{ticket['id']}/cancel", headers=cashier_headers)
        assert resp.status_code == 400

        resp = client.post(f"/api/tickets/{ticket['id']}/invoice", headers=cashier_headers)
        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["status"] == "payé"

        resp = client.get("/api/cash-register", headers=cashier_headers)
        assert resp.get_json()["totals"]["income"] == 2124

    def test_payment_key_reused_on_other_ticket(self, client, cashier_headers, article):
        first = _ticket(client, cashier_headers, article, quantity=1).get_json()["ticket"]
        second = _ticket(client, cashier_headers, article, quantity=1).get_json()["ticket"]
        body = {"document_type": "ticket", "method": "cash", "amount": 500, "idempotency_key": "k1"}

        assert client.post("/api/payments", json=dict(body, document_id=first["id"]), headers=cashier_headers).status_code == 201
        resp = client.post("/api/payments", json=dict(body, document_id=second["id"]), headers=cashier_headers)
        assert resp.status_code == 409

        summary = client.get(f"/api/tickets/{second['id']}/payments", headers=cashier_headers).get_json()
        assert summary["paid_amount"] == 0

    def test_payment_amount_must_be_integer(self, client, cashier_headers, article):
        ticket = _ticket(client, cashier_headers, article).get_json()["ticket"]
        resp = client.post(
            "/api/payments",
            json={"document_type": "ticket", "document_id": ticket["id"], "method": "cash", "amount": "abc"},
            headers=cashier_headers,
        )
        assert resp.status_code == 400

    def test_stock_exhausted(self, client, cashier_headers, article):
        resp = _ticket(client, cashier_headers, article, quantity=11)
        assert resp.status_code == 400
        assert "stock" in resp.get_json()["error"].lower()

    def test_quote_rejected_then_transfer_refused(self, client, cashier_headers, article):
        quote = client.post(
            "/api/quotes",
            json={"items": [{"article_id": article.id, "quantity": 1}]},
            headers=cashier_headers,
        ).get_json()["quote"]

        assert client.post(f"/api/quotes/{quote['id']}/reject", headers=cashier_headers).status_code == 200
        resp = client.post(f"/api/quotes/{quote['id']}/to-ticket", headers=cashier_headers)
        assert resp.status_code == 400

    def test_quote_to_invoice(self, client, cashier_headers, article):
        quote = client.post(
            "/api/quotes",
            json={"items": [{"article_id": article.id, "quantity": 1}]},
            headers=cashier_headers,
        ).get_json()["quote"]

        resp = client.post(f"/api/quotes/{quote['id']}/to-invoice", headers=cashier_headers)
        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]

        resp = client.get(f"/api/invoices/{invoice['id']}/payments", headers=cashier_headers)
        assert resp.get_json()["remaining_amount"] == 1000

    def test_list_filters_and_pagination(self, client, cashier_headers, article, customer):
        for _ in range(3):
            _ticket(client, cashier_headers, article, quantity=1)
        _ticket(client, cashier_headers, article, quantity=1, client_id=customer.id)

        resp = client.get("/api/tickets?page=1&per_page=2", headers=cashier_headers)
        data = resp.get_json()
        assert data["count"] == 2
        assert data["pagination"]["total"] == 4
        assert data["pagination"]["has_next"] is True

        resp = client.get(f"/api/tickets?client_id={customer.id}", headers=cashier_headers)
        assert resp.get_json()["pagination"]["total"] == 1

        resp = client.get("/api/tickets?order_by=-nope", headers=cashier_headers)
        assert resp.status_code == 400

    def test_print(self, client, cashier_headers, vat, article):
        ticket = _ticket(client, cashier_headers, article).get_json()["ticket"]
        resp = client.get(f"/api/tickets/{ticket['id']}/print", headers=cashier_headers)
        assert resp.get_json()["formatted"]["total_amount"] == "2 124 FCFA"


# =============================================================================
# PURCHASING AND TREASURY
# =============================================================================

class TestPurchasing:

    def test_order_lifecycle(self, client, cashier_headers, supplier, article):
        resp = client.post(
            "/api/purchase-orders",
            json={"supplier_id": supplier.id, "items": [{"article_id": article.id, "quantity": 4, "unit_price": 500}]},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        order = resp.get_json()["purchase_order"]

        assert client.post(f"/api/purchase-orders/{order['id']}/validate", headers=cashier_headers).status_code == 200
        resp = client.post(
            f"/api/purchase-orders/{order['id']}/receive",
            json={"transport_costs": {str(order["items"][0]["id"]): 25}},
            headers=cashier_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["purchase_order"]["status"] == "received"

        article_data = client.get(f"/api/articles/{article.id}", headers=cashier_headers).get_json()["article"]
        assert article_data["stock"] == 14
        assert article_data["last_cost"] == 525


class TestTreasury:

    def test_withdrawal_beyond_balance(self, client, cashier_headers, bank):
        resp = client.post(
            f"/api/banks/{bank.id}/transactions",
            json={"type": "deposit", "amount": 5000},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["bank"]["balance"] == 5000

        resp = client.post(
            f"/api/banks/{bank.id}/transactions",
            json={"type": "withdrawal", "amount": 6000},
            headers=cashier_headers,
        )
        assert resp.status_code == 400

        resp = client.get(f"/api/banks/{bank.id}/transactions", headers=cashier_headers)
        assert resp.get_json()["count"] == 1

    def test_cash_expense(self, client, cashier_headers):
        resp = client.post("/api/cash-register/expenses", json={"amount": 2500, "reason": "Transport"}, headers=cashier_headers)
        assert resp.status_code == 201
        assert client.get("/api/cash-register/balance", headers=cashier_headers).get_json()["balance"] == -2500


# =============================================================================
# REPORTS
# =============================================================================

class TestReports:

    def test_xlsx_export(self, client, cashier_headers, article):
        _ticket(client, cashier_headers, article)
        resp = client.get("/api/reports/export/tickets.xlsx", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.mimetype.endswith("spreadsheetml.sheet")
        assert resp.data[:2] == b"PK"

    def test_dashboard_bad_date(self, client, cashier_headers):
        resp = client.get("/api/reports/dashboard?date=yesterday", headers=cashier_headers)
        assert resp.status_code == 400
