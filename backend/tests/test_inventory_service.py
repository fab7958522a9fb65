"""Article history tests: purchase-order lines and sales from tickets and invoices."""

import pytest

from backoffice.services import (
    document_service,
    inventory_service,
    payment_service,
    purchase_service,
    transfer_service,
)
from backoffice.validation import NotFoundError


def _line(article, quantity=1, **extra):
    return dict({"article_id": article.id, "quantity": quantity}, **extra)


class TestArticleHistory:

    def test_purchases_with_landed_cost(self, db_session, supplier, article):
        order = purchase_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"article_id": article.id, "quantity": 4, "unit_price": 650}],
        })
        purchase_service.validate_purchase_order(order.id)
        purchase_service.receive_purchase_order(order.id, {order.items[0].id: 50})

        history = inventory_service.article_history(article.id)

        assert history["purchases"] == [{
            "id": order.items[0].id,
            "date": history["purchases"][0]["date"],
            "order_id": order.id,
            "order_reference": "BC-00001",
            "supplier_name": "Pièces Auto SARL",
            "status": "received",
            "quantity": 4,
            "unit_price": 650,
            "transport_cost": 50,
            "total_cost": 2800,
        }]
        assert history["totals"]["purchased_quantity"] == 4

    def test_draft_orders_listed_but_not_counted(self, db_session, supplier, article):
        purchase_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"article_id": article.id, "quantity": 3}],
        })
        history = inventory_service.article_history(article.id)

        assert [p["status"] for p in history["purchases"]] == ["draft"]
        assert history["totals"]["purchased_quantity"] == 0

    def test_sales_from_tickets_and_invoices(self, db_session, article, customer):
        document_service.create_ticket({"items": [_line(article, 2, discount=10)]})
        cancelled = document_service.create_ticket({"items": [_line(article, 1)]})
        document_service.cancel_ticket(cancelled.id)
        document_service.create_invoice({"client_id": customer.id, "items": [_line(article, 3)]})

        history = inventory_service.article_history(article.id)

        assert sorted((s["document_type"], s["quantity"], s["total"]) for s in history["sales"]) == [
            ("invoice", 3, 3000),
            ("ticket", 2, 1800),
        ]
        assert history["totals"]["sold_quantity"] == 5
        assert history["totals"]["sales_amount"] == 4800

    def test_invoiced_ticket_counted_once(self, db_session, article):
        ticket = document_service.create_ticket({"items": [_line(article, 1)]})
        payment_service.record_payment(document_type="ticket", document_id=ticket.id, method="cash", amount=1000)
        transfer_service.ticket_to_invoice(ticket.id)

        sales = inventory_service.article_history(article.id)["sales"]

        assert [(s["document_type"], s["quantity"]) for s in sales] == [("invoice", 1)]

    def test_other_articles_excluded(self, db_session, article, service_article):
        document_service.create_ticket({"items": [_line(service_article, 1)]})
        history = inventory_service.article_history(article.id)
        assert history["sales"] == []
        assert history["purchases"] == []

    def test_unknown_article(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.article_history(999)
