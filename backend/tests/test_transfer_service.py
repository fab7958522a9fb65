"""
Document transfer tests.

Verifies:
- quote -> ticket copies lines, takes stock and confirms the quote
- quote -> invoice marks the quote invoiced (once only)
- paid ticket -> invoice is born paid and records no new payment
- rejected / already transferred sources are refused
"""

import pytest

from backoffice.models import Article, Payment
from backoffice.services import document_service, lifecycle_service as lc, payment_service, transfer_service
from backoffice.services.inventory_service import InsufficientStockError
from backoffice.services.transfer_service import TransferError


def _quote(article, quantity=2, **extra):
    payload = {"items": [{"article_id": article.id, "quantity": quantity, "discount": 10}]}
    payload.update(extra)
    return document_service.create_quote(payload)


class TestQuoteToTicket:

    def test_transfer(self, db_session, vat, article, customer):
        quote = _quote(article, client_id=customer.id)
        ticket = transfer_service.quote_to_ticket(quote.id)
        quote = document_service.get_document(lc.KIND_QUOTE, quote.id)

        assert ticket.status == lc.TICKET_PENDING
        assert ticket.total_amount == quote.total_amount == 2124
        assert ticket.client_id == customer.id
        assert ticket.source_quote_id == quote.id
        assert [(i.article_id, i.quantity, i.line_total) for i in ticket.items] == [(article.id, 2, 1800)]
        assert quote.status == lc.QUOTE_CONFIRMED
        assert quote.ticket_id == ticket.id
        assert db_session.get(Article, article.id).stock == 8

    def test_rejected_quote_refused(self, db_session, article):
        quote = _quote(article)
        document_service.reject_quote(quote.id)
        with pytest.raises(TransferError):
            transfer_service.quote_to_ticket(quote.id)
        assert db_session.get(Article, article.id).stock == 10

    def test_confirmed_quote_cannot_be_transferred_twice(self, db_session, article):
        quote = _quote(article)
        transfer_service.quote_to_ticket(quote.id)
        with pytest.raises(TransferError):
            transfer_service.quote_to_ticket(quote.id)

    def test_free_text_lines_refused(self, db_session, article):
        quote = document_service.create_quote({"items": [{"name": "Main d'oeuvre", "unit_price": 5000}]})
        with pytest.raises(TransferError):
            transfer_service.quote_to_ticket(quote.id)

    def test_insufficient_stock_aborts_transfer(self, db_session, article):
        quote = _quote(article, quantity=20)
        with pytest.raises(InsufficientStockError):
            transfer_service.quote_to_ticket(quote.id)
        quote = document_service.get_document(lc.KIND_QUOTE, quote.id)
        assert quote.status == lc.QUOTE_DRAFT
        assert quote.ticket_id is None


class TestQuoteToInvoice:

    def test_transfer(self, db_session, vat, article):
        quote = _quote(article)
        document_service.mark_quote_sent(quote.id)
        invoice = transfer_service.quote_to_invoice(quote.id)
        quote = document_service.get_document(lc.KIND_QUOTE, quote.id)

        assert invoice.status == lc.INVOICE_UNPAID
        assert invoice.total_amount == 2124
        assert invoice.source_quote_id == quote.id
        assert invoice.due_date is not None
        assert quote.status == lc.QUOTE_CONFIRMED
        assert quote.invoice_status == lc.QUOTE_INVOICED
        assert quote.invoice_id == invoice.id
        assert db_session.get(Article, article.id).stock == 10

    def test_already_invoiced(self, db_session, article):
        quote = _quote(article)
        transfer_service.quote_to_invoice(quote.id)
        with pytest.raises(TransferError):
            transfer_service.quote_to_invoice(quote.id)

    def test_transferred_invoice_cannot_be_deleted(self, db_session, article):
        quote = _quote(article)
        invoice = transfer_service.quote_to_invoice(quote.id)
        with pytest.raises(lc.LifecycleError):
            document_service.delete_invoice(invoice.id)


class TestTicketToInvoice:

    def test_paid_ticket_becomes_paid_invoice(self, db_session, vat, article):
        ticket = document_service.create_ticket({"items": [{"article_id": article.id, "quantity": 2, "discount": 10}]})
        payment_service.record_payment(document_type="ticket", document_id=ticket.id, method="cash", amount=2124)

        invoice = transfer_service.ticket_to_invoice(ticket.id)
        ticket = document_service.get_document(lc.KIND_TICKET, ticket.id)

        assert invoice.status == lc.INVOICE_PAID
        assert invoice.paid_amount == invoice.total_amount == 2124
        assert invoice.payment_date is not None
        assert invoice.source_ticket_id == ticket.id
        assert ticket.invoiced is True
        assert ticket.invoice_id == invoice.id
        assert db_session.query(Payment).count() == 1

    def test_unpaid_ticket_refused(self, db_session, article):
        ticket = document_service.create_ticket({"items": [{"article_id": article.id, "quantity": 1}]})
        with pytest.raises(TransferError):
            transfer_service.ticket_to_invoice(ticket.id)

    def test_ticket_invoiced_once(self, db_session, article):
        ticket = document_service.create_ticket({"items": [{"article_id": article.id, "quantity": 1}]})
        payment_service.record_payment(document_type="ticket", document_id=ticket.id, method="cash", amount=1000)
        transfer_service.ticket_to_invoice(ticket.id)
        with pytest.raises(TransferError):
            transfer_service.ticket_to_invoice(ticket.id)
