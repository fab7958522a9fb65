# Overview: Document transfers; quote to ticket, quote to invoice and paid ticket to invoice.

"""
Transfer Service

WHY: A transfer copies the source lines into a brand-new target document and
closes the source, in one transaction. The source row is locked and
version-checked, so two clerks transferring the same quote at the same time
end with one document and one error, never two documents.

GUARDS:
- quote -> ticket:  quote draft/sent; stock decremented like any ticket
- quote -> invoice: quote draft/sent and not yet invoiced
- ticket -> invoice: ticket payé and not yet invoiced; invoice created payé
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Invoice, InvoiceItem, Ticket, TicketItem
from backoffice.time_utils import days_from_now, utcnow
from . import lifecycle_service as lc
from .concurrency import run_with_retry
from .document_service import lock_document, next_reference
from .inventory_service import decrement_stock


class TransferError(Exception):
    """Raised when a document cannot be transferred."""
    pass


def _copy_header(source, target) -> None:
    target.client_id = source.client_id
    target.client_name = source.client_name
    target.client_email = source.client_email
    target.client_phone = source.client_phone
    target.subtotal = source.subtotal
    target.discount_total = source.discount_total
    target.tax_total = source.tax_total
    target.tax_lines = list(source.tax_lines or [])
    target.total_amount = source.total_amount
    target.notes = source.notes


def _copy_lines(source, target, item_model) -> None:
    has_description = hasattr(item_model, "description")
    for line in source.items:
        row = item_model(
            article_id=line.article_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount=line.discount,
            discount_type=line.discount_type,
            line_total=line.line_total,
        )
        if has_description:
            row.description = getattr(line, "description", None)
        target.items.append(row)


def _require_open_quote(quote) -> None:
    if quote.status in (lc.QUOTE_REJECTED, lc.QUOTE_CONFIRMED):
        raise TransferError(f"Quote {quote.reference} is {quote.status} and cannot be transferred")
    if not quote.items:
        raise TransferError(f"Quote {quote.reference} has no lines")


def quote_to_ticket(quote_id: int, *, user_id: int | None = None) -> Ticket:
    """Quote lines become a ticket; articles are taken out of stock."""
    def _op() -> Ticket:
        quote = lock_document(lc.KIND_QUOTE, quote_id)
        _require_open_quote(quote)
        if any(line.article_id is None for line in quote.items):
            raise TransferError("Quotes with free-text lines can only be transferred to an invoice")
        lc.require_transition(lc.KIND_QUOTE, quote.status, lc.QUOTE_CONFIRMED)

        ticket = Ticket(
            reference=next_reference(lc.KIND_TICKET),
            status=lc.TICKET_PENDING,
            source_quote_id=quote.id,
            created_by_user_id=user_id,
        )
        _copy_header(quote, ticket)
        _copy_lines(quote, ticket, TicketItem)
        db.session.add(ticket)

        quantities: dict[int, int] = {}
        for line in quote.items:
            quantities[line.article_id] = quantities.get(line.article_id, 0) + line.quantity
        for article_id, quantity in quantities.items():
            decrement_stock(article_id, quantity)

        db.session.flush()
        quote.status = lc.QUOTE_CONFIRMED
        quote.ticket_id = ticket.id
        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    current_app.logger.info("Quote %s transferred to ticket %s", quote_id, ticket.reference)
    return ticket


def quote_to_invoice(quote_id: int, *, user_id: int | None = None) -> Invoice:
    def _op() -> Invoice:
        quote = lock_document(lc.KIND_QUOTE, quote_id)
        if quote.invoice_status == lc.QUOTE_INVOICED:
            raise TransferError(f"Quote {quote.reference} has already been invoiced")
        _require_open_quote(quote)
        lc.require_transition(lc.KIND_QUOTE, quote.status, lc.QUOTE_CONFIRMED)
        lc.require_transition(lc.KIND_QUOTE_INVOICE, quote.invoice_status, lc.QUOTE_INVOICED)

        invoice = Invoice(
            reference=next_reference(lc.KIND_INVOICE),
            status=lc.INVOICE_UNPAID,
            due_date=days_from_now(current_app.config["INVOICE_DUE_DAYS"]),
            source_quote_id=quote.id,
            created_by_user_id=user_id,
        )
        _copy_header(quote, invoice)
        _copy_lines(quote, invoice, InvoiceItem)
        db.session.add(invoice)
        db.session.flush()

        quote.status = lc.QUOTE_CONFIRMED
        quote.invoice_status = lc.QUOTE_INVOICED
        quote.invoice_id = invoice.id
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Quote %s transferred to invoice %s", quote_id, invoice.reference)
    return invoice


def ticket_to_invoice(ticket_id: int, *, user_id: int | None = None) -> Invoice:
    """
    Issue the invoice of a settled ticket.

    The money was already collected on the ticket, so the invoice is born
    payé with paid_amount = total and no new payment is recorded.
    """
    def _op() -> Invoice:
        ticket = lock_document(lc.KIND_TICKET, ticket_id)
        if ticket.invoiced:
            raise TransferError(f"Ticket {ticket.reference} has already been invoiced")
        if ticket.status != lc.TICKET_PAID:
            raise TransferError(f"Only paid tickets can be invoiced (ticket is {ticket.status})")

        now = utcnow()
        invoice = Invoice(
            reference=next_reference(lc.KIND_INVOICE),
            status=lc.INVOICE_PAID,
            due_date=now,
            payment_date=now,
            source_ticket_id=ticket.id,
            created_by_user_id=user_id,
        )
        _copy_header(ticket, invoice)
        invoice.paid_amount = ticket.total_amount
        _copy_lines(ticket, invoice, InvoiceItem)
        db.session.add(invoice)
        db.session.flush()

        ticket.invoiced = True
        ticket.invoice_id = invoice.id
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Ticket %s transferred to invoice %s", ticket_id, invoice.reference)
    return invoice
