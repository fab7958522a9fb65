# Overview: Sales document persistence; references, cart building and ticket/quote/invoice create-edit-cancel-delete.

"""
Document Service

WHY: A document header, its lines, its stock movements and its reference
number are written in ONE transaction. A failure anywhere leaves nothing
behind, and an idempotency_key lets a client safely retry a checkout.

DOCUMENT KINDS:
- ticket  (TK-00001): decrements stock, en_attente -> avance | payé | annulé
- quote   (DV-00001): never moves stock, draft -> sent -> confirmed | rejected
- invoice (FA-00001): never moves stock, non_payé -> avance -> payé
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Article,
    DocumentSequence,
    Invoice,
    InvoiceItem,
    Quote,
    QuoteItem,
    Ticket,
    TicketItem,
)
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_integer, coerce_decimal, parse_optional_datetime
from backoffice.time_utils import days_from_now
from . import lifecycle_service as lc
from .cart_service import Cart, CartError
from .concurrency import lock_for_update, run_with_retry
from .counterparty_service import client_snapshot
from .inventory_service import available_stock, decrement_stock, restore_stock
from .pricing_service import DISCOUNT_PERCENTAGE, ZERO, PricingBreakdown, format_currency
from .query_service import apply_filters, apply_ordering, paginate
from .settings_service import get_company_settings
from .tax_service import active_tax_rates


class DocumentError(Exception):
    """Raised for document operations that violate business rules."""
    pass


REFERENCE_PREFIXES = {
    lc.KIND_TICKET: "TK",
    lc.KIND_QUOTE: "DV",
    lc.KIND_INVOICE: "FA",
    lc.KIND_PURCHASE_ORDER: "BC",
}
REFERENCE_PAD = 5

DOCUMENT_MODELS = {
    lc.KIND_TICKET: (Ticket, TicketItem),
    lc.KIND_QUOTE: (Quote, QuoteItem),
    lc.KIND_INVOICE: (Invoice, InvoiceItem),
}

DOCUMENT_SEARCH_FIELDS = ("reference", "client_name", "client_phone")


# =============================================================================
# REFERENCES
# =============================================================================

def next_reference(document_type: str) -> str:
    """
    Allocate the next human reference for a document kind (e.g. TK-00042).

    Runs inside the caller's transaction: the sequence bump commits or rolls
    back together with the document that uses it.
    """
    prefix = REFERENCE_PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentError(f"Unknown document type '{document_type}'")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            return f"{prefix}-{1:0{REFERENCE_PAD}d}"
        except IntegrityError:
            # Another transaction created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return f"{prefix}-{current - 1:0{REFERENCE_PAD}d}"


# =============================================================================
# CART FROM PAYLOAD
# =============================================================================

def build_cart(items: list, *, allow_free_text: bool, check_stock: bool, stock_credit: dict | None = None) -> Cart:
    """
    Turn a request `items` list into a validated Cart.

    Each entry: {article_id | name, quantity, unit_price?, discount?, discount_type?, description?}
    - article lines snapshot name and sale_price (unit_price may override the price)
    - free-text lines (quotes, invoices) need name and unit_price
    - stock_credit: units already held by the document being edited
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one line item is required")

    stock_credit = stock_credit or {}
    cart = Cart()
    try:
        for position, raw in enumerate(items, start=1):
            if not isinstance(raw, dict):
                raise ValidationError(f"Line {position} must be an object")

            quantity = coerce_integer("quantity", raw.get("quantity", 1))
            if quantity <= 0:
                raise ValidationError(f"Line {position}: quantity must be at least 1")

            discount = raw.get("discount")
            discount = ZERO if discount in (None, "") else coerce_decimal("discount", discount)
            discount_type = raw.get("discount_type") or DISCOUNT_PERCENTAGE

            article_id = raw.get("article_id")
            unit_price = raw.get("unit_price")
            if unit_price is not None:
                unit_price = coerce_integer("unit_price", unit_price)

            if article_id is not None:
                article = db.session.get(Article, coerce_integer("article_id", article_id))
                if article is None:
                    raise NotFoundError(f"Article {article_id} not found")
                cap = None
                if check_stock:
                    cap = available_stock(article)
                    if cap is not None:
                        cap += stock_credit.get(article.id, 0)
                cart.add(
                    article_id=article.id,
                    name=article.name,
                    unit_price=article.sale_price if unit_price is None else unit_price,
                    quantity=quantity,
                    description=raw.get("description"),
                    available_stock=cap,
                    discount=discount,
                    discount_type=discount_type,
                )
            else:
                if not allow_free_text:
                    raise ValidationError(f"Line {position}: article_id is required")
                name = (raw.get("name") or "").strip()
                if not name or unit_price is None:
                    raise ValidationError(f"Line {position}: free-text lines need name and unit_price")
                cart.add(
                    name=name,
                    unit_price=unit_price,
                    quantity=quantity,
                    description=raw.get("description"),
                    discount=discount,
                    discount_type=discount_type,
                )
    except CartError as exc:
        raise ValidationError(str(exc))

    return cart


def preview(items: list) -> PricingBreakdown:
    """Price a cart against the active taxes without writing anything."""
    cart = build_cart(items, allow_free_text=True, check_stock=False)
    return cart.price(active_tax_rates())


# =============================================================================
# SHARED PERSISTENCE HELPERS
# =============================================================================

def _line_key(article_id, name) -> tuple:
    return (article_id, None) if article_id is not None else (None, (name or "").strip())


def _requested_lines(items) -> dict:
    totals: dict = {}
    for raw in items if isinstance(items, list) else []:
        if not isinstance(raw, dict):
            continue
        article_id = raw.get("article_id")
        if article_id is not None:
            article_id = coerce_integer("article_id", article_id)
        key = _line_key(article_id, raw.get("name"))
        totals[key] = totals.get(key, 0) + coerce_integer("quantity", raw.get("quantity", 1))
    return totals


def _stored_lines(rows) -> dict:
    totals: dict = {}
    for row in rows:
        key = _line_key(row.article_id, getattr(row, "name", None))
        totals[key] = totals.get(key, 0) + row.quantity
    return totals


def find_by_idempotency_key(model, key: str | None, payload: dict, *, party_field: str = "client_id"):
    """
    Document already created under this key, or None.

    A replay must carry the same party and the same lines; a key reused for
    a different request raises ConflictError instead of returning the
    unrelated document.
    """
    if not key:
        return None
    existing = db.session.query(model).filter(model.idempotency_key == key).first()
    if existing is None:
        return None

    party = payload.get(party_field)
    party = coerce_integer(party_field, party) if party is not None else None
    if getattr(existing, party_field) != party or _requested_lines(payload.get("items")) != _stored_lines(existing.items):
        raise ConflictError(f"Idempotency key '{key}' was already used for {existing.reference}")
    return existing


def _apply_pricing(document, cart: Cart) -> PricingBreakdown:
    breakdown = cart.price(active_tax_rates())
    document.subtotal = breakdown.subtotal
    document.discount_total = breakdown.discount_total
    document.tax_total = breakdown.tax_total
    document.tax_lines = [t.to_dict() for t in breakdown.tax_lines]
    document.total_amount = breakdown.total
    return breakdown


def _replace_lines(document, item_model, cart: Cart, breakdown: PricingBreakdown) -> None:
    document.items.clear()
    has_description = hasattr(item_model, "description")
    for item, total in zip(cart.items, breakdown.line_totals):
        row = item_model(
            article_id=item.article_id,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount=item.discount,
            discount_type=item.discount_type,
            line_total=total,
        )
        if has_description:
            row.description = item.description
        document.items.append(row)


def _apply_header(document, payload: dict) -> None:
    if "client_id" in payload or "client_name" in payload or document.client_name is None:
        client_id = payload.get("client_id")
        snapshot = client_snapshot(
            coerce_integer("client_id", client_id) if client_id is not None else None,
            payload,
        )
        for k, v in snapshot.items():
            setattr(document, k, v)
    if "notes" in payload:
        document.notes = payload.get("notes")


def _ticket_quantities(ticket: Ticket) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in ticket.items:
        totals[item.article_id] = totals.get(item.article_id, 0) + item.quantity
    return totals


def get_document(kind: str, document_id: int):
    model, _ = DOCUMENT_MODELS[kind]
    document = db.session.get(model, document_id)
    if document is None:
        raise NotFoundError(f"{kind.capitalize()} {document_id} not found")
    return document


def lock_document(kind: str, document_id: int):
    model, _ = DOCUMENT_MODELS[kind]
    document = lock_for_update(db.session.query(model).filter_by(id=document_id)).first()
    if document is None:
        raise NotFoundError(f"{kind.capitalize()} {document_id} not found")
    return document


def list_documents(
    kind: str,
    *,
    status: str | None = None,
    client_id: int | None = None,
    search: str | None = None,
    date_from=None,
    date_to=None,
    extra_eq: dict | None = None,
    order_by: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    model, _ = DOCUMENT_MODELS[kind]
    eq = {"status": status, "client_id": client_id}
    eq.update(extra_eq or {})
    query = apply_filters(
        db.session.query(model),
        model,
        eq=eq,
        search=search,
        search_fields=DOCUMENT_SEARCH_FIELDS,
        date_field="created_at",
        date_from=date_from,
        date_to=date_to,
    )
    query = apply_ordering(query, model, order_by, default="created_at")
    return paginate(query, page=page, per_page=per_page)


# =============================================================================
# TICKETS
# =============================================================================

def create_ticket(payload: dict, *, user_id: int | None = None) -> Ticket:
    """
    Ring up a ticket: lines priced, stock decremented, reference allocated.

    Raises InsufficientStockError (whole ticket refused) when any article
    runs out between cart time and checkout.
    """
    key = payload.get("idempotency_key")

    def _op() -> Ticket:
        existing = find_by_idempotency_key(Ticket, key, payload)
        if existing is not None:
            return existing

        cart = build_cart(payload.get("items"), allow_free_text=False, check_stock=True)

        ticket = Ticket(
            reference=next_reference(lc.KIND_TICKET),
            status=lc.TICKET_PENDING,
            idempotency_key=key,
            created_by_user_id=user_id,
        )
        _apply_header(ticket, payload)
        breakdown = _apply_pricing(ticket, cart)
        _replace_lines(ticket, TicketItem, cart, breakdown)
        db.session.add(ticket)

        for article_id, quantity in cart.quantities_by_article().items():
            decrement_stock(article_id, quantity)

        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    current_app.logger.info("Ticket created ref=%s total=%s", ticket.reference, ticket.total_amount)
    return ticket


def update_ticket(ticket_id: int, payload: dict) -> Ticket:
    """Re-price an en_attente ticket; previous quantities go back to stock first."""
    def _op() -> Ticket:
        ticket = lock_document(lc.KIND_TICKET, ticket_id)
        lc.require_editable(lc.KIND_TICKET, ticket.status)

        _apply_header(ticket, payload)
        if "items" in payload:
            previous = _ticket_quantities(ticket)
            cart = build_cart(payload["items"], allow_free_text=False, check_stock=True, stock_credit=previous)
            for article_id, quantity in previous.items():
                restore_stock(article_id, quantity)
            breakdown = _apply_pricing(ticket, cart)
            _replace_lines(ticket, TicketItem, cart, breakdown)
            db.session.flush()
            for article_id, quantity in cart.quantities_by_article().items():
                decrement_stock(article_id, quantity)

        db.session.commit()
        return ticket

    return run_with_retry(_op)


def cancel_ticket(ticket_id: int) -> Ticket:
    def _op() -> Ticket:
        ticket = lock_document(lc.KIND_TICKET, ticket_id)
        lc.require_transition(lc.KIND_TICKET, ticket.status, lc.TICKET_CANCELLED)
        for article_id, quantity in _ticket_quantities(ticket).items():
            restore_stock(article_id, quantity)
        ticket.status = lc.TICKET_CANCELLED
        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    current_app.logger.info("Ticket cancelled ref=%s", ticket.reference)
    return ticket


def delete_ticket(ticket_id: int) -> None:
    def _op() -> None:
        ticket = lock_document(lc.KIND_TICKET, ticket_id)
        lc.require_deletable(lc.KIND_TICKET, ticket.status)
        for article_id, quantity in _ticket_quantities(ticket).items():
            restore_stock(article_id, quantity)
        if ticket.source_quote_id is not None:
            source = db.session.get(Quote, ticket.source_quote_id)
            if source is not None and source.ticket_id == ticket.id:
                source.ticket_id = None
        db.session.delete(ticket)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# QUOTES
# =============================================================================

def create_quote(payload: dict, *, user_id: int | None = None) -> Quote:
    key = payload.get("idempotency_key")
    valid_until = parse_optional_datetime(payload.get("valid_until"), "valid_until")

    def _op() -> Quote:
        existing = find_by_idempotency_key(Quote, key, payload)
        if existing is not None:
            return existing

        cart = build_cart(payload.get("items"), allow_free_text=True, check_stock=False)
        quote = Quote(
            reference=next_reference(lc.KIND_QUOTE),
            status=lc.QUOTE_DRAFT,
            invoice_status=lc.QUOTE_NOT_INVOICED,
            valid_until=valid_until or days_from_now(current_app.config["QUOTE_VALIDITY_DAYS"]),
            idempotency_key=key,
            created_by_user_id=user_id,
        )
        _apply_header(quote, payload)
        breakdown = _apply_pricing(quote, cart)
        _replace_lines(quote, QuoteItem, cart, breakdown)
        db.session.add(quote)
        db.session.commit()
        return quote

    quote = run_with_retry(_op)
    current_app.logger.info("Quote created ref=%s total=%s", quote.reference, quote.total_amount)
    return quote


def update_quote(quote_id: int, payload: dict) -> Quote:
    def _op() -> Quote:
        quote = lock_document(lc.KIND_QUOTE, quote_id)
        lc.require_editable(lc.KIND_QUOTE, quote.status)
        _apply_header(quote, payload)
        if "valid_until" in payload:
            quote.valid_until = parse_optional_datetime(payload.get("valid_until"), "valid_until")
        if "items" in payload:
            cart = build_cart(payload["items"], allow_free_text=True, check_stock=False)
            breakdown = _apply_pricing(quote, cart)
            _replace_lines(quote, QuoteItem, cart, breakdown)
        db.session.commit()
        return quote

    return run_with_retry(_op)


def _set_quote_status(quote_id: int, status: str) -> Quote:
    def _op() -> Quote:
        quote = lock_document(lc.KIND_QUOTE, quote_id)
        lc.require_transition(lc.KIND_QUOTE, quote.status, status)
        quote.status = status
        db.session.commit()
        return quote

    quote = run_with_retry(_op)
    current_app.logger.info("Quote %s marked %s", quote.reference, status)
    return quote


def mark_quote_sent(quote_id: int) -> Quote:
    return _set_quote_status(quote_id, lc.QUOTE_SENT)


def reject_quote(quote_id: int) -> Quote:
    return _set_quote_status(quote_id, lc.QUOTE_REJECTED)


def delete_quote(quote_id: int) -> None:
    def _op() -> None:
        quote = lock_document(lc.KIND_QUOTE, quote_id)
        lc.require_deletable(lc.KIND_QUOTE, quote.status)
        db.session.delete(quote)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# INVOICES
# =============================================================================

def create_invoice(payload: dict, *, user_id: int | None = None) -> Invoice:
    key = payload.get("idempotency_key")
    due_date = parse_optional_datetime(payload.get("due_date"), "due_date")

    def _op() -> Invoice:
        existing = find_by_idempotency_key(Invoice, key, payload)
        if existing is not None:
            return existing

        cart = build_cart(payload.get("items"), allow_free_text=True, check_stock=False)
        invoice = Invoice(
            reference=next_reference(lc.KIND_INVOICE),
            status=lc.INVOICE_UNPAID,
            due_date=due_date or days_from_now(current_app.config["INVOICE_DUE_DAYS"]),
            idempotency_key=key,
            created_by_user_id=user_id,
        )
        _apply_header(invoice, payload)
        breakdown = _apply_pricing(invoice, cart)
        _replace_lines(invoice, InvoiceItem, cart, breakdown)
        db.session.add(invoice)
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Invoice created ref=%s total=%s", invoice.reference, invoice.total_amount)
    return invoice


def _require_untouched_invoice(invoice: Invoice) -> None:
    if invoice.paid_amount:
        raise lc.LifecycleError("An invoice with recorded payments cannot be modified")


def update_invoice(invoice_id: int, payload: dict) -> Invoice:
    def _op() -> Invoice:
        invoice = lock_document(lc.KIND_INVOICE, invoice_id)
        lc.require_editable(lc.KIND_INVOICE, invoice.status)
        _require_untouched_invoice(invoice)
        _apply_header(invoice, payload)
        if "due_date" in payload:
            invoice.due_date = parse_optional_datetime(payload.get("due_date"), "due_date")
        if "items" in payload:
            cart = build_cart(payload["items"], allow_free_text=True, check_stock=False)
            breakdown = _apply_pricing(invoice, cart)
            _replace_lines(invoice, InvoiceItem, cart, breakdown)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def delete_invoice(invoice_id: int) -> None:
    def _op() -> None:
        invoice = lock_document(lc.KIND_INVOICE, invoice_id)
        lc.require_deletable(lc.KIND_INVOICE, invoice.status)
        _require_untouched_invoice(invoice)
        if invoice.source_quote_id is not None or invoice.source_ticket_id is not None:
            raise lc.LifecycleError("An invoice created from another document cannot be deleted")
        db.session.delete(invoice)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# PRINT
# =============================================================================

def print_payload(kind: str, document_id: int) -> dict:
    """Everything a receipt/A4 template needs, amounts already formatted."""
    document = get_document(kind, document_id)
    label = current_app.config.get("CURRENCY_LABEL", "FCFA")
    data = document.to_dict(include_items=True)
    for item in data["items"]:
        item["unit_price_formatted"] = format_currency(item["unit_price"], label)
        item["line_total_formatted"] = format_currency(item["line_total"], label)
    for tax in data["tax_lines"]:
        tax["amount_formatted"] = format_currency(tax["amount"], label)
    return {
        "kind": kind,
        "document": data,
        "company": get_company_settings().to_dict(),
        "formatted": {
            field: format_currency(getattr(document, field), label)
            for field in ("subtotal", "discount_total", "tax_total", "total_amount", "paid_amount", "remaining_amount")
        },
    }
