# Overview: Document status machines; explicit transition tables for tickets, quotes, invoices and purchase orders.

"""
Document Lifecycle Service

================================================================================
PURPOSE: Every status write goes through one table per document kind
================================================================================

STATE MACHINES:
    Ticket:        en_attente -> avance | payé | annulé
                   avance     -> avance | payé
    Quote:         draft      -> sent | confirmed | rejected
                   sent       -> confirmed | rejected
    Quote invoice: not_invoiced -> invoiced
    Invoice:       non_payé   -> avance | payé
                   avance     -> avance | payé
    PurchaseOrder: draft      -> validated | cancelled
                   validated  -> received | cancelled
    PO payment:    pending    -> partial | paid
                   partial    -> partial | paid

RULES:
1. A state absent from the left-hand side is terminal
2. Self-transitions are only valid where listed (avance -> avance: another advance)
3. Editing and deleting are status-gated (see can_edit / can_delete)
================================================================================
"""

from __future__ import annotations


class LifecycleError(ValueError):
    """
    Raised when an invalid lifecycle transition is attempted.

    This is a domain error, not a technical error. It indicates
    that the user attempted an operation that violates business rules.
    """
    pass


# Ticket
TICKET_PENDING = "en_attente"
TICKET_ADVANCE = "avance"
TICKET_PAID = "payé"
TICKET_CANCELLED = "annulé"

# Quote
QUOTE_DRAFT = "draft"
QUOTE_SENT = "sent"
QUOTE_CONFIRMED = "confirmed"
QUOTE_REJECTED = "rejected"
QUOTE_NOT_INVOICED = "not_invoiced"
QUOTE_INVOICED = "invoiced"

# Invoice
INVOICE_UNPAID = "non_payé"
INVOICE_ADVANCE = "avance"
INVOICE_PAID = "payé"

# Purchase order
PO_DRAFT = "draft"
PO_VALIDATED = "validated"
PO_RECEIVED = "received"
PO_CANCELLED = "cancelled"
PO_PAYMENT_PENDING = "pending"
PO_PAYMENT_PARTIAL = "partial"
PO_PAYMENT_PAID = "paid"

KIND_TICKET = "ticket"
KIND_QUOTE = "quote"
KIND_QUOTE_INVOICE = "quote_invoice"
KIND_INVOICE = "invoice"
KIND_PURCHASE_ORDER = "purchase_order"
KIND_PURCHASE_PAYMENT = "purchase_payment"

TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    KIND_TICKET: {
        TICKET_PENDING: frozenset({TICKET_ADVANCE, TICKET_PAID, TICKET_CANCELLED}),
        TICKET_ADVANCE: frozenset({TICKET_ADVANCE, TICKET_PAID}),
        TICKET_PAID: frozenset(),
        TICKET_CANCELLED: frozenset(),
    },
    KIND_QUOTE: {
        QUOTE_DRAFT: frozenset({QUOTE_SENT, QUOTE_CONFIRMED, QUOTE_REJECTED}),
        QUOTE_SENT: frozenset({QUOTE_CONFIRMED, QUOTE_REJECTED}),
        QUOTE_CONFIRMED: frozenset(),
        QUOTE_REJECTED: frozenset(),
    },
    KIND_QUOTE_INVOICE: {
        QUOTE_NOT_INVOICED: frozenset({QUOTE_INVOICED}),
        QUOTE_INVOICED: frozenset(),
    },
    KIND_INVOICE: {
        INVOICE_UNPAID: frozenset({INVOICE_ADVANCE, INVOICE_PAID}),
        INVOICE_ADVANCE: frozenset({INVOICE_ADVANCE, INVOICE_PAID}),
        INVOICE_PAID: frozenset(),
    },
    KIND_PURCHASE_ORDER: {
        PO_DRAFT: frozenset({PO_VALIDATED, PO_CANCELLED}),
        PO_VALIDATED: frozenset({PO_RECEIVED, PO_CANCELLED}),
        PO_RECEIVED: frozenset(),
        PO_CANCELLED: frozenset(),
    },
    KIND_PURCHASE_PAYMENT: {
        PO_PAYMENT_PENDING: frozenset({PO_PAYMENT_PARTIAL, PO_PAYMENT_PAID}),
        PO_PAYMENT_PARTIAL: frozenset({PO_PAYMENT_PARTIAL, PO_PAYMENT_PAID}),
        PO_PAYMENT_PAID: frozenset(),
    },
}

# Statuses in which the lines of a document may still change
EDITABLE_STATUSES = {
    KIND_TICKET: frozenset({TICKET_PENDING}),
    KIND_QUOTE: frozenset({QUOTE_DRAFT, QUOTE_SENT}),
    KIND_INVOICE: frozenset({INVOICE_UNPAID}),
    KIND_PURCHASE_ORDER: frozenset({PO_DRAFT}),
}

DELETABLE_STATUSES = {
    KIND_TICKET: frozenset({TICKET_PENDING}),
    KIND_QUOTE: frozenset({QUOTE_DRAFT, QUOTE_SENT, QUOTE_REJECTED}),
    KIND_INVOICE: frozenset({INVOICE_UNPAID}),
    KIND_PURCHASE_ORDER: frozenset({PO_DRAFT, PO_CANCELLED}),
}

# Payment status reached when a balance is fully / partially settled
PAID_STATUS = {KIND_TICKET: TICKET_PAID, KIND_INVOICE: INVOICE_PAID, KIND_PURCHASE_PAYMENT: PO_PAYMENT_PAID}
PARTIAL_STATUS = {KIND_TICKET: TICKET_ADVANCE, KIND_INVOICE: INVOICE_ADVANCE, KIND_PURCHASE_PAYMENT: PO_PAYMENT_PARTIAL}


def _table(kind: str) -> dict[str, frozenset[str]]:
    try:
        return TRANSITIONS[kind]
    except KeyError:
        raise LifecycleError(f"Unknown document kind '{kind}'")


def validate_status(kind: str, status: str) -> None:
    if status not in _table(kind):
        raise LifecycleError(
            f"Invalid {kind} status '{status}'. Must be one of: {', '.join(sorted(_table(kind)))}"
        )


def is_terminal(kind: str, status: str) -> bool:
    validate_status(kind, status)
    return not _table(kind)[status]


def can_transition(kind: str, from_status: str, to_status: str) -> bool:
    validate_status(kind, from_status)
    validate_status(kind, to_status)
    return to_status in _table(kind)[from_status]


def require_transition(kind: str, from_status: str, to_status: str) -> None:
    """
    Raise LifecycleError unless from_status -> to_status is in the table.

    WHY: Status fields are never written directly; callers assign only what
    this function accepted.
    """
    if not can_transition(kind, from_status, to_status):
        raise LifecycleError(f"Cannot move {kind} from '{from_status}' to '{to_status}'")


def can_edit(kind: str, status: str) -> bool:
    return status in EDITABLE_STATUSES.get(kind, frozenset())


def can_delete(kind: str, status: str) -> bool:
    return status in DELETABLE_STATUSES.get(kind, frozenset())


def require_editable(kind: str, status: str) -> None:
    if not can_edit(kind, status):
        raise LifecycleError(f"A {kind} in status '{status}' cannot be modified")


def require_deletable(kind: str, status: str) -> None:
    if not can_delete(kind, status):
        raise LifecycleError(f"A {kind} in status '{status}' cannot be deleted")


def settlement_status(kind: str, total_amount: int, paid_amount: int) -> str:
    """Status implied by a balance after a payment (paid when nothing remains)."""
    if paid_amount >= total_amount:
        return PAID_STATUS[kind]
    return PARTIAL_STATUS[kind]
