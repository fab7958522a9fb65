# Overview: Service-layer operations for payment; records settlements against tickets, invoices and purchase orders.

"""
Payment Ledger Service

WHY: Documents are paid over time (advances). Each payment is one immutable
row; the document's paid_amount, its status and the matching cash-register or
bank movement are all written in the same transaction, so the books can never
hold a payment without its money movement (or the reverse).

RULES:
- 0 < amount <= remaining (remaining = total_amount - paid_amount); no clamping
- cash: cash-register entry (income for sales, expense for purchase orders)
- check / bank_transfer: bank transaction of type `payment` (in for sales,
  out for purchase orders) and the bank balance moved
- checks need a check number; every non-cash method needs a bank
- an idempotency_key turns a retried request into a no-op returning the
  original payment
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Invoice, Payment, PurchaseOrder, Ticket
from ..validation import ConflictError, NotFoundError
from backoffice.time_utils import utcnow
from . import lifecycle_service as lc
from . import treasury_service
from .concurrency import lock_for_update, run_with_retry
from .query_service import apply_filters, apply_ordering, paginate
from .treasury_service import TreasuryError


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


# =============================================================================
# METHODS / DOCUMENT TYPES (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CHECK = "check"
METHOD_BANK_TRANSFER = "bank_transfer"
VALID_METHODS = (METHOD_CASH, METHOD_CHECK, METHOD_BANK_TRANSFER)

DOC_TICKET = "ticket"
DOC_INVOICE = "invoice"
DOC_PURCHASE_ORDER = "purchase_order"

DOCUMENT_MODELS = {
    DOC_TICKET: Ticket,
    DOC_INVOICE: Invoice,
    DOC_PURCHASE_ORDER: PurchaseOrder,
}

PAYABLE_STATUSES = {
    DOC_TICKET: frozenset({lc.TICKET_PENDING, lc.TICKET_ADVANCE}),
    DOC_INVOICE: frozenset({lc.INVOICE_UNPAID, lc.INVOICE_ADVANCE}),
    DOC_PURCHASE_ORDER: frozenset({lc.PO_VALIDATED, lc.PO_RECEIVED}),
}


def _model_for(document_type: str):
    model = DOCUMENT_MODELS.get(document_type)
    if model is None:
        raise PaymentError(
            f"Invalid document type: {document_type}. Must be one of {list(DOCUMENT_MODELS)}"
        )
    return model


def _lock_document(document_type: str, document_id: int):
    model = _model_for(document_type)
    document = lock_for_update(db.session.query(model).filter_by(id=document_id)).first()
    if document is None:
        raise NotFoundError(f"{document_type} {document_id} not found")
    return document


def _require_payable(document_type: str, document) -> None:
    if document.status not in PAYABLE_STATUSES[document_type]:
        raise PaymentError(f"Cannot add payment to {document_type} with status {document.status}")
    if document_type == DOC_PURCHASE_ORDER and document.payment_status == lc.PO_PAYMENT_PAID:
        raise PaymentError("Purchase order is already fully paid")


def _apply_settlement(document_type: str, document, amount: int) -> None:
    """Bump paid_amount and move the status through the transition table."""
    document.paid_amount = (document.paid_amount or 0) + amount

    if document_type == DOC_PURCHASE_ORDER:
        new_status = lc.settlement_status(lc.KIND_PURCHASE_PAYMENT, document.total_amount, document.paid_amount)
        lc.require_transition(lc.KIND_PURCHASE_PAYMENT, document.payment_status, new_status)
        document.payment_status = new_status
        return

    kind = lc.KIND_TICKET if document_type == DOC_TICKET else lc.KIND_INVOICE
    new_status = lc.settlement_status(kind, document.total_amount, document.paid_amount)
    lc.require_transition(kind, document.status, new_status)
    document.status = new_status
    if document_type == DOC_INVOICE and new_status == lc.INVOICE_PAID:
        document.payment_date = utcnow()


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    *,
    document_type: str,
    document_id: int,
    method: str,
    amount: int,
    bank_id: int | None = None,
    check_number: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
    user_id: int | None = None,
) -> Payment:
    """
    Record one payment against a document.

    Returns:
        Payment record

    Raises:
        PaymentError: invalid method/amount, document not payable, missing bank/check
        NotFoundError: document or bank not found
        ConflictError: idempotency_key already used for a different payment
    """
    def _op() -> Payment:
        if idempotency_key:
            existing = db.session.query(Payment).filter_by(idempotency_key=idempotency_key).first()
            if existing is not None:
                if (existing.document_type, existing.document_id, existing.amount, existing.method) != (
                    document_type, document_id, amount, method,
                ):
                    raise ConflictError(
                        f"Idempotency key '{idempotency_key}' was already used for a payment on "
                        f"{existing.document_reference}"
                    )
                return existing

        if method not in VALID_METHODS:
            raise PaymentError(f"Invalid payment method: {method}. Must be one of {list(VALID_METHODS)}")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise PaymentError("Payment amount must be greater than 0")
        if method != METHOD_CASH and not bank_id:
            raise PaymentError("A bank is required for non-cash payments")
        if method == METHOD_CHECK and not (check_number or "").strip():
            raise PaymentError("A check number is required for check payments")

        document = _lock_document(document_type, document_id)
        _require_payable(document_type, document)

        remaining = document.total_amount - (document.paid_amount or 0)
        if remaining <= 0:
            raise PaymentError(f"{document.reference} has no remaining balance due")
        if amount > remaining:
            raise PaymentError(f"Amount cannot exceed the remaining balance ({remaining})")

        bank = treasury_service.lock_bank(bank_id) if method != METHOD_CASH else None

        payment = Payment(
            document_type=document_type,
            document_id=document.id,
            document_reference=document.reference,
            method=method,
            amount=amount,
            total_amount=document.total_amount,
            bank_id=bank.id if bank else None,
            check_number=check_number if method == METHOD_CHECK else None,
            reference=reference,
            notes=notes,
            idempotency_key=idempotency_key,
            created_by_user_id=user_id,
            payment_date=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()  # Get payment ID

        _apply_settlement(document_type, document, amount)

        outgoing = document_type == DOC_PURCHASE_ORDER
        label = f"Paiement {document.reference}"
        try:
            if method == METHOD_CASH:
                treasury_service.record_cash_entry(
                    operation_type=treasury_service.CASH_EXPENSE if outgoing else treasury_service.CASH_INCOME,
                    amount=amount,
                    reason=label,
                    reference=reference or document.reference,
                    payment_id=payment.id,
                    supplier_id=document.supplier_id if outgoing else None,
                    user_id=user_id,
                )
            else:
                treasury_service.record_bank_transaction(
                    bank,
                    type=treasury_service.BANK_PAYMENT,
                    direction=treasury_service.DIRECTION_OUT if outgoing else treasury_service.DIRECTION_IN,
                    amount=amount,
                    description=label,
                    reference=check_number or reference or document.reference,
                    payment_id=payment.id,
                    user_id=user_id,
                )
        except TreasuryError as exc:
            raise PaymentError(str(exc))

        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info(
        "Payment recorded %s %s method=%s amount=%s",
        document_type, payment.document_reference, payment.method, payment.amount,
    )
    return payment


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_document_payments(document_type: str, document_id: int) -> list[Payment]:
    _model_for(document_type)
    return (
        db.session.query(Payment)
        .filter_by(document_type=document_type, document_id=document_id)
        .order_by(Payment.payment_date.asc(), Payment.id.asc())
        .all()
    )


def get_payment_summary(document_type: str, document_id: int) -> dict:
    """
    Read model of a document's settlement.

    Returns total, paid, remaining, status and the payments list.
    """
    model = _model_for(document_type)
    document = db.session.get(model, document_id)
    if document is None:
        raise NotFoundError(f"{document_type} {document_id} not found")

    status = document.payment_status if document_type == DOC_PURCHASE_ORDER else document.status
    return {
        "document_type": document_type,
        "document_id": document.id,
        "reference": document.reference,
        "total_amount": document.total_amount,
        "paid_amount": document.paid_amount,
        "remaining_amount": document.remaining_amount,
        "status": status,
        "payments": [p.to_dict() for p in get_document_payments(document_type, document_id)],
    }


def list_payments(
    *,
    document_type=None,
    method=None,
    bank_id=None,
    date_from=None,
    date_to=None,
    search=None,
    page=None,
    per_page=None,
) -> dict:
    query = apply_filters(
        db.session.query(Payment),
        Payment,
        eq={"document_type": document_type, "method": method, "bank_id": bank_id},
        search=search,
        search_fields=("document_reference", "reference", "check_number"),
        date_field="payment_date",
        date_from=date_from,
        date_to=date_to,
    )
    query = apply_ordering(query, Payment, None, default="payment_date")
    return paginate(query, page=page, per_page=per_page)
