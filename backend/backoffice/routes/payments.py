# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API routes

WHY: Tickets, invoices and purchase orders are settled over time. Every
payment moves the document status and writes the matching cash-register or
bank movement in the same transaction.

SECURITY: All routes require authentication.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import payment_service
from ..services.query_service import parse_date_range, parse_page_args
from ..validation import coerce_integer, parse_amount
from .common import DOMAIN_ERRORS, arg_int, current_user_id, error_response, json_body

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("")
@require_auth
def add_payment_route():
    """
    Record a payment against a document.

    Request body:
    {
        "document_type": "ticket" | "invoice" | "purchase_order",
        "document_id": 123,
        "method": "cash" | "check" | "bank_transfer",
        "amount": 1000,
        "bank_id": 1,             (required for check / bank_transfer)
        "check_number": "0012",   (required for check)
        "reference": "...",       (optional)
        "notes": "...",           (optional)
        "idempotency_key": "..."  (optional, safe retries)
    }

    Returns:
        201: Payment recorded, with the document's new settlement summary
        400: Invalid input or document not payable
        404: Document or bank not found
        409: Concurrent update, retry
    """
    try:
        data = json_body()

        document_type = data.get("document_type")
        document_id = data.get("document_id")
        method = data.get("method")

        if not all([document_type, document_id, method]) or data.get("amount") is None:
            return jsonify({"error": "document_type, document_id, method and amount required"}), 400

        bank_id = data.get("bank_id")
        payment = payment_service.record_payment(
            document_type=document_type,
            document_id=coerce_integer("document_id", document_id),
            method=method,
            amount=parse_amount(data.get("amount")),
            bank_id=coerce_integer("bank_id", bank_id) if bank_id is not None else None,
            check_number=data.get("check_number"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            idempotency_key=data.get("idempotency_key"),
            user_id=current_user_id(),
        )
        summary = payment_service.get_payment_summary(payment.document_type, payment.document_id)

        return jsonify({"payment": payment.to_dict(), "summary": summary}), 201

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_auth
def list_payments_route():
    """
    Query params:
    - document_type, method, bank_id
    - search: contains on document reference / reference / check number
    - from, to: payment date range
    - page, per_page
    """
    try:
        page, per_page = parse_page_args(request.args)
        date_from, date_to = parse_date_range(request.args)
        result = payment_service.list_payments(
            document_type=request.args.get("document_type"),
            method=request.args.get("method"),
            bank_id=arg_int("bank_id"),
            search=request.args.get("search"),
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/summary/<document_type>/<int:document_id>")
@require_auth
def payment_summary_route(document_type: str, document_id: int):
    """Total, paid, remaining, status and payments of one document."""
    try:
        return jsonify(payment_service.get_payment_summary(document_type, document_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
