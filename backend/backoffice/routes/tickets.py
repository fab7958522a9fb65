# Overview: Flask API routes for ticket operations; counter sales, cancellation, invoicing and receipts.

"""
Ticket API routes

WHY: The counter screen rings up tickets (stock leaves the shelf on creation),
collects payments against them, and issues an invoice once a ticket is settled.

LIFECYCLE:
- en_attente -> avance -> payé through payments (see /api/payments)
- en_attente -> annulé through /cancel (stock restored)
- payé -> invoice through /invoice
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import document_service, payment_service, transfer_service
from ..services import lifecycle_service as lc
from ..services.query_service import parse_date_range, parse_page_args
from .common import DOMAIN_ERRORS, arg_int, current_user_id, error_response, json_body

tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")


@tickets_bp.get("")
@require_auth
def list_tickets_route():
    """
    Query params:
    - status, client_id, invoiced (true/false)
    - search: contains on reference / client name
    - from, to: creation date range (ISO dates)
    - order_by, page, per_page
    """
    try:
        page, per_page = parse_page_args(request.args)
        date_from, date_to = parse_date_range(request.args)
        invoiced = request.args.get("invoiced")
        extra = {}
        if invoiced is not None:
            extra["invoiced"] = invoiced.lower() in ("1", "true", "yes")
        result = document_service.list_documents(
            lc.KIND_TICKET,
            status=request.args.get("status"),
            client_id=arg_int("client_id"),
            search=request.args.get("search"),
            date_from=date_from,
            date_to=date_to,
            extra_eq=extra,
            order_by=request.args.get("order_by"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list tickets")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.get("/<int:ticket_id>")
@require_auth
def get_ticket_route(ticket_id: int):
    try:
        ticket = document_service.get_document(lc.KIND_TICKET, ticket_id)
        return jsonify({"ticket": ticket.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@tickets_bp.post("")
@require_auth
def create_ticket_route():
    """
    Create a ticket.

    Request body:
    {
        "client_id": 4,                 (optional, walk-in client otherwise)
        "items": [{"article_id": 1, "quantity": 2, "discount": 10, "discount_type": "percentage"}],
        "notes": "...",
        "idempotency_key": "..."        (optional, safe retries)
    }

    Returns:
        201: Ticket created
        400: Invalid lines
        409: Insufficient stock
    """
    try:
        ticket = document_service.create_ticket(json_body(), user_id=current_user_id())
        return jsonify({"ticket": ticket.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.patch("/<int:ticket_id>")
@require_auth
def update_ticket_route(ticket_id: int):
    try:
        ticket = document_service.update_ticket(ticket_id, json_body())
        return jsonify({"ticket": ticket.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.post("/<int:ticket_id>/cancel")
@require_auth
def cancel_ticket_route(ticket_id: int):
    try:
        ticket = document_service.cancel_ticket(ticket_id)
        return jsonify({"ticket": ticket.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.delete("/<int:ticket_id>")
@require_auth
def delete_ticket_route(ticket_id: int):
    try:
        document_service.delete_ticket(ticket_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.post("/<int:ticket_id>/invoice")
@require_auth
def invoice_ticket_route(ticket_id: int):
    """Issue the invoice of a paid ticket (invoice created already paid)."""
    try:
        invoice = transfer_service.ticket_to_invoice(ticket_id, user_id=current_user_id())
        return jsonify({"invoice": invoice.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to invoice ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.get("/<int:ticket_id>/payments")
@require_auth
def ticket_payments_route(ticket_id: int):
    try:
        return jsonify(payment_service.get_payment_summary(payment_service.DOC_TICKET, ticket_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@tickets_bp.get("/<int:ticket_id>/print")
@require_auth
def print_ticket_route(ticket_id: int):
    try:
        return jsonify(document_service.print_payload(lc.KIND_TICKET, ticket_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
