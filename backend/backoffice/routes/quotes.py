# Overview: Flask API routes for quote operations; drafting, sending, rejection and transfers.

"""
Quote API routes

LIFECYCLE:
- draft -> sent -> confirmed | rejected
- confirmed only through a transfer (/to-ticket or /to-invoice)
- invoice_status not_invoiced -> invoiced is tracked apart
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import document_service, transfer_service
from ..services import lifecycle_service as lc
from ..services.query_service import parse_date_range, parse_page_args
from .common import DOMAIN_ERRORS, arg_int, current_user_id, error_response, json_body

quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


@quotes_bp.get("")
@require_auth
def list_quotes_route():
    try:
        page, per_page = parse_page_args(request.args)
        date_from, date_to = parse_date_range(request.args)
        result = document_service.list_documents(
            lc.KIND_QUOTE,
            status=request.args.get("status"),
            client_id=arg_int("client_id"),
            search=request.args.get("search"),
            date_from=date_from,
            date_to=date_to,
            extra_eq={"invoice_status": request.args.get("invoice_status")},
            order_by=request.args.get("order_by"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list quotes")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("/<int:quote_id>")
@require_auth
def get_quote_route(quote_id: int):
    try:
        quote = document_service.get_document(lc.KIND_QUOTE, quote_id)
        return jsonify({"quote": quote.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@quotes_bp.post("")
@require_auth
def create_quote_route():
    """
    Create a draft quote. Lines may reference articles or be free text
    ({"name", "unit_price"}); quotes never move stock.
    """
    try:
        quote = document_service.create_quote(json_body(), user_id=current_user_id())
        return jsonify({"quote": quote.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.patch("/<int:quote_id>")
@require_auth
def update_quote_route(quote_id: int):
    try:
        quote = document_service.update_quote(quote_id, json_body())
        return jsonify({"quote": quote.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.post("/<int:quote_id>/send")
@require_auth
def send_quote_route(quote_id: int):
    try:
        quote = document_service.mark_quote_sent(quote_id)
        return jsonify({"quote": quote.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@quotes_bp.post("/<int:quote_id>/reject")
@require_auth
def reject_quote_route(quote_id: int):
    try:
        quote = document_service.reject_quote(quote_id)
        return jsonify({"quote": quote.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@quotes_bp.delete("/<int:quote_id>")
@require_auth
def delete_quote_route(quote_id: int):
    try:
        document_service.delete_quote(quote_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.post("/<int:quote_id>/to-ticket")
@require_auth
def quote_to_ticket_route(quote_id: int):
    try:
        ticket = transfer_service.quote_to_ticket(quote_id, user_id=current_user_id())
        return jsonify({"ticket": ticket.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to transfer quote to ticket")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.post("/<int:quote_id>/to-invoice")
@require_auth
def quote_to_invoice_route(quote_id: int):
    try:
        invoice = transfer_service.quote_to_invoice(quote_id, user_id=current_user_id())
        return jsonify({"invoice": invoice.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to transfer quote to invoice")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("/<int:quote_id>/print")
@require_auth
def print_quote_route(quote_id: int):
    try:
        return jsonify(document_service.print_payload(lc.KIND_QUOTE, quote_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
