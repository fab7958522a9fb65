# Overview: Flask API routes for invoice operations; direct invoices, edits, settlement summary and printing.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import document_service, payment_service
from ..services import lifecycle_service as lc
from ..services.query_service import parse_date_range, parse_page_args
from .common import DOMAIN_ERRORS, arg_int, current_user_id, error_response, json_body

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    try:
        page, per_page = parse_page_args(request.args)
        date_from, date_to = parse_date_range(request.args)
        result = document_service.list_documents(
            lc.KIND_INVOICE,
            status=request.args.get("status"),
            client_id=arg_int("client_id"),
            search=request.args.get("search"),
            date_from=date_from,
            date_to=date_to,
            order_by=request.args.get("order_by"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = document_service.get_document(lc.KIND_INVOICE, invoice_id)
        return jsonify({"invoice": invoice.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    """Direct invoice (no source document); starts non_payé with a due date."""
    try:
        invoice = document_service.create_invoice(json_body(), user_id=current_user_id())
        return jsonify({"invoice": invoice.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.patch("/<int:invoice_id>")
@require_auth
def update_invoice_route(invoice_id: int):
    try:
        invoice = document_service.update_invoice(invoice_id, json_body())
        return jsonify({"invoice": invoice.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
def delete_invoice_route(invoice_id: int):
    try:
        document_service.delete_invoice(invoice_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>/payments")
@require_auth
def invoice_payments_route(invoice_id: int):
    try:
        return jsonify(payment_service.get_payment_summary(payment_service.DOC_INVOICE, invoice_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@invoices_bp.get("/<int:invoice_id>/print")
@require_auth
def print_invoice_route(invoice_id: int):
    try:
        return jsonify(document_service.print_payload(lc.KIND_INVOICE, invoice_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
