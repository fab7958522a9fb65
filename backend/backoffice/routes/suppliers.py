# Overview: Flask API routes for supplier operations; CRUD with search and pagination.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin, require_auth
from ..models import Supplier
from ..services import counterparty_service
from ..services.query_service import parse_page_args
from ..validation import ModelValidationPolicy, validate_payload
from .common import DOMAIN_ERRORS, error_response, json_body

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"company_name", "contact_name", "email", "phone", "address"},
    required_on_create={"company_name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    try:
        page, per_page = parse_page_args(request.args)
        result = counterparty_service.list_suppliers(
            search=request.args.get("search"),
            order_by=request.args.get("order_by"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        return jsonify({"supplier": counterparty_service.get_supplier(supplier_id).to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    try:
        patch = validate_payload(model=Supplier, payload=json_body(), policy=SUPPLIER_POLICY, partial=False)
        supplier = counterparty_service.create_supplier(patch)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.patch("/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    try:
        patch = validate_payload(model=Supplier, payload=json_body(), policy=SUPPLIER_POLICY, partial=True)
        supplier = counterparty_service.update_supplier(supplier_id, patch)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_admin
def delete_supplier_route(supplier_id: int):
    try:
        counterparty_service.delete_supplier(supplier_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
