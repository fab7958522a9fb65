# Overview: Flask API routes for tax operations; admin CRUD and the list read by checkout screens.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin, require_auth
from ..models import Tax
from ..services import tax_service
from ..validation import ModelValidationPolicy, enforce_rules_tax, validate_payload
from .common import DOMAIN_ERRORS, error_response, json_body

TAX_POLICY = ModelValidationPolicy(
    writable_fields={"name", "rate", "type", "is_active"},
    required_on_create={"name", "rate", "type"},
)

taxes_bp = Blueprint("taxes", __name__, url_prefix="/api/taxes")


@taxes_bp.get("")
@require_auth
def list_taxes_route():
    """?active=true limits the list to the taxes applied at checkout."""
    active_only = request.args.get("active", "").lower() in ("1", "true", "yes")
    taxes = tax_service.list_taxes(active_only=active_only)
    return jsonify({"items": [t.to_dict() for t in taxes], "count": len(taxes)}), 200


@taxes_bp.post("")
@require_auth
@require_admin
def create_tax_route():
    try:
        patch = validate_payload(model=Tax, payload=json_body(), policy=TAX_POLICY, partial=False)
        enforce_rules_tax(patch)
        tax = tax_service.create_tax(patch)
        current_app.logger.info("Tax created %s", tax.name)
        return jsonify({"tax": tax.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create tax")
        return jsonify({"error": "Internal server error"}), 500


@taxes_bp.patch("/<int:tax_id>")
@require_auth
@require_admin
def update_tax_route(tax_id: int):
    try:
        patch = validate_payload(model=Tax, payload=json_body(), policy=TAX_POLICY, partial=True)
        rules = dict(patch)
        if "rate" in rules:
            rules.setdefault("type", tax_service.get_tax(tax_id).type)
        enforce_rules_tax(rules)
        tax = tax_service.update_tax(tax_id, patch)
        return jsonify({"tax": tax.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update tax")
        return jsonify({"error": "Internal server error"}), 500


@taxes_bp.delete("/<int:tax_id>")
@require_auth
@require_admin
def delete_tax_route(tax_id: int):
    try:
        tax_service.delete_tax(tax_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
