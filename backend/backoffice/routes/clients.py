# Overview: Flask API routes for client operations; CRUD with search and pagination.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin, require_auth
from ..models import Client
from ..services import counterparty_service
from ..services.query_service import parse_page_args
from ..validation import ModelValidationPolicy, enforce_rules_client, validate_payload
from .common import DOMAIN_ERRORS, error_response, json_body

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "credit_limit"},
    required_on_create={"name"},
)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    try:
        page, per_page = parse_page_args(request.args)
        result = counterparty_service.list_clients(
            search=request.args.get("search"),
            order_by=request.args.get("order_by"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    try:
        return jsonify({"client": counterparty_service.get_client(client_id).to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@clients_bp.post("")
@require_auth
def create_client_route():
    try:
        patch = validate_payload(model=Client, payload=json_body(), policy=CLIENT_POLICY, partial=False)
        enforce_rules_client(patch)
        client = counterparty_service.create_client(patch)
        return jsonify({"client": client.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.patch("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    try:
        patch = validate_payload(model=Client, payload=json_body(), policy=CLIENT_POLICY, partial=True)
        enforce_rules_client(patch)
        client = counterparty_service.update_client(client_id, patch)
        return jsonify({"client": client.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_admin
def delete_client_route(client_id: int):
    try:
        counterparty_service.delete_client(client_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
