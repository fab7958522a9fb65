# Overview: Flask API routes for purchase orders; drafting, validation, cancellation and reception.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import payment_service, purchase_service
from ..services.query_service import parse_date_range, parse_page_args
from .common import DOMAIN_ERRORS, arg_int, current_user_id, error_response, json_body

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
@require_auth
def list_purchase_orders_route():
    try:
        page, per_page = parse_page_args(request.args)
        date_from, date_to = parse_date_range(request.args)
        result = purchase_service.list_purchase_orders(
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            supplier_id=arg_int("supplier_id"),
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
        current_app.logger.exception("Failed to list purchase orders")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:order_id>")
@require_auth
def get_purchase_order_route(order_id: int):
    try:
        order = purchase_service.get_purchase_order(order_id)
        return jsonify({"purchase_order": order.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchase_orders_bp.post("")
@require_auth
def create_purchase_order_route():
    """
    Request body:
    {
        "supplier_id": 2,
        "items": [{"article_id": 1, "quantity": 10, "unit_price": 7000}],
        "expected_date": "2024-05-01",   (optional)
        "notes": "..."                    (optional)
    }

    unit_price defaults to the article's purchase price.
    """
    try:
        order = purchase_service.create_purchase_order(json_body(), user_id=current_user_id())
        return jsonify({"purchase_order": order.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.patch("/<int:order_id>")
@require_auth
def update_purchase_order_route(order_id: int):
    try:
        order = purchase_service.update_purchase_order(order_id, json_body())
        return jsonify({"purchase_order": order.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.delete("/<int:order_id>")
@require_auth
def delete_purchase_order_route(order_id: int):
    try:
        purchase_service.delete_purchase_order(order_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchase_orders_bp.post("/<int:order_id>/validate")
@require_auth
def validate_purchase_order_route(order_id: int):
    try:
        order = purchase_service.validate_purchase_order(order_id)
        return jsonify({"purchase_order": order.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchase_orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_purchase_order_route(order_id: int):
    try:
        order = purchase_service.cancel_purchase_order(order_id)
        return jsonify({"purchase_order": order.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchase_orders_bp.post("/<int:order_id>/receive")
@require_auth
def receive_purchase_order_route(order_id: int):
    """
    Receive the goods into stock.

    Request body (optional):
    {"transport_costs": {"<item_id>": 500, ...}}
    """
    try:
        order = purchase_service.receive_purchase_order(order_id, json_body().get("transport_costs"))
        return jsonify({"purchase_order": order.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:order_id>/payments")
@require_auth
def purchase_order_payments_route(order_id: int):
    try:
        summary = payment_service.get_payment_summary(payment_service.DOC_PURCHASE_ORDER, order_id)
        return jsonify(summary), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
