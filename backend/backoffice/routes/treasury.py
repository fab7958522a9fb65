# Overview: Flask API routes for treasury; cash register entries and bank accounts.

"""
Treasury API routes

- /api/cash-register   drawer entries, totals and manual expenses
- /api/banks           bank accounts, manual deposits / withdrawals, transactions

Payment-driven movements are written by /api/payments; these routes only add
manual movements and read the books.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin, require_auth
from ..models import Bank
from ..services import treasury_service
from ..services.query_service import parse_date_range, parse_page_args
from ..validation import ModelValidationPolicy, coerce_integer, parse_amount, parse_optional_datetime, validate_payload
from .common import DOMAIN_ERRORS, arg_int, current_user_id, error_response, json_body

BANK_POLICY = ModelValidationPolicy(
    writable_fields={"name", "account_number"},
    required_on_create={"name"},
)

cash_bp = Blueprint("cash_register", __name__, url_prefix="/api/cash-register")
banks_bp = Blueprint("banks", __name__, url_prefix="/api/banks")


# =============================================================================
# CASH REGISTER
# =============================================================================

@cash_bp.get("")
@require_auth
def list_cash_entries_route():
    """Entries for a period plus income / expense / balance totals."""
    try:
        page, per_page = parse_page_args(request.args)
        date_from, date_to = parse_date_range(request.args)
        result = treasury_service.list_cash_entries(
            operation_type=request.args.get("operation_type"),
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list cash entries")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/balance")
@require_auth
def cash_balance_route():
    return jsonify({"balance": treasury_service.cash_balance()}), 200


@cash_bp.post("/expenses")
@require_auth
def add_cash_expense_route():
    """
    Request body:
    {"amount": 5000, "reason": "Fournitures", "supplier_id": 2, "reference": "..."}
    """
    try:
        data = json_body()
        supplier_id = data.get("supplier_id")
        entry = treasury_service.add_cash_expense(
            amount=parse_amount(data.get("amount")),
            reason=data.get("reason"),
            supplier_id=coerce_integer("supplier_id", supplier_id) if supplier_id is not None else None,
            reference=data.get("reference"),
            user_id=current_user_id(),
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record cash expense")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# BANKS
# =============================================================================

@banks_bp.get("")
@require_auth
def list_banks_route():
    banks = treasury_service.list_banks()
    return jsonify({
        "items": [b.to_dict() for b in banks],
        "count": len(banks),
        "total_balance": treasury_service.total_bank_balance(),
    }), 200


@banks_bp.get("/<int:bank_id>")
@require_auth
def get_bank_route(bank_id: int):
    try:
        return jsonify({"bank": treasury_service.get_bank(bank_id).to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@banks_bp.post("")
@require_auth
@require_admin
def create_bank_route():
    try:
        patch = validate_payload(model=Bank, payload=json_body(), policy=BANK_POLICY, partial=False)
        bank = treasury_service.create_bank(patch)
        return jsonify({"bank": bank.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create bank")
        return jsonify({"error": "Internal server error"}), 500


@banks_bp.patch("/<int:bank_id>")
@require_auth
@require_admin
def update_bank_route(bank_id: int):
    try:
        patch = validate_payload(model=Bank, payload=json_body(), policy=BANK_POLICY, partial=True)
        bank = treasury_service.update_bank(bank_id, patch)
        return jsonify({"bank": bank.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update bank")
        return jsonify({"error": "Internal server error"}), 500


@banks_bp.delete("/<int:bank_id>")
@require_auth
@require_admin
def delete_bank_route(bank_id: int):
    try:
        treasury_service.delete_bank(bank_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@banks_bp.post("/<int:bank_id>/transactions")
@require_auth
def add_bank_movement_route(bank_id: int):
    """
    Manual deposit or withdrawal.

    Request body:
    {"type": "deposit" | "withdrawal", "amount": 10000, "description": "...", "reference": "...", "date": "..."}

    A withdrawal larger than the balance is refused.
    """
    try:
        data = json_body()
        txn = treasury_service.add_bank_movement(
            bank_id,
            type=data.get("type"),
            amount=parse_amount(data.get("amount")),
            description=data.get("description"),
            reference=data.get("reference"),
            user_id=current_user_id(),
            date=parse_optional_datetime(data.get("date"), "date"),
        )
        return jsonify({"transaction": txn.to_dict(), "bank": treasury_service.get_bank(bank_id).to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record bank movement")
        return jsonify({"error": "Internal server error"}), 500


def _transactions(bank_id):
    page, per_page = parse_page_args(request.args)
    date_from, date_to = parse_date_range(request.args)
    return treasury_service.list_bank_transactions(
        bank_id=bank_id,
        type=request.args.get("type"),
        direction=request.args.get("direction"),
        search=request.args.get("search"),
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page,
    )


@banks_bp.get("/<int:bank_id>/transactions")
@require_auth
def bank_transactions_route(bank_id: int):
    try:
        treasury_service.get_bank(bank_id)
        return jsonify(_transactions(bank_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@banks_bp.get("/transactions")
@require_auth
def all_bank_transactions_route():
    try:
        return jsonify(_transactions(arg_int("bank_id"))), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
