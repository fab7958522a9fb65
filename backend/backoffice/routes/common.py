# Overview: Shared route helpers; JSON body parsing and domain-error to HTTP status mapping.

from flask import g, jsonify, request
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..services.auth_service import PasswordValidationError
from ..services.cart_service import CartError
from ..services.concurrency import ConcurrencyConflictError
from ..services.document_service import DocumentError
from ..services.inventory_service import InsufficientStockError
from ..services.lifecycle_service import LifecycleError
from ..services.payment_service import PaymentError
from ..services.pricing_service import PricingError, TaxConfigurationError
from ..services.purchase_service import PurchaseOrderError
from ..services.reporting_service import ReportError
from ..services.storage_service import StorageError
from ..services.transfer_service import TransferError
from ..services.treasury_service import TreasuryError
from ..validation import ConflictError, NotFoundError, ValidationError

# Most specific first: TaxConfigurationError is also a PricingError
STATUS_BY_ERROR = (
    (TaxConfigurationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InsufficientStockError, 409),
    (ConcurrencyConflictError, 409),
    (IntegrityError, 409),
    (ValidationError, 400),
    (PasswordValidationError, 400),
    (CartError, 400),
    (PricingError, 400),
    (LifecycleError, 400),
    (DocumentError, 400),
    (TransferError, 400),
    (PaymentError, 400),
    (PurchaseOrderError, 400),
    (TreasuryError, 400),
    (StorageError, 400),
    (ReportError, 400),
)

DOMAIN_ERRORS = tuple(error for error, _ in STATUS_BY_ERROR)


def error_response(exc: Exception):
    """JSON error body + status for a domain exception."""
    if isinstance(exc, IntegrityError):
        db.session.rollback()
        return jsonify({"error": "The request conflicts with existing data"}), 409

    for error, status in STATUS_BY_ERROR:
        if isinstance(exc, error):
            body = {"error": str(exc)}
            if isinstance(exc, InsufficientStockError):
                body["details"] = {
                    "article_id": exc.article_id,
                    "requested": exc.requested,
                    "available": exc.available,
                }
            return jsonify(body), status
    raise exc


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def current_user_id() -> int | None:
    user = getattr(g, "current_user", None)
    return user.id if user is not None else None


def arg_int(name: str):
    """Optional integer query-string argument."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
