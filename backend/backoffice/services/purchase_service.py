# Overview: Supplier purchase orders; creation, validation, cancellation and reception into stock.

"""
Purchase Order Service

STATE MACHINE:
    draft     -> validated | cancelled
    validated -> received | cancelled

RECEPTION (one rule for every path):
- each line adds its ordered quantity to the article's stock
- purchase_price = line unit price, transport_cost = line transport
- last_cost = unit price + transport
- the order becomes `received` with received_at set

Payments against an order are recorded by payment_service once it is
validated; payment_status moves independently (pending -> partial -> paid).
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Article, PurchaseOrder, PurchaseOrderItem
from ..validation import NotFoundError, ValidationError, coerce_integer, parse_optional_datetime
from backoffice.time_utils import utcnow
from . import lifecycle_service as lc
from .concurrency import lock_for_update, run_with_retry
from .counterparty_service import get_supplier
from .document_service import find_by_idempotency_key, next_reference
from .inventory_service import apply_reception
from .query_service import apply_filters, apply_ordering, paginate


class PurchaseOrderError(Exception):
    """Raised for purchase-order operations that violate business rules."""
    pass


def get_purchase_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def _lock_order(order_id: int) -> PurchaseOrder:
    order = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def _build_lines(items) -> list[PurchaseOrderItem]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one line item is required")

    lines = []
    for position, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {position} must be an object")
        if raw.get("article_id") is None:
            raise ValidationError(f"Line {position}: article_id is required")
        article = db.session.get(Article, coerce_integer("article_id", raw["article_id"]))
        if article is None:
            raise NotFoundError(f"Article {raw['article_id']} not found")

        quantity = coerce_integer("quantity", raw.get("quantity", 1))
        if quantity <= 0:
            raise ValidationError(f"Line {position}: quantity must be at least 1")

        unit_price = raw.get("unit_price")
        unit_price = article.purchase_price if unit_price is None else coerce_integer("unit_price", unit_price)
        if unit_price < 0:
            raise ValidationError(f"Line {position}: unit_price cannot be negative")

        lines.append(PurchaseOrderItem(
            article_id=article.id,
            quantity=quantity,
            unit_price=unit_price,
            transport_cost=0,
        ))
    return lines


def _set_lines(order: PurchaseOrder, lines: list[PurchaseOrderItem]) -> None:
    order.items.clear()
    for line in lines:
        order.items.append(line)
    order.total_amount = sum(line.unit_price * line.quantity for line in lines)


def list_purchase_orders(
    *,
    status=None,
    payment_status=None,
    supplier_id=None,
    search=None,
    date_from=None,
    date_to=None,
    order_by=None,
    page=None,
    per_page=None,
) -> dict:
    query = apply_filters(
        db.session.query(PurchaseOrder),
        PurchaseOrder,
        eq={"status": status, "payment_status": payment_status, "supplier_id": supplier_id},
        search=search,
        search_fields=("reference", "supplier_name"),
        date_field="created_at",
        date_from=date_from,
        date_to=date_to,
    )
    query = apply_ordering(query, PurchaseOrder, order_by, default="created_at")
    return paginate(query, page=page, per_page=per_page)


def create_purchase_order(payload: dict, *, user_id: int | None = None) -> PurchaseOrder:
    key = payload.get("idempotency_key")
    if payload.get("supplier_id") is None:
        raise ValidationError("supplier_id is required")
    supplier_id = coerce_integer("supplier_id", payload["supplier_id"])
    expected_date = parse_optional_datetime(payload.get("expected_date"), "expected_date")

    def _op() -> PurchaseOrder:
        existing = find_by_idempotency_key(PurchaseOrder, key, payload, party_field="supplier_id")
        if existing is not None:
            return existing

        supplier = get_supplier(supplier_id)
        order = PurchaseOrder(
            reference=next_reference(lc.KIND_PURCHASE_ORDER),
            supplier_id=supplier.id,
            supplier_name=supplier.company_name,
            status=lc.PO_DRAFT,
            payment_status=lc.PO_PAYMENT_PENDING,
            paid_amount=0,
            expected_date=expected_date,
            notes=payload.get("notes"),
            idempotency_key=key,
            created_by_user_id=user_id,
        )
        _set_lines(order, _build_lines(payload.get("items")))
        db.session.add(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Purchase order created ref=%s total=%s", order.reference, order.total_amount)
    return order


def update_purchase_order(order_id: int, payload: dict) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        order = _lock_order(order_id)
        lc.require_editable(lc.KIND_PURCHASE_ORDER, order.status)
        if payload.get("supplier_id") is not None:
            supplier = get_supplier(coerce_integer("supplier_id", payload["supplier_id"]))
            order.supplier_id = supplier.id
            order.supplier_name = supplier.company_name
        if "expected_date" in payload:
            order.expected_date = parse_optional_datetime(payload.get("expected_date"), "expected_date")
        if "notes" in payload:
            order.notes = payload.get("notes")
        if "items" in payload:
            _set_lines(order, _build_lines(payload["items"]))
        db.session.commit()
        return order

    return run_with_retry(_op)


def _transition(order_id: int, status: str) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        order = _lock_order(order_id)
        lc.require_transition(lc.KIND_PURCHASE_ORDER, order.status, status)
        if status == lc.PO_CANCELLED and order.paid_amount:
            raise PurchaseOrderError("A purchase order with recorded payments cannot be cancelled")
        order.status = status
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Purchase order %s marked %s", order.reference, status)
    return order


def validate_purchase_order(order_id: int) -> PurchaseOrder:
    return _transition(order_id, lc.PO_VALIDATED)


def cancel_purchase_order(order_id: int) -> PurchaseOrder:
    return _transition(order_id, lc.PO_CANCELLED)


def receive_purchase_order(order_id: int, transport_costs: dict | None = None) -> PurchaseOrder:
    """
    Receive a validated order into stock.

    transport_costs maps purchase-order item id -> transport cost per unit.
    """
    costs: dict[int, int] = {}
    for raw_id, raw_cost in (transport_costs or {}).items():
        cost = coerce_integer("transport_cost", raw_cost)
        if cost < 0:
            raise ValidationError("transport_cost cannot be negative")
        costs[coerce_integer("item_id", raw_id)] = cost

    def _op() -> PurchaseOrder:
        order = _lock_order(order_id)
        lc.require_transition(lc.KIND_PURCHASE_ORDER, order.status, lc.PO_RECEIVED)

        unknown = set(costs) - {item.id for item in order.items}
        if unknown:
            raise ValidationError(f"Unknown purchase order lines: {sorted(unknown)}")

        for item in order.items:
            apply_reception(item, costs.get(item.id, item.transport_cost or 0))

        order.status = lc.PO_RECEIVED
        order.received_at = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Purchase order %s received (%s lines)", order.reference, len(order.items))
    return order


def delete_purchase_order(order_id: int) -> None:
    def _op() -> None:
        order = _lock_order(order_id)
        lc.require_deletable(lc.KIND_PURCHASE_ORDER, order.status)
        if order.paid_amount:
            raise PurchaseOrderError("A purchase order with recorded payments cannot be deleted")
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)
