# Overview: Clients and suppliers; CRUD, search and the counterparty snapshot copied onto documents.

from __future__ import annotations

from ..extensions import db
from ..models import Client, Supplier, Ticket, Quote, Invoice, PurchaseOrder
from ..validation import ConflictError, NotFoundError, ValidationError
from .query_service import apply_filters, apply_ordering, paginate

CLIENT_SEARCH_FIELDS = ("name", "email", "phone")
SUPPLIER_SEARCH_FIELDS = ("company_name", "contact_name", "email", "phone")

# Walk-in customer used when a ticket is rung up without a client
WALK_IN_CLIENT_NAME = "Client comptoir"


def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFoundError(f"Client {client_id} not found")
    return client


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def client_snapshot(client_id: int | None, overrides: dict | None = None) -> dict:
    """
    Counterparty columns copied onto a sales document.

    A known client wins; otherwise free-text name/email/phone from the payload
    are used, falling back to the walk-in label.
    """
    overrides = overrides or {}
    if client_id is not None:
        client = get_client(client_id)
        return {
            "client_id": client.id,
            "client_name": client.name,
            "client_email": client.email,
            "client_phone": client.phone,
        }
    name = (overrides.get("client_name") or "").strip() or WALK_IN_CLIENT_NAME
    return {
        "client_id": None,
        "client_name": name,
        "client_email": (overrides.get("client_email") or None),
        "client_phone": (overrides.get("client_phone") or None),
    }


def list_clients(*, search=None, order_by=None, page=None, per_page=None) -> dict:
    query = apply_filters(db.session.query(Client), Client, search=search, search_fields=CLIENT_SEARCH_FIELDS)
    query = apply_ordering(query, Client, order_by, default="name", descending=False)
    return paginate(query, page=page, per_page=per_page)


def create_client(patch: dict) -> Client:
    client = Client(**patch)
    db.session.add(client)
    db.session.commit()
    return client


def update_client(client_id: int, patch: dict) -> Client:
    client = get_client(client_id)
    for k, v in patch.items():
        setattr(client, k, v)
    db.session.commit()
    return client


def delete_client(client_id: int) -> None:
    client = get_client(client_id)
    for model in (Ticket, Quote, Invoice):
        if db.session.query(model.id).filter(model.client_id == client_id).first():
            raise ConflictError("Client has documents and cannot be deleted")
    db.session.delete(client)
    db.session.commit()


def list_suppliers(*, search=None, order_by=None, page=None, per_page=None) -> dict:
    query = apply_filters(
        db.session.query(Supplier), Supplier, search=search, search_fields=SUPPLIER_SEARCH_FIELDS
    )
    query = apply_ordering(query, Supplier, order_by, default="company_name", descending=False)
    return paginate(query, page=page, per_page=per_page)


def create_supplier(patch: dict) -> Supplier:
    if not (patch.get("company_name") or "").strip():
        raise ValidationError("company_name is required")
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    for k, v in patch.items():
        setattr(supplier, k, v)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    supplier = get_supplier(supplier_id)
    if db.session.query(PurchaseOrder.id).filter(PurchaseOrder.supplier_id == supplier_id).first():
        raise ConflictError("Supplier has purchase orders and cannot be deleted")
    db.session.delete(supplier)
    db.session.commit()
