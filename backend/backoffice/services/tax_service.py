# Overview: Tax reference data; CRUD and the active rate list consumed by pricing.

from __future__ import annotations

from ..extensions import db
from ..models import Tax
from ..validation import ConflictError, NotFoundError
from .pricing_service import TaxRate

DEFAULT_TAXES = (
    {"name": "TVA", "rate": 18, "type": "percentage"},
    {"name": "Précompte", "rate": 1, "type": "percentage"},
)


def get_tax(tax_id: int) -> Tax:
    tax = db.session.get(Tax, tax_id)
    if tax is None:
        raise NotFoundError(f"Tax {tax_id} not found")
    return tax


def list_taxes(*, active_only: bool = False) -> list[Tax]:
    query = db.session.query(Tax)
    if active_only:
        query = query.filter(Tax.is_active.is_(True))
    return query.order_by(Tax.id.asc()).all()


def active_tax_rates() -> list[TaxRate]:
    return [TaxRate.from_model(t) for t in list_taxes(active_only=True)]


def _require_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Tax).filter(Tax.name == name)
    if exclude_id is not None:
        query = query.filter(Tax.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"A tax named {name} already exists")


def create_tax(patch: dict) -> Tax:
    _require_unique_name(patch["name"])
    tax = Tax(**patch)
    db.session.add(tax)
    db.session.commit()
    return tax


def update_tax(tax_id: int, patch: dict) -> Tax:
    tax = get_tax(tax_id)
    if "name" in patch and patch["name"] != tax.name:
        _require_unique_name(patch["name"], exclude_id=tax.id)
    for k, v in patch.items():
        setattr(tax, k, v)
    db.session.commit()
    return tax


def delete_tax(tax_id: int) -> None:
    db.session.delete(get_tax(tax_id))
    db.session.commit()


def ensure_default_taxes() -> int:
    """Seed the usual taxes when the table is empty. Returns rows created."""
    if db.session.query(Tax.id).first() is not None:
        return 0
    for row in DEFAULT_TAXES:
        db.session.add(Tax(is_active=True, **row))
    db.session.commit()
    return len(DEFAULT_TAXES)
