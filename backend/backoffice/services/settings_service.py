# Overview: Company profile printed on documents; single-row read and update.

from __future__ import annotations

from ..extensions import db
from ..models import CompanySettings

SETTINGS_MUTABLE_FIELDS = {
    "name", "address", "phone", "email", "tax_id", "trade_register", "logo_url", "receipt_footer",
}


def get_company_settings() -> CompanySettings:
    """The single settings row, created empty on first access."""
    settings = db.session.query(CompanySettings).order_by(CompanySettings.id.asc()).first()
    if settings is None:
        settings = CompanySettings(name="")
        db.session.add(settings)
        db.session.commit()
    return settings


def update_company_settings(patch: dict) -> CompanySettings:
    settings = get_company_settings()
    for k, v in patch.items():
        if k in SETTINGS_MUTABLE_FIELDS:
            setattr(settings, k, v)
    db.session.commit()
    return settings
