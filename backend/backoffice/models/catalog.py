from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


def decimal_to_json(value):
    """Numeric columns come back as Decimal; JSON clients expect numbers."""
    if value is None:
        return None
    as_float = float(value)
    return int(as_float) if as_float.is_integer() else as_float


class Article(db.Model):
    """
    Sellable article (part, accessory or service).

    `cb` is the scanned barcode; `cb_ref` an optional manufacturer/secondary
    reference that the counter also accepts when searching.

    Money fields are whole XAF units.
    """
    __tablename__ = "articles"
    __table_args__ = (
        db.Index("ix_articles_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cb = db.Column(db.String(64), nullable=False, unique=True, index=True)
    cb_ref = db.Column(db.String(64), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    sale_price = db.Column(db.Integer, nullable=False, default=0)
    purchase_price = db.Column(db.Integer, nullable=False, default=0)
    transport_cost = db.Column(db.Integer, nullable=False, default=0)
    last_cost = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    # O = original, N = non original, S = service
    stock_type = db.Column(db.String(1), nullable=False, default="O")

    location = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(120), nullable=True)
    brand = db.Column(db.String(120), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Article id={self.id} cb={self.cb!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cb": self.cb,
            "cb_ref": self.cb_ref,
            "name": self.name,
            "description": self.description,
            "sale_price": self.sale_price,
            "purchase_price": self.purchase_price,
            "transport_cost": self.transport_cost,
            "last_cost": self.last_cost,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "stock_type": self.stock_type,
            "location": self.location,
            "category": self.category,
            "brand": self.brand,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Client(db.Model):
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    credit_limit = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "credit_limit": self.credit_limit,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False, index=True)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class Tax(db.Model):
    """
    Tax applied on document subtotals.

    type:
    - percentage: amount = subtotal * rate / 100
    - fixed: amount = rate (flat, whatever the subtotal)
    """
    __tablename__ = "taxes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    rate = db.Column(db.Numeric(12, 2), nullable=False)
    type = db.Column(db.String(16), nullable=False, default="percentage")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rate": decimal_to_json(self.rate),
            "type": self.type,
            "is_active": self.is_active,
        }


class CompanySettings(db.Model):
    """Single-row company profile printed on tickets, quotes and invoices."""
    __tablename__ = "company_settings"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, default="")
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)
    trade_register = db.Column(db.String(64), nullable=True)
    logo_url = db.Column(db.String(512), nullable=True)
    receipt_footer = db.Column(db.Text, nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "tax_id": self.tax_id,
            "trade_register": self.trade_register,
            "logo_url": self.logo_url,
            "receipt_footer": self.receipt_footer,
            "updated_at": to_utc_z(self.updated_at),
        }
