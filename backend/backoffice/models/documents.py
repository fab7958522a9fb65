from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z
from .catalog import decimal_to_json


class DocumentSequence(db.Model):
    """
    Atomic per-kind reference sequences (TK-00001, DV-00001, ...).

    WHY: Prevent two checkouts from receiving the same human reference.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())


class SalesDocumentColumns:
    """
    Columns shared by tickets, quotes and invoices.

    Counterparty fields are copied from the client at creation time so a
    printed document never changes when the client record is edited.
    Amounts are whole currency units, rounded once when the document is priced.
    """
    reference = db.Column(db.String(32), nullable=False, unique=True, index=True)

    client_name = db.Column(db.String(255), nullable=False)
    client_email = db.Column(db.String(255), nullable=True)
    client_phone = db.Column(db.String(64), nullable=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount_total = db.Column(db.Integer, nullable=False, default=0)
    tax_total = db.Column(db.Integer, nullable=False, default=0)
    tax_lines = db.Column(db.JSON, nullable=False, default=list)
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def remaining_amount(self) -> int:
        return max(0, (self.total_amount or 0) - (self.paid_amount or 0))

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "reference": self.reference,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "status": self.status,
            "subtotal": self.subtotal,
            "discount_total": self.discount_total,
            "tax_total": self.tax_total,
            "tax_lines": self.tax_lines or [],
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "remaining_amount": self.remaining_amount,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SalesLineColumns:
    """Persisted cart entry: article snapshot + quantity + discount."""
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    line_total = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "article_id": self.article_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount": decimal_to_json(self.discount),
            "discount_type": self.discount_type,
            "line_total": self.line_total,
        }


class Ticket(SalesDocumentColumns, db.Model):
    """
    Point-of-sale cash sale.

    STATUS: en_attente -> avance | payé | annulé (see lifecycle_service).
    `invoiced` is set once the paid ticket has been transferred into an invoice.
    """
    __tablename__ = "tickets"
    __table_args__ = (
        db.Index("ix_tickets_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="en_attente", index=True)

    invoiced = db.Column(db.Boolean, nullable=False, default=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    source_quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "TicketItem",
        backref="ticket",
        lazy=True,
        order_by="TicketItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = self._base_dict()
        data.update({
            "invoiced": self.invoiced,
            "invoice_id": self.invoice_id,
            "source_quote_id": self.source_quote_id,
        })
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TicketItem(SalesLineColumns, db.Model):
    __tablename__ = "ticket_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(db.Integer, db.ForeignKey("tickets.id"), nullable=False, index=True)
    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), nullable=False, index=True)


class Quote(SalesDocumentColumns, db.Model):
    """
    Pre-sale proposal (devis). Never moves stock.

    STATUS: draft -> sent -> confirmed | rejected
    INVOICE STATUS: not_invoiced -> invoiced (one way)
    """
    __tablename__ = "quotes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    invoice_status = db.Column(db.String(16), nullable=False, default="not_invoiced", index=True)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)

    ticket_id = db.Column(db.Integer, db.ForeignKey("tickets.id", use_alter=True), nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", use_alter=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "QuoteItem",
        backref="quote",
        lazy=True,
        order_by="QuoteItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = self._base_dict()
        data.update({
            "invoice_status": self.invoice_status,
            "valid_until": to_utc_z(self.valid_until),
            "ticket_id": self.ticket_id,
            "invoice_id": self.invoice_id,
        })
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuoteItem(SalesLineColumns, db.Model):
    __tablename__ = "quote_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    # Free-text lines (labour, special orders) have no article
    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)


class Invoice(SalesDocumentColumns, db.Model):
    """
    Binding billing document payable over time.

    STATUS: non_payé -> avance -> payé
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="non_payé", index=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    source_ticket_id = db.Column(db.Integer, db.ForeignKey("tickets.id", use_alter=True), nullable=True)
    source_quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id", use_alter=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        order_by="InvoiceItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = self._base_dict()
        data.update({
            "due_date": to_utc_z(self.due_date),
            "payment_date": to_utc_z(self.payment_date),
            "source_ticket_id": self.source_ticket_id,
            "source_quote_id": self.source_quote_id,
        })
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(SalesLineColumns, db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)


class PurchaseOrder(db.Model):
    """
    Order placed with a supplier (bon de commande).

    STATUS: draft -> validated -> received | cancelled
    PAYMENT STATUS: pending -> partial -> paid (driven by payment_service)
    """
    __tablename__ = "purchase_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(32), nullable=False, unique=True, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    total_amount = db.Column(db.Integer, nullable=False, default=0)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)

    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier")
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_amount(self) -> int:
        return max(0, (self.total_amount or 0) - (self.paid_amount or 0))

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "reference": self.reference,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "remaining_amount": self.remaining_amount,
            "expected_date": to_utc_z(self.expected_date),
            "received_at": to_utc_z(self.received_at),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    # Filled in at reception time
    transport_cost = db.Column(db.Integer, nullable=False, default=0)

    article = db.relationship("Article")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "article_id": self.article_id,
            "article_name": self.article.name if self.article else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "transport_cost": self.transport_cost,
            "line_total": self.line_total,
        }
