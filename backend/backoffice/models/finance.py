from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Payment(db.Model):
    """
    One settlement against a ticket, an invoice or a purchase order.

    WHY: Documents are paid over time (advances). Payments are append-only;
    the document's paid_amount is bumped in the same transaction and the
    remaining balance is always total_amount - paid_amount.

    METHODS:
    - cash: mirrored in the cash register
    - check / bank_transfer: mirrored as a bank transaction on bank_id
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_document", "document_type", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # ticket | invoice | purchase_order
    document_type = db.Column(db.String(32), nullable=False)
    document_id = db.Column(db.Integer, nullable=False)
    document_reference = db.Column(db.String(32), nullable=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    # Document total at payment time, for receipts
    total_amount = db.Column(db.Integer, nullable=False)

    bank_id = db.Column(db.Integer, db.ForeignKey("banks.id"), nullable=True, index=True)
    check_number = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    bank = db.relationship("Bank")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "document_reference": self.document_reference,
            "method": self.method,
            "amount": self.amount,
            "total_amount": self.total_amount,
            "bank_id": self.bank_id,
            "check_number": self.check_number,
            "reference": self.reference,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "payment_date": to_utc_z(self.payment_date),
        }


class Bank(db.Model):
    __tablename__ = "banks"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    account_number = db.Column(db.String(64), nullable=True)
    balance = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "account_number": self.account_number,
            "balance": self.balance,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class BankTransaction(db.Model):
    """
    Bank account movement.

    direction is explicit (in/out); a supplier payment is a `payment` going out.
    """
    __tablename__ = "bank_transactions"
    __table_args__ = (
        db.Index("ix_bank_transactions_bank_date", "bank_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bank_id = db.Column(db.Integer, db.ForeignKey("banks.id"), nullable=False)
    # deposit | withdrawal | transfer | payment
    type = db.Column(db.String(16), nullable=False, index=True)
    direction = db.Column(db.String(8), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="confirmed")
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bank = db.relationship("Bank", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bank_id": self.bank_id,
            "bank_name": self.bank.name if self.bank else None,
            "type": self.type,
            "direction": self.direction,
            "amount": self.amount,
            "reference": self.reference,
            "description": self.description,
            "status": self.status,
            "payment_id": self.payment_id,
            "date": to_utc_z(self.date),
        }


class CashRegisterEntry(db.Model):
    """Cash drawer movement: income (sales collected) or expense."""
    __tablename__ = "cash_register"
    __table_args__ = (
        db.Index("ix_cash_register_type_date", "operation_type", "operation_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # income | expense
    operation_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    reason = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    operation_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "amount": self.amount,
            "payment_id": self.payment_id,
            "supplier_id": self.supplier_id,
            "reason": self.reason,
            "reference": self.reference,
            "created_by_user_id": self.created_by_user_id,
            "operation_date": to_utc_z(self.operation_date),
        }
