# Overview: Cash register and bank accounts; entries, balances, deposits, withdrawals and transaction lists.

"""
Treasury Service

WHY: Every unit of money collected or paid out lands in exactly one place:
the cash drawer (cash_register) or a bank account (bank_transactions +
banks.balance). Payment side effects and manual movements share the helpers
below so the two books never disagree on how a movement is written.

BALANCES:
- cash balance = sum(income) - sum(expense)
- bank balance is a stored counter (version-checked) moved with each transaction
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Bank, BankTransaction, CashRegisterEntry, Supplier
from ..validation import ConflictError, NotFoundError
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .query_service import apply_filters, apply_ordering, paginate


class TreasuryError(Exception):
    """Raised for invalid cash or bank movements."""
    pass


CASH_INCOME = "income"
CASH_EXPENSE = "expense"
VALID_CASH_OPERATIONS = (CASH_INCOME, CASH_EXPENSE)

BANK_DEPOSIT = "deposit"
BANK_WITHDRAWAL = "withdrawal"
BANK_TRANSFER = "transfer"
BANK_PAYMENT = "payment"
VALID_BANK_TYPES = (BANK_DEPOSIT, BANK_WITHDRAWAL, BANK_TRANSFER, BANK_PAYMENT)

DIRECTION_IN = "in"
DIRECTION_OUT = "out"

# Direction implied by manual movement types
MANUAL_DIRECTIONS = {BANK_DEPOSIT: DIRECTION_IN, BANK_WITHDRAWAL: DIRECTION_OUT}


# =============================================================================
# CASH REGISTER
# =============================================================================

def record_cash_entry(
    *,
    operation_type: str,
    amount: int,
    reason: str,
    reference: str | None = None,
    payment_id: int | None = None,
    supplier_id: int | None = None,
    user_id: int | None = None,
    operation_date=None,
) -> CashRegisterEntry:
    """Append a cash movement to the current transaction. Does not commit."""
    if operation_type not in VALID_CASH_OPERATIONS:
        raise TreasuryError(f"Invalid cash operation: {operation_type}")
    if amount <= 0:
        raise TreasuryError("Amount must be greater than 0")
    entry = CashRegisterEntry(
        operation_type=operation_type,
        amount=amount,
        reason=reason,
        reference=reference,
        payment_id=payment_id,
        supplier_id=supplier_id,
        created_by_user_id=user_id,
        operation_date=operation_date or utcnow(),
    )
    db.session.add(entry)
    return entry


def cash_totals(*, date_from=None, date_to=None) -> dict:
    query = db.session.query(
        func.coalesce(func.sum(case((CashRegisterEntry.operation_type == CASH_INCOME, CashRegisterEntry.amount), else_=0)), 0),
        func.coalesce(func.sum(case((CashRegisterEntry.operation_type == CASH_EXPENSE, CashRegisterEntry.amount), else_=0)), 0),
    )
    if date_from is not None:
        query = query.filter(CashRegisterEntry.operation_date >= date_from)
    if date_to is not None:
        query = query.filter(CashRegisterEntry.operation_date <= date_to)
    income, expense = query.one()
    return {"income": int(income), "expense": int(expense), "balance": int(income) - int(expense)}


def cash_balance() -> int:
    return cash_totals()["balance"]


def list_cash_entries(*, operation_type=None, date_from=None, date_to=None, page=None, per_page=None) -> dict:
    query = apply_filters(
        db.session.query(CashRegisterEntry),
        CashRegisterEntry,
        eq={"operation_type": operation_type},
        date_field="operation_date",
        date_from=date_from,
        date_to=date_to,
    )
    query = apply_ordering(query, CashRegisterEntry, None, default="operation_date")
    result = paginate(query, page=page, per_page=per_page)
    result["totals"] = cash_totals(date_from=date_from, date_to=date_to)
    return result


def add_cash_expense(
    *,
    amount: int,
    reason: str,
    supplier_id: int | None = None,
    reference: str | None = None,
    user_id: int | None = None,
) -> CashRegisterEntry:
    """Manual drawer expense (supplies, petty cash), optionally tied to a supplier."""
    if not (reason or "").strip():
        raise TreasuryError("A reason is required")
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    entry = record_cash_entry(
        operation_type=CASH_EXPENSE,
        amount=amount,
        reason=reason.strip(),
        reference=reference,
        supplier_id=supplier_id,
        user_id=user_id,
    )
    db.session.commit()
    current_app.logger.info("Cash expense recorded amount=%s reason=%s", amount, entry.reason)
    return entry


# =============================================================================
# BANKS
# =============================================================================

def get_bank(bank_id: int) -> Bank:
    bank = db.session.get(Bank, bank_id)
    if bank is None:
        raise NotFoundError(f"Bank {bank_id} not found")
    return bank


def lock_bank(bank_id: int) -> Bank:
    bank = lock_for_update(db.session.query(Bank).filter_by(id=bank_id)).first()
    if bank is None:
        raise NotFoundError(f"Bank {bank_id} not found")
    return bank


def list_banks() -> list[Bank]:
    return db.session.query(Bank).order_by(Bank.name.asc()).all()


def total_bank_balance() -> int:
    return int(db.session.query(func.coalesce(func.sum(Bank.balance), 0)).scalar())


def create_bank(patch: dict) -> Bank:
    if db.session.query(Bank.id).filter(Bank.name == patch["name"]).first():
        raise ConflictError(f"A bank named {patch['name']} already exists")
    bank = Bank(name=patch["name"], account_number=patch.get("account_number"), balance=0)
    db.session.add(bank)
    db.session.commit()
    return bank


def update_bank(bank_id: int, patch: dict) -> Bank:
    """Name and account number only; the balance moves through transactions."""
    bank = get_bank(bank_id)
    if "name" in patch and patch["name"] != bank.name:
        if db.session.query(Bank.id).filter(Bank.name == patch["name"], Bank.id != bank.id).first():
            raise ConflictError(f"A bank named {patch['name']} already exists")
        bank.name = patch["name"]
    if "account_number" in patch:
        bank.account_number = patch["account_number"]
    db.session.commit()
    return bank


def delete_bank(bank_id: int) -> None:
    bank = get_bank(bank_id)
    if db.session.query(BankTransaction.id).filter(BankTransaction.bank_id == bank_id).first():
        raise ConflictError("Bank has transactions and cannot be deleted")
    db.session.delete(bank)
    db.session.commit()


def record_bank_transaction(
    bank: Bank,
    *,
    type: str,
    direction: str,
    amount: int,
    description: str | None = None,
    reference: str | None = None,
    payment_id: int | None = None,
    user_id: int | None = None,
    date=None,
) -> BankTransaction:
    """
    Append a bank movement and move the balance. Does not commit.

    The bank must be locked by the caller; an outgoing movement larger than
    the balance is refused.
    """
    if type not in VALID_BANK_TYPES:
        raise TreasuryError(f"Invalid bank transaction type: {type}")
    if direction not in (DIRECTION_IN, DIRECTION_OUT):
        raise TreasuryError(f"Invalid direction: {direction}")
    if amount <= 0:
        raise TreasuryError("Amount must be greater than 0")
    if direction == DIRECTION_OUT and amount > bank.balance:
        raise TreasuryError(f"Insufficient balance on {bank.name} ({bank.balance})")

    txn = BankTransaction(
        bank_id=bank.id,
        type=type,
        direction=direction,
        amount=amount,
        description=description,
        reference=reference,
        status="confirmed",
        payment_id=payment_id,
        created_by_user_id=user_id,
        date=date or utcnow(),
    )
    db.session.add(txn)
    bank.balance = bank.balance + amount if direction == DIRECTION_IN else bank.balance - amount
    return txn


def add_bank_movement(
    bank_id: int,
    *,
    type: str,
    amount: int,
    description: str | None = None,
    reference: str | None = None,
    user_id: int | None = None,
    date=None,
) -> BankTransaction:
    """Manual deposit or withdrawal from the bank screen."""
    direction = MANUAL_DIRECTIONS.get(type)
    if direction is None:
        raise TreasuryError("Manual movements are deposits or withdrawals")

    def _op() -> BankTransaction:
        bank = lock_bank(bank_id)
        txn = record_bank_transaction(
            bank,
            type=type,
            direction=direction,
            amount=amount,
            description=description,
            reference=reference,
            user_id=user_id,
            date=date,
        )
        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    current_app.logger.info("Bank %s %s amount=%s", bank_id, type, amount)
    return txn


def list_bank_transactions(
    *,
    bank_id=None,
    type=None,
    direction=None,
    date_from=None,
    date_to=None,
    search=None,
    page=None,
    per_page=None,
) -> dict:
    query = apply_filters(
        db.session.query(BankTransaction),
        BankTransaction,
        eq={"bank_id": bank_id, "type": type, "direction": direction},
        search=search,
        search_fields=("reference", "description"),
        date_field="date",
        date_from=date_from,
        date_to=date_to,
    )
    query = apply_ordering(query, BankTransaction, None, default="date")
    return paginate(query, page=page, per_page=per_page)
