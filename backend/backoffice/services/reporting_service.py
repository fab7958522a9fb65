# Overview: Service-layer operations for reporting; ticket/invoice summaries, client balances, daily dashboard and xlsx export.

from __future__ import annotations

from datetime import date, datetime
from io import BytesIO

from sqlalchemy import func

from ..extensions import db
from ..models import CashRegisterEntry, Client, Invoice, Payment, Ticket
from backoffice.time_utils import day_bounds, to_utc_z
from . import lifecycle_service as lc
from .treasury_service import CASH_EXPENSE, CASH_INCOME


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _in_range(query, column, date_from: datetime | None, date_to: datetime | None):
    if date_from is not None:
        query = query.filter(column >= date_from)
    if date_to is not None:
        query = query.filter(column <= date_to)
    return query


def _status_breakdown(model, date_from, date_to) -> dict:
    query = db.session.query(
        model.status,
        func.count(model.id),
        func.coalesce(func.sum(model.total_amount), 0),
        func.coalesce(func.sum(model.paid_amount), 0),
    )
    query = _in_range(query, model.created_at, date_from, date_to).group_by(model.status)
    return {
        status: {"count": int(count), "total": int(total), "paid": int(paid)}
        for status, count, total, paid in query.all()
    }


def ticket_report(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    """
    Ticket totals over a period. Cancelled tickets are reported apart and
    excluded from the money figures.
    """
    by_status = _status_breakdown(Ticket, date_from, date_to)
    live = {s: v for s, v in by_status.items() if s != lc.TICKET_CANCELLED}
    total = sum(v["total"] for v in live.values())
    paid = sum(v["paid"] for v in live.values())
    return {
        "count": sum(v["count"] for v in live.values()),
        "cancelled_count": by_status.get(lc.TICKET_CANCELLED, {}).get("count", 0),
        "total_amount": total,
        "paid_amount": paid,
        "pending_amount": total - paid,
        "by_status": by_status,
    }


def invoice_report(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    by_status = _status_breakdown(Invoice, date_from, date_to)
    total = sum(v["total"] for v in by_status.values())
    paid = sum(v["paid"] for v in by_status.values())
    return {
        "count": sum(v["count"] for v in by_status.values()),
        "total_amount": total,
        "paid_amount": paid,
        "unpaid_amount": total - paid,
        "by_status": by_status,
    }


def client_balances() -> list[dict]:
    """
    Per client: sales (invoices + tickets not yet invoiced, cancelled
    excluded), amount paid, outstanding balance and credit limit.
    """
    def _sums(model, *criteria):
        rows = (
            db.session.query(
                model.client_id,
                func.coalesce(func.sum(model.total_amount), 0),
                func.coalesce(func.sum(model.paid_amount), 0),
            )
            .filter(model.client_id.isnot(None), *criteria)
            .group_by(model.client_id)
            .all()
        )
        return {cid: (int(total), int(paid)) for cid, total, paid in rows}

    tickets = _sums(Ticket, Ticket.invoiced.is_(False), Ticket.status != lc.TICKET_CANCELLED)
    invoices = _sums(Invoice)

    balances = []
    for client in db.session.query(Client).order_by(Client.name.asc()).all():
        t_total, t_paid = tickets.get(client.id, (0, 0))
        i_total, i_paid = invoices.get(client.id, (0, 0))
        total = t_total + i_total
        paid = t_paid + i_paid
        outstanding = total - paid
        balances.append({
            "client_id": client.id,
            "client_name": client.name,
            "total_sales": total,
            "paid_amount": paid,
            "outstanding": outstanding,
            "credit_limit": client.credit_limit,
            "over_credit_limit": bool(client.credit_limit) and outstanding > client.credit_limit,
        })
    return balances


def daily_dashboard(day: date) -> dict:
    start, end = day_bounds(day)

    def _count_total(model, *criteria):
        count, total = _in_range(
            db.session.query(func.count(model.id), func.coalesce(func.sum(model.total_amount), 0)).filter(*criteria),
            model.created_at, start, end,
        ).one()
        return {"count": int(count), "total": int(total)}

    cash = dict(
        _in_range(
            db.session.query(CashRegisterEntry.operation_type, func.coalesce(func.sum(CashRegisterEntry.amount), 0)),
            CashRegisterEntry.operation_date, start, end,
        ).group_by(CashRegisterEntry.operation_type).all()
    )
    by_method = dict(
        _in_range(
            db.session.query(Payment.method, func.coalesce(func.sum(Payment.amount), 0)),
            Payment.payment_date, start, end,
        ).group_by(Payment.method).all()
    )

    income = int(cash.get(CASH_INCOME, 0))
    expense = int(cash.get(CASH_EXPENSE, 0))
    return {
        "date": day.isoformat(),
        "tickets": _count_total(Ticket, Ticket.status != lc.TICKET_CANCELLED),
        "invoices": _count_total(Invoice),
        "cash": {"income": income, "expense": expense, "net": income - expense},
        "payments_by_method": {method: int(total) for method, total in by_method.items()},
    }


# =============================================================================
# SPREADSHEET EXPORT
# =============================================================================

EXPORT_COLUMNS = (
    ("reference", "Référence"),
    ("created_at", "Date"),
    ("client_name", "Client"),
    ("status", "Statut"),
    ("total_amount", "Total"),
    ("paid_amount", "Payé"),
    ("remaining_amount", "Reste"),
)

EXPORT_MODELS = {"tickets": Ticket, "invoices": Invoice}


def export_documents_xlsx(kind: str, *, date_from=None, date_to=None) -> bytes:
    """Ticket or invoice list as an .xlsx workbook (one row per document)."""
    model = EXPORT_MODELS.get(kind)
    if model is None:
        raise ReportError(f"Unknown export '{kind}'. Must be one of {sorted(EXPORT_MODELS)}")

    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws.title = kind.capitalize()
    ws.append([label for _, label in EXPORT_COLUMNS])

    query = _in_range(db.session.query(model), model.created_at, date_from, date_to)
    totals = {"total_amount": 0, "paid_amount": 0, "remaining_amount": 0}
    for doc in query.order_by(model.created_at.asc(), model.id.asc()).all():
        row = []
        for field, _ in EXPORT_COLUMNS:
            value = getattr(doc, field)
            if field == "created_at":
                value = to_utc_z(value)
            if field in totals:
                totals[field] += value or 0
            row.append(value)
        ws.append(row)

    ws.append(["TOTAL", None, None, None, totals["total_amount"], totals["paid_amount"], totals["remaining_amount"]])

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
