# Overview: Article catalog and stock movements; conditional decrements, restores and purchase receptions.

"""
Inventory Service

WHY: Stock is a shared counter touched by every checkout. Decrements are a
single conditional UPDATE (stock >= quantity) so two concurrent tickets can
never sell the same last unit; the caller's transaction is aborted instead.

STOCK RULES:
- Tickets decrement stock when created, restore it when cancelled/deleted
- Quotes and invoices never move stock
- Purchase-order reception adds the ordered quantity and refreshes costs
- Service articles (stock_type 'S') are never stock-checked nor moved
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Article, Invoice, InvoiceItem, PurchaseOrder, PurchaseOrderItem, QuoteItem, Ticket, TicketItem
from ..validation import ConflictError, NotFoundError
from backoffice.time_utils import to_utc_z
from . import lifecycle_service as lc
from .query_service import apply_filters, apply_ordering, paginate

STOCK_TYPE_SERVICE = "S"

ARTICLE_MUTABLE_FIELDS = {
    "cb", "cb_ref", "name", "description",
    "sale_price", "purchase_price", "transport_cost", "last_cost",
    "stock", "min_stock", "stock_type",
    "location", "category", "brand", "image_url",
}
ARTICLE_SEARCH_FIELDS = ("name", "cb", "cb_ref")


class InsufficientStockError(Exception):
    """Raised when a sale asks for more units than are on hand."""

    def __init__(self, article_id: int, name: str, requested: int, available: int):
        self.article_id = article_id
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {name}: requested {requested}, available {available}")


def get_article(article_id: int) -> Article:
    article = db.session.get(Article, article_id)
    if article is None:
        raise NotFoundError(f"Article {article_id} not found")
    return article


def tracks_stock(article: Article) -> bool:
    return article.stock_type != STOCK_TYPE_SERVICE


def find_by_barcode(code: str) -> Article | None:
    """Exact match on the scanned barcode first, then on the secondary reference."""
    code = (code or "").strip()
    if not code:
        return None
    article = db.session.query(Article).filter(Article.cb == code).first()
    if article is not None:
        return article
    return db.session.query(Article).filter(Article.cb_ref == code).order_by(Article.id.asc()).first()


def list_articles(
    *,
    search: str | None = None,
    category: str | None = None,
    brand: str | None = None,
    stock_type: str | None = None,
    order_by: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = apply_filters(
        db.session.query(Article),
        Article,
        eq={"category": category, "brand": brand, "stock_type": stock_type},
        search=search,
        search_fields=ARTICLE_SEARCH_FIELDS,
    )
    query = apply_ordering(query, Article, order_by, default="name", descending=False)
    return paginate(query, page=page, per_page=per_page)


def list_low_stock(*, page: int | None = None, per_page: int | None = None) -> dict:
    query = (
        db.session.query(Article)
        .filter(Article.stock_type != STOCK_TYPE_SERVICE, Article.stock <= Article.min_stock)
        .order_by(Article.stock.asc(), Article.id.asc())
    )
    return paginate(query, page=page, per_page=per_page)


def apply_article_patch(article: Article, patch: dict) -> None:
    for k, v in patch.items():
        if k not in ARTICLE_MUTABLE_FIELDS:
            continue
        setattr(article, k, v)


def _require_unique_barcode(cb: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Article).filter(Article.cb == cb)
    if exclude_id is not None:
        query = query.filter(Article.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Barcode {cb} is already used by another article")


def create_article(patch: dict) -> Article:
    _require_unique_barcode(patch["cb"])
    article = Article()
    apply_article_patch(article, patch)
    db.session.add(article)
    db.session.commit()
    current_app.logger.info("Article created id=%s cb=%s", article.id, article.cb)
    return article


def update_article(article_id: int, patch: dict) -> Article:
    article = get_article(article_id)
    if "cb" in patch and patch["cb"] != article.cb:
        _require_unique_barcode(patch["cb"], exclude_id=article.id)
    apply_article_patch(article, patch)
    db.session.commit()
    return article


def delete_article(article_id: int) -> None:
    """Articles referenced by any document line are kept for history."""
    article = get_article(article_id)
    for line_model in (TicketItem, QuoteItem, InvoiceItem, PurchaseOrderItem):
        if db.session.query(line_model.id).filter(line_model.article_id == article_id).first():
            raise ConflictError("Article is referenced by existing documents and cannot be deleted")
    db.session.delete(article)
    db.session.commit()


def article_history(article_id: int) -> dict:
    """
    Purchases and sales of one article, newest first.

    purchases: every purchase-order line (any order status), with the landed
    cost (unit price + transport) per line.
    sales: ticket lines not cancelled and not yet invoiced, plus invoice
    lines, so a ticket turned into an invoice is counted once.
    """
    article = get_article(article_id)

    purchase_rows = (
        db.session.query(PurchaseOrderItem, PurchaseOrder)
        .join(PurchaseOrder, PurchaseOrderItem.purchase_order_id == PurchaseOrder.id)
        .filter(PurchaseOrderItem.article_id == article.id)
        .order_by(PurchaseOrder.created_at.desc(), PurchaseOrderItem.id.desc())
        .all()
    )
    purchases = [
        {
            "id": item.id,
            "date": to_utc_z(order.created_at),
            "order_id": order.id,
            "order_reference": order.reference,
            "supplier_name": order.supplier_name,
            "status": order.status,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "transport_cost": item.transport_cost or 0,
            "total_cost": (item.unit_price + (item.transport_cost or 0)) * item.quantity,
        }
        for item, order in purchase_rows
    ]

    ticket_rows = (
        db.session.query(TicketItem, Ticket)
        .join(Ticket, TicketItem.ticket_id == Ticket.id)
        .filter(
            TicketItem.article_id == article.id,
            Ticket.status != lc.TICKET_CANCELLED,
            Ticket.invoiced.is_(False),
        )
        .all()
    )
    invoice_rows = (
        db.session.query(InvoiceItem, Invoice)
        .join(Invoice, InvoiceItem.invoice_id == Invoice.id)
        .filter(InvoiceItem.article_id == article.id)
        .all()
    )

    sales = []
    for document_type, rows in (("ticket", ticket_rows), ("invoice", invoice_rows)):
        for item, document in rows:
            sales.append({
                "id": item.id,
                "date": document.created_at,
                "document_type": document_type,
                "document_id": document.id,
                "document_reference": document.reference,
                "client_name": document.client_name,
                "status": document.status,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total": item.line_total,
            })
    sales.sort(key=lambda s: (s["date"], s["id"]), reverse=True)
    for sale in sales:
        sale["date"] = to_utc_z(sale["date"])

    return {
        "article": article.to_dict(),
        "purchases": purchases,
        "sales": sales,
        "totals": {
            "purchased_quantity": sum(p["quantity"] for p in purchases if p["status"] == lc.PO_RECEIVED),
            "sold_quantity": sum(s["quantity"] for s in sales),
            "sales_amount": sum(s["total"] for s in sales),
        },
    }


def decrement_stock(article_id: int, quantity: int) -> None:
    """
    Atomically remove quantity units from stock.

    Does not commit; the caller owns the transaction. Raises
    InsufficientStockError when fewer than quantity units remain.
    """
    article = get_article(article_id)
    if not tracks_stock(article) or quantity <= 0:
        return

    result = db.session.execute(
        update(Article)
        .where(Article.id == article_id, Article.stock >= quantity)
        .values(stock=Article.stock - quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        db.session.refresh(article)
        raise InsufficientStockError(article.id, article.name, quantity, article.stock)


def restore_stock(article_id: int, quantity: int) -> None:
    """Give back units taken by a ticket (edit, cancel, delete). Does not commit."""
    article = db.session.get(Article, article_id)
    if article is None or not tracks_stock(article) or quantity <= 0:
        return
    db.session.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(stock=Article.stock + quantity)
        .execution_options(synchronize_session="fetch")
    )


def apply_reception(item: PurchaseOrderItem, transport_cost: int) -> None:
    """
    Book one received purchase-order line into the catalog. Does not commit.

    stock += ordered quantity; purchase_price = unit price;
    last_cost = unit price + transport.
    """
    article = get_article(item.article_id)
    item.transport_cost = transport_cost
    article.purchase_price = item.unit_price
    article.transport_cost = transport_cost
    article.last_cost = item.unit_price + transport_cost
    db.session.flush()
    if tracks_stock(article):
        restore_stock(article.id, item.quantity)


def available_stock(article: Article) -> int | None:
    """Stock cap used by the cart; None means unlimited (services)."""
    return article.stock if tracks_stock(article) else None

