from .auth import User, SessionToken
from .catalog import Article, Client, Supplier, Tax, CompanySettings
from .documents import (
    DocumentSequence,
    Ticket, TicketItem,
    Quote, QuoteItem,
    Invoice, InvoiceItem,
    PurchaseOrder, PurchaseOrderItem,
)
from .finance import Payment, Bank, BankTransaction, CashRegisterEntry

__all__ = [
    'User', 'SessionToken',
    'Article', 'Client', 'Supplier', 'Tax', 'CompanySettings',
    'DocumentSequence',
    'Ticket', 'TicketItem', 'Quote', 'QuoteItem', 'Invoice', 'InvoiceItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'Payment', 'Bank', 'BankTransaction', 'CashRegisterEntry',
]
