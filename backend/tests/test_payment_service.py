"""
Payment ledger tests.

Verifies:
- 0 < amount <= remaining; exact remaining settles the document
- cash payments land in the cash register, other methods on a bank
- purchase-order payments go out (expense / outgoing bank payment)
- idempotency keys
"""

import pytest

from backoffice.models import Bank, BankTransaction, CashRegisterEntry, Payment
from backoffice.services import document_service, lifecycle_service as lc, payment_service, treasury_service
from backoffice.services.payment_service import PaymentError
from backoffice.validation import ConflictError, NotFoundError


@pytest.fixture
def ticket(db_session, vat, article):
    """Ticket of 2124 (1000 x 2, 10 % discount, 18 % VAT)."""
    return document_service.create_ticket({
        "items": [{"article_id": article.id, "quantity": 2, "discount": 10}],
    })


def _pay(document, amount, method="cash", document_type="ticket", **extra):
    return payment_service.record_payment(
        document_type=document_type,
        document_id=document.id,
        method=method,
        amount=amount,
        **extra,
    )


# =============================================================================
# SETTLEMENT
# =============================================================================

class TestSettlement:

    def test_partial_cash_payment(self, db_session, ticket):
        payment = _pay(ticket, 1000)
        summary = payment_service.get_payment_summary("ticket", ticket.id)

        assert payment.amount == 1000
        assert summary["status"] == lc.TICKET_ADVANCE
        assert summary["paid_amount"] == 1000
        assert summary["remaining_amount"] == 1124

        entry = db_session.query(CashRegisterEntry).one()
        assert entry.operation_type == treasury_service.CASH_INCOME
        assert entry.amount == 1000
        assert entry.payment_id == payment.id

    def test_exact_remaining_settles(self, db_session, ticket):
        _pay(ticket, 1000)
        _pay(ticket, 1124)
        summary = payment_service.get_payment_summary("ticket", ticket.id)

        assert summary["status"] == lc.TICKET_PAID
        assert summary["remaining_amount"] == 0
        assert len(summary["payments"]) == 2

        with pytest.raises(PaymentError):
            _pay(ticket, 1)

    def test_overpayment_refused(self, db_session, ticket):
        with pytest.raises(PaymentError):
            _pay(ticket, 2125)
        assert db_session.query(Payment).count() == 0
        assert db_session.query(CashRegisterEntry).count() == 0

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount(self, db_session, ticket, amount):
        with pytest.raises(PaymentError):
            _pay(ticket, amount)

    def test_invalid_method(self, db_session, ticket):
        with pytest.raises(PaymentError):
            _pay(ticket, 100, method="card")

    def test_invalid_document_type(self, db_session, ticket):
        with pytest.raises(PaymentError):
            _pay(ticket, 100, document_type="quote")

    def test_unknown_document(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.record_payment(document_type="invoice", document_id=404, method="cash", amount=10)

    def test_cancelled_ticket_not_payable(self, db_session, ticket):
        document_service.cancel_ticket(ticket.id)
        with pytest.raises(PaymentError):
            _pay(ticket, 100)

    def test_invoice_paid_sets_payment_date(self, db_session, article):
        invoice = document_service.create_invoice({"items": [{"article_id": article.id, "quantity": 1}]})
        _pay(invoice, 400, document_type="invoice")
        assert document_service.get_document(lc.KIND_INVOICE, invoice.id).status == lc.INVOICE_ADVANCE

        _pay(invoice, 600, document_type="invoice")
        invoice = document_service.get_document(lc.KIND_INVOICE, invoice.id)
        assert invoice.status == lc.INVOICE_PAID
        assert invoice.payment_date is not None

    def test_invoice_with_payments_is_frozen(self, db_session, article):
        invoice = document_service.create_invoice({"items": [{"article_id": article.id, "quantity": 1}]})
        _pay(invoice, 400, document_type="invoice")
        with pytest.raises(lc.LifecycleError):
            document_service.update_invoice(invoice.id, {"notes": "x"})

    def test_idempotency_key(self, db_session, ticket):
        first = _pay(ticket, 500, idempotency_key="pay-001")
        second = _pay(ticket, 500, idempotency_key="pay-001")

        assert first.id == second.id
        assert document_service.get_document(lc.KIND_TICKET, ticket.id).paid_amount == 500

    def test_idempotency_key_reused_for_another_document(self, db_session, ticket, article):
        other = document_service.create_ticket({"items": [{"article_id": article.id, "quantity": 1}]})
        _pay(ticket, 500, idempotency_key="pay-002")

        with pytest.raises(ConflictError):
            _pay(other, 1000, idempotency_key="pay-002")
        assert document_service.get_document(lc.KIND_TICKET, other.id).status == lc.TICKET_PENDING
        assert document_service.get_document(lc.KIND_TICKET, other.id).paid_amount == 0

    def test_idempotency_key_reused_with_other_amount(self, db_session, ticket):
        _pay(ticket, 500, idempotency_key="pay-003")
        with pytest.raises(ConflictError):
            _pay(ticket, 600, idempotency_key="pay-003")
        assert document_service.get_document(lc.KIND_TICKET, ticket.id).paid_amount == 500


# =============================================================================
# BANK METHODS
# =============================================================================

class TestBankPayments:

    def test_bank_required(self, db_session, ticket):
        with pytest.raises(PaymentError):
            _pay(ticket, 500, method="bank_transfer")

    def test_check_number_required(self, db_session, ticket, bank):
        with pytest.raises(PaymentError):
            _pay(ticket, 500, method="check", bank_id=bank.id)

    def test_check_payment_credits_bank(self, db_session, ticket, bank):
        payment = _pay(ticket, 2124, method="check", bank_id=bank.id, check_number="0004521")

        txn = db_session.query(BankTransaction).one()
        assert txn.type == treasury_service.BANK_PAYMENT
        assert txn.direction == treasury_service.DIRECTION_IN
        assert txn.amount == 2124
        assert txn.payment_id == payment.id
        assert db_session.get(Bank, bank.id).balance == 2124
        assert db_session.query(CashRegisterEntry).count() == 0

    def test_unknown_bank(self, db_session, ticket):
        with pytest.raises(NotFoundError):
            _pay(ticket, 500, method="bank_transfer", bank_id=999)


# =============================================================================
# PURCHASE ORDERS
# =============================================================================

class TestPurchaseOrderPayments:

    @pytest.fixture
    def order(self, db_session, supplier, article):
        from backoffice.services import purchase_service

        order = purchase_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"article_id": article.id, "quantity": 5, "unit_price": 600}],
        })
        return purchase_service.validate_purchase_order(order.id)

    def test_cash_payment_is_an_expense(self, db_session, order, supplier):
        _pay(order, 1000, document_type="purchase_order")

        entry = db_session.query(CashRegisterEntry).one()
        assert entry.operation_type == treasury_service.CASH_EXPENSE
        assert entry.supplier_id == supplier.id
        summary = payment_service.get_payment_summary("purchase_order", order.id)
        assert summary["status"] == lc.PO_PAYMENT_PARTIAL

    def test_bank_payment_goes_out(self, db_session, order, bank):
        treasury_service.add_bank_movement(bank.id, type="deposit", amount=10000)
        _pay(order, 3000, method="bank_transfer", bank_id=bank.id, document_type="purchase_order")

        assert db_session.get(Bank, bank.id).balance == 7000
        out = db_session.query(BankTransaction).filter_by(type="payment").one()
        assert out.direction == treasury_service.DIRECTION_OUT
        assert payment_service.get_payment_summary("purchase_order", order.id)["status"] == lc.PO_PAYMENT_PAID

    def test_bank_payment_beyond_balance_refused(self, db_session, order, bank):
        with pytest.raises(PaymentError):
            _pay(order, 3000, method="bank_transfer", bank_id=bank.id, document_type="purchase_order")
        assert db_session.query(Payment).count() == 0

    def test_draft_order_not_payable(self, db_session, supplier, article):
        from backoffice.services import purchase_service

        draft = purchase_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"article_id": article.id, "quantity": 1}],
        })
        with pytest.raises(PaymentError):
            _pay(draft, 100, document_type="purchase_order")
