"""Transition tables: allowed moves, terminal states and edit/delete gates."""

import pytest

from backoffice.services import lifecycle_service as lc


class TestTransitions:

    @pytest.mark.parametrize("kind,src,dst", [
        (lc.KIND_TICKET, lc.TICKET_PENDING, lc.TICKET_ADVANCE),
        (lc.KIND_TICKET, lc.TICKET_ADVANCE, lc.TICKET_ADVANCE),
        (lc.KIND_TICKET, lc.TICKET_ADVANCE, lc.TICKET_PAID),
        (lc.KIND_QUOTE, lc.QUOTE_DRAFT, lc.QUOTE_SENT),
        (lc.KIND_QUOTE, lc.QUOTE_SENT, lc.QUOTE_REJECTED),
        (lc.KIND_INVOICE, lc.INVOICE_UNPAID, lc.INVOICE_PAID),
        (lc.KIND_PURCHASE_ORDER, lc.PO_VALIDATED, lc.PO_RECEIVED),
    ])
    def test_allowed(self, kind, src, dst):
        lc.require_transition(kind, src, dst)

    @pytest.mark.parametrize("kind,src,dst", [
        (lc.KIND_TICKET, lc.TICKET_PAID, lc.TICKET_CANCELLED),
        (lc.KIND_TICKET, lc.TICKET_ADVANCE, lc.TICKET_CANCELLED),
        (lc.KIND_QUOTE, lc.QUOTE_REJECTED, lc.QUOTE_CONFIRMED),
        (lc.KIND_QUOTE, lc.QUOTE_SENT, lc.QUOTE_DRAFT),
        (lc.KIND_INVOICE, lc.INVOICE_PAID, lc.INVOICE_ADVANCE),
        (lc.KIND_PURCHASE_ORDER, lc.PO_RECEIVED, lc.PO_CANCELLED),
        (lc.KIND_PURCHASE_ORDER, lc.PO_DRAFT, lc.PO_RECEIVED),
    ])
    def test_refused(self, kind, src, dst):
        with pytest.raises(lc.LifecycleError):
            lc.require_transition(kind, src, dst)

    def test_unknown_status(self):
        with pytest.raises(lc.LifecycleError):
            lc.validate_status(lc.KIND_TICKET, "shipped")

    def test_unknown_kind(self):
        with pytest.raises(lc.LifecycleError):
            lc.can_transition("credit_note", "a", "b")

    def test_terminal_states(self):
        assert lc.is_terminal(lc.KIND_TICKET, lc.TICKET_PAID)
        assert lc.is_terminal(lc.KIND_QUOTE, lc.QUOTE_REJECTED)
        assert not lc.is_terminal(lc.KIND_INVOICE, lc.INVOICE_ADVANCE)


class TestGates:

    def test_paid_ticket_is_frozen(self):
        assert not lc.can_edit(lc.KIND_TICKET, lc.TICKET_PAID)
        assert not lc.can_delete(lc.KIND_TICKET, lc.TICKET_PAID)
        with pytest.raises(lc.LifecycleError):
            lc.require_editable(lc.KIND_TICKET, lc.TICKET_PAID)

    def test_rejected_quote_can_be_deleted_not_edited(self):
        assert lc.can_delete(lc.KIND_QUOTE, lc.QUOTE_REJECTED)
        assert not lc.can_edit(lc.KIND_QUOTE, lc.QUOTE_REJECTED)

    def test_settlement_status(self):
        assert lc.settlement_status(lc.KIND_TICKET, 2124, 1000) == lc.TICKET_ADVANCE
        assert lc.settlement_status(lc.KIND_TICKET, 2124, 2124) == lc.TICKET_PAID
        assert lc.settlement_status(lc.KIND_PURCHASE_PAYMENT, 500, 100) == lc.PO_PAYMENT_PARTIAL
