"""Purchase order tests: drafting, validation, reception into stock, cancellation."""

import pytest

from backoffice.models import Article
from backoffice.services import lifecycle_service as lc, payment_service, purchase_service
from backoffice.services.purchase_service import PurchaseOrderError
from backoffice.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def order(db_session, supplier, article):
    return purchase_service.create_purchase_order({
        "supplier_id": supplier.id,
        "items": [{"article_id": article.id, "quantity": 5, "unit_price": 650}],
    })


class TestDrafting:

    def test_create(self, db_session, order, supplier):
        assert order.reference == "BC-00001"
        assert order.status == lc.PO_DRAFT
        assert order.payment_status == lc.PO_PAYMENT_PENDING
        assert order.supplier_name == supplier.company_name
        assert order.total_amount == 3250

    def test_unit_price_defaults_to_purchase_price(self, db_session, supplier, article):
        order = purchase_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"article_id": article.id, "quantity": 2}],
        })
        assert order.items[0].unit_price == 600
        assert order.total_amount == 1200

    def test_supplier_required(self, db_session, article):
        with pytest.raises(ValidationError):
            purchase_service.create_purchase_order({"items": [{"article_id": article.id}]})

    def test_unknown_supplier(self, db_session, article):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase_order({"supplier_id": 99, "items": [{"article_id": article.id}]})

    def test_only_drafts_are_editable(self, db_session, order, article):
        order = purchase_service.update_purchase_order(
            order.id, {"items": [{"article_id": article.id, "quantity": 1, "unit_price": 700}]}
        )
        assert order.total_amount == 700

        purchase_service.validate_purchase_order(order.id)
        with pytest.raises(lc.LifecycleError):
            purchase_service.update_purchase_order(order.id, {"notes": "late"})

    def test_idempotency_key_replay_and_reuse(self, db_session, supplier, article):
        payload = {
            "supplier_id": supplier.id,
            "items": [{"article_id": article.id, "quantity": 2}],
            "idempotency_key": "bc-1",
        }
        first = purchase_service.create_purchase_order(payload)
        assert purchase_service.create_purchase_order(payload).id == first.id

        with pytest.raises(ConflictError):
            purchase_service.create_purchase_order(dict(payload, items=[{"article_id": article.id, "quantity": 9}]))


class TestReception:

    def test_receive_adds_stock_and_refreshes_costs(self, db_session, order, article):
        purchase_service.validate_purchase_order(order.id)
        item_id = order.items[0].id

        order = purchase_service.receive_purchase_order(order.id, {str(item_id): 50})
        refreshed = db_session.get(Article, article.id)

        assert order.status == lc.PO_RECEIVED
        assert order.received_at is not None
        assert order.items[0].transport_cost == 50
        assert refreshed.stock == 15
        assert refreshed.purchase_price == 650
        assert refreshed.transport_cost == 50
        assert refreshed.last_cost == 700

    def test_draft_cannot_be_received(self, db_session, order, article):
        with pytest.raises(lc.LifecycleError):
            purchase_service.receive_purchase_order(order.id)
        assert db_session.get(Article, article.id).stock == 10

    def test_received_twice_refused(self, db_session, order, article):
        purchase_service.validate_purchase_order(order.id)
        purchase_service.receive_purchase_order(order.id)
        with pytest.raises(lc.LifecycleError):
            purchase_service.receive_purchase_order(order.id)
        assert db_session.get(Article, article.id).stock == 15

    def test_unknown_line_in_transport_costs(self, db_session, order):
        purchase_service.validate_purchase_order(order.id)
        with pytest.raises(ValidationError):
            purchase_service.receive_purchase_order(order.id, {"9999": 10})

    def test_negative_transport_cost(self, db_session, order):
        purchase_service.validate_purchase_order(order.id)
        with pytest.raises(ValidationError):
            purchase_service.receive_purchase_order(order.id, {str(order.items[0].id): -5})


class TestCancellation:

    def test_cancel_then_delete(self, db_session, order):
        assert purchase_service.cancel_purchase_order(order.id).status == lc.PO_CANCELLED
        purchase_service.delete_purchase_order(order.id)
        with pytest.raises(NotFoundError):
            purchase_service.get_purchase_order(order.id)

    def test_paid_order_cannot_be_cancelled(self, db_session, order):
        purchase_service.validate_purchase_order(order.id)
        payment_service.record_payment(
            document_type="purchase_order", document_id=order.id, method="cash", amount=1000
        )
        with pytest.raises(PurchaseOrderError):
            purchase_service.cancel_purchase_order(order.id)

    def test_validated_order_cannot_be_deleted(self, db_session, order):
        purchase_service.validate_purchase_order(order.id)
        with pytest.raises(lc.LifecycleError):
            purchase_service.delete_purchase_order(order.id)
