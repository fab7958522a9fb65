"""Report tests: sales summaries, client balances, dashboard and xlsx export."""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from backoffice.services import document_service, payment_service, reporting_service, treasury_service
from backoffice.services.reporting_service import ReportError
from backoffice.time_utils import utcnow


@pytest.fixture
def sales(db_session, article, customer):
    """Ticket 3000 paid 1000, cancelled ticket 1000, invoice 2000 unpaid."""
    paid = document_service.create_ticket({"client_id": customer.id, "items": [{"article_id": article.id, "quantity": 3}]})
    payment_service.record_payment(document_type="ticket", document_id=paid.id, method="cash", amount=1000)

    cancelled = document_service.create_ticket({"items": [{"article_id": article.id, "quantity": 1}]})
    document_service.cancel_ticket(cancelled.id)

    invoice = document_service.create_invoice({"client_id": customer.id, "items": [{"article_id": article.id, "quantity": 2}]})
    return paid, cancelled, invoice


class TestReports:

    def test_ticket_report(self, db_session, sales):
        report = reporting_service.ticket_report()

        assert report["count"] == 1
        assert report["cancelled_count"] == 1
        assert report["total_amount"] == 3000
        assert report["paid_amount"] == 1000
        assert report["pending_amount"] == 2000

    def test_invoice_report(self, db_session, sales):
        report = reporting_service.invoice_report()
        assert report["count"] == 1
        assert report["unpaid_amount"] == 2000

    def test_client_balances(self, db_session, sales, customer):
        (balance,) = reporting_service.client_balances()

        assert balance["client_id"] == customer.id
        assert balance["total_sales"] == 5000
        assert balance["paid_amount"] == 1000
        assert balance["outstanding"] == 4000
        assert balance["over_credit_limit"] is False

    def test_daily_dashboard(self, db_session, sales):
        treasury_service.add_cash_expense(amount=250, reason="Café")
        dashboard = reporting_service.daily_dashboard(utcnow().date())

        assert dashboard["tickets"] == {"count": 1, "total": 3000}
        assert dashboard["invoices"] == {"count": 1, "total": 2000}
        assert dashboard["cash"] == {"income": 1000, "expense": 250, "net": 750}
        assert dashboard["payments_by_method"] == {"cash": 1000}


class TestExport:

    def test_ticket_export(self, db_session, sales):
        content = reporting_service.export_documents_xlsx("tickets")
        sheet = load_workbook(BytesIO(content)).active
        rows = list(sheet.iter_rows(values_only=True))

        assert rows[0][0] == "Référence"
        assert len(rows) == 4
        assert rows[-1][0] == "TOTAL"
        assert rows[-1][4] == 4000

    def test_unknown_export(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.export_documents_xlsx("quotes")
