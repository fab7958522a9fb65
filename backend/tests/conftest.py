"""
Pytest fixtures for the back-office tests.

Provides an in-memory database, the Flask test client, signed-in users and
a small catalog (article, service, client, supplier, bank, VAT).
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Article, Bank, Client, Supplier, Tax
from backoffice.services import session_service
from backoffice.services.auth_service import create_user


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
        'UPLOAD_URL_PREFIX': '/uploads',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Empty every table before each test, keep the schema."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


# =============================================================================
# USERS
# =============================================================================

@pytest.fixture
def admin_user(db_session):
    return create_user("admin@test.local", "Password123!", full_name="Admin", role="admin")


@pytest.fixture
def cashier_user(db_session):
    return create_user("caisse@test.local", "Password123!", full_name="Caisse", role="cashier")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(admin_user):
    _, token = session_service.create_session(admin_user.id)
    return auth_headers(token)


@pytest.fixture
def cashier_headers(cashier_user):
    _, token = session_service.create_session(cashier_user.id)
    return auth_headers(token)


# =============================================================================
# REFERENCE DATA
# =============================================================================

@pytest.fixture
def vat(db_session):
    tax = Tax(name="TVA", rate=18, type="percentage", is_active=True)
    db_session.add(tax)
    db_session.commit()
    return tax


@pytest.fixture
def article(db_session):
    article = Article(
        cb="6111000000017",
        cb_ref="FH-204",
        name="Filtre à huile",
        sale_price=1000,
        purchase_price=600,
        stock=10,
        min_stock=2,
        stock_type="O",
    )
    db_session.add(article)
    db_session.commit()
    return article


@pytest.fixture
def service_article(db_session):
    article = Article(cb="SRV-001", name="Vidange", sale_price=5000, stock=0, stock_type="S")
    db_session.add(article)
    db_session.commit()
    return article


@pytest.fixture
def customer(db_session):
    customer = Client(name="Garage Ndiaye", phone="+221770000000", credit_limit=50000)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def supplier(db_session):
    supplier = Supplier(company_name="Pièces Auto SARL", contact_name="M. Diop")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture
def bank(db_session):
    bank = Bank(name="BICIS", account_number="SN012-0001", balance=0)
    db_session.add(bank)
    db_session.commit()
    return bank
