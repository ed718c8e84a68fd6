"""
Pytest fixtures for PharmaPOS backend tests.

Provides test database setup, seeded catalog/directory data, accounts and
an authenticated test client.
"""

from datetime import timedelta

import pytest
from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.services import auth_service
from pharmapos.services.catalog_service import CatalogCache, CounterpartyDirectory, MEDICINES, PHARMACIES
from pharmapos.services.document_store import DocumentStore
from pharmapos.time_utils import today


PASSWORD = "Password123!"


def days_from_today(days: int) -> str:
    return (today() + timedelta(days=days)).isoformat()


def medicine_records() -> dict:
    return {
        "med-amox": {
            "name": "Amoxicillin 250mg", "quantity": 10, "sellingPrice": 50,
            "expiry": days_from_today(365), "batch": "AMX-01", "rack": "A1",
        },
        "med-para": {
            "name": "Paracetamol 500mg", "quantity": 5, "sellingPrice": 100,
            "expiry": days_from_today(365), "batch": "PCM-07", "rack": "A2",
        },
        "med-cetz": {
            "name": "Cetirizine 10mg", "quantity": 0, "sellingPrice": 20,
            "expiry": days_from_today(365),
        },
        "med-ibup": {
            "name": "Ibuprofen 400mg", "quantity": 8, "sellingPrice": 30,
            "expiry": days_from_today(5),
        },
        "med-omep": {
            "name": "Omeprazole 20mg", "quantity": 3, "sellingPrice": 40,
            "expiry": days_from_today(10),
        },
        "med-insu": {
            "name": "Insulin Pen", "quantity": 1, "sellingPrice": 500,
            "expiry": days_from_today(365),
        },
    }


def pharmacy_records() -> dict:
    return {
        "ph-city": {
            "pharmacyName": "City Pharmacy", "ownerName": "Ram Sharma",
            "phone": "9800000001", "address": "Kathmandu", "email": "city@pharmacy.np",
            "registrationNumber": "REG-001",
        },
        "ph-valley": {
            "pharmacyName": "Valley Meds", "ownerName": "Sita Rai",
            "phone": "9800000002", "address": "Lalitpur",
        },
    }


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALE_REFETCH_DELAY_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions["billing_sessions"].clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    return DocumentStore(db_session)


@pytest.fixture(scope='function')
def seeded_store(store):
    """Store with the medicines and pharmacyDetailsList collections loaded."""
    store.replace_collection(MEDICINES, medicine_records())
    store.replace_collection(PHARMACIES, pharmacy_records())
    return store


@pytest.fixture(scope='function')
def catalog(seeded_store):
    return CatalogCache(seeded_store).load()


@pytest.fixture(scope='function')
def directory(seeded_store):
    return CounterpartyDirectory(seeded_store).load()


@pytest.fixture(scope='function')
def admin_user(db_session, store):
    return auth_service.create_user(
        "admin@pharmapos.local", PASSWORD, role=auth_service.ROLE_ADMIN, display_name="Admin", store=store,
    )


@pytest.fixture(scope='function')
def cashier_user(db_session, store):
    return auth_service.create_user(
        "cashier@pharmapos.local", PASSWORD, role=auth_service.ROLE_USER, display_name="Cashier", store=store,
    )


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email, PASSWORD))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.email, PASSWORD))


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
