"""
Pytest fixtures for zakat fitrah backend tests.

Provides the application on in-memory SQLite, a per-test table wipe,
users/RT/rate factories and logged-in test clients.
"""

from decimal import Decimal

import pytest
from zakat import create_app
from zakat.extensions import db
from zakat.models import MasterZakatRate, Subdivision
from zakat.models.auth import ROLE_ADMIN, ROLE_PANITIA
from zakat.services.auth_service import create_user

ADMIN_PHONE = "081111111111"
PANITIA_PHONE = "082222222222"
PASSWORD = "rahasia123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user("Admin Masjid", ADMIN_PHONE, PASSWORD, ROLE_ADMIN)


@pytest.fixture(scope='function')
def panitia_user(db_session):
    return create_user("Panitia Satu", PANITIA_PHONE, PASSWORD, ROLE_PANITIA)


@pytest.fixture(scope='function')
def rt(db_session):
    """RT 01 without an RW."""
    subdivision = Subdivision(number="01", leader="Pak Ahmad")
    db_session.add(subdivision)
    db_session.commit()
    return subdivision


@pytest.fixture(scope='function')
def other_rt(db_session):
    subdivision = Subdivision(number="02", leader="Pak Budi")
    db_session.add(subdivision)
    db_session.commit()
    return subdivision


@pytest.fixture(scope='function')
def money_rate(db_session):
    rate = MasterZakatRate(name="Uang Standar", unit_price=Decimal("45000"), unit_weight_kg=Decimal("0"))
    db_session.add(rate)
    db_session.commit()
    return rate


@pytest.fixture(scope='function')
def rice_rate(db_session):
    rate = MasterZakatRate(name="Beras Standar", unit_price=Decimal("45000"), unit_weight_kg=Decimal("2.5"))
    db_session.add(rate)
    db_session.commit()
    return rate


def login(client, phone: str, password: str = PASSWORD):
    """Log the client in; the session cookie is kept by the client."""
    return client.post('/auth/login', json={'phone': phone, 'password': password})


@pytest.fixture(scope='function')
def admin_client(app, admin_user):
    client = app.test_client()
    response = login(client, ADMIN_PHONE)
    assert response.status_code == 200
    return client


@pytest.fixture(scope='function')
def panitia_client(app, panitia_user):
    client = app.test_client()
    response = login(client, PANITIA_PHONE)
    assert response.status_code == 200
    return client


def payer_payload(subdivision_id: int, headcount: int, amount_paid, rate_id=None, zakat_kind=None, names=None) -> dict:
    payload = {
        'subdivision_id': subdivision_id,
        'headcount': headcount,
        'amount_paid': amount_paid,
        'names': names if names is not None else [{'full_name': 'Ahmad', 'patronymic': 'bin', 'parent_name': 'Umar'}],
    }
    if rate_id is not None:
        payload['rate_id'] = rate_id
    if zakat_kind is not None:
        payload['zakat_kind'] = zakat_kind
    return payload
