"""
Pytest fixtures for the station backend tests.

Provides the in-memory test database, the reference data of one station
(nozzle, price, payment methods, staff) and actor headers for the test client.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from station import create_app
from station.extensions import db
from station.models import FuelType, Nozzle, PaymentMethod, Price, Station, Tank, User
from station.models.auth import ROLE_MANAGER, ROLE_POMPISTE
from station.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_ATTEMPTS': 1,
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
def runner(app):
    return app.test_cli_runner()


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
def station(db_session):
    station = Station(name="Station Nord", code="NORD")
    db_session.add(station)
    db_session.commit()
    return station


@pytest.fixture(scope='function')
def gasoil(db_session):
    fuel = FuelType(code="GASOIL", name="Gasoil")
    db_session.add(fuel)
    db_session.commit()
    return fuel


@pytest.fixture(scope='function')
def nozzle(db_session, station, gasoil):
    """Active nozzle whose meter reads 1000.00."""
    tank = Tank(station_id=station.id, fuel_type_id=gasoil.id, code="T1", capacity_liters=Decimal("30000"))
    db_session.add(tank)
    db_session.flush()
    nozzle = Nozzle(
        station_id=station.id,
        fuel_type_id=gasoil.id,
        tank_id=tank.id,
        code="P1-A",
        current_index=Decimal("1000.00"),
    )
    db_session.add(nozzle)
    db_session.commit()
    return nozzle


@pytest.fixture(scope='function')
def second_nozzle(db_session, station, gasoil):
    nozzle = Nozzle(
        station_id=station.id,
        fuel_type_id=gasoil.id,
        code="P2-A",
        current_index=Decimal("5000.00"),
    )
    db_session.add(nozzle)
    db_session.commit()
    return nozzle


@pytest.fixture(scope='function')
def price(db_session, station, gasoil):
    """Gasoil at 12.50 per liter since yesterday."""
    price = Price(
        station_id=station.id,
        fuel_type_id=gasoil.id,
        selling_price_cents=1250,
        effective_from=utcnow() - timedelta(days=1),
    )
    db_session.add(price)
    db_session.commit()
    return price


@pytest.fixture(scope='function')
def cash(db_session):
    method = PaymentMethod(code="CASH", name="Cash")
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def card(db_session):
    method = PaymentMethod(code="CARD", name="Card")
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def voucher(db_session):
    """Payment method that requires a reference (voucher number)."""
    method = PaymentMethod(code="VOUCHER", name="Fleet voucher", requires_reference=True)
    db_session.add(method)
    db_session.commit()
    return method


def _user(db_session, station, badge, first_name, role):
    user = User(
        station_id=station.id,
        first_name=first_name,
        last_name="Test",
        badge_code=badge,
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def pompiste(db_session, station):
    return _user(db_session, station, "POMP-1", "Karim", ROLE_POMPISTE)


@pytest.fixture(scope='function')
def other_pompiste(db_session, station):
    return _user(db_session, station, "POMP-2", "Sami", ROLE_POMPISTE)


@pytest.fixture(scope='function')
def manager(db_session, station):
    return _user(db_session, station, "MGR-1", "Leila", ROLE_MANAGER)


def _headers(user) -> dict:
    return {"X-Actor-Id": str(user.id), "X-Actor-Role": user.role}


@pytest.fixture(scope='function')
def pompiste_headers(pompiste):
    """Identity headers of the shift owner."""
    return _headers(pompiste)


@pytest.fixture(scope='function')
def other_pompiste_headers(other_pompiste):
    return _headers(other_pompiste)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return _headers(manager)
