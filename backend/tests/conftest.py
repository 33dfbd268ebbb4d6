"""
Pytest fixtures for hotel POS backend tests.

Provides test database setup, a seeded property (outlet, tables, menu, staff,
bookings), actors for the service layer and auth headers for the HTTP layer.
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from hotelpos import create_app
from hotelpos.extensions import db
from hotelpos.models import (
    Booking,
    DiningTable,
    DiscountType,
    MenuItem,
    Outlet,
    Property,
    StockLevel,
    User,
    Warehouse,
)
from hotelpos.models.bookings import BOOKING_CONFIRMED, BOOKING_PENDING
from hotelpos.models.menu import WAREHOUSE_KITCHEN
from hotelpos.services.auth_service import create_user
from hotelpos.services.session_service import Actor

PASSWORD = "Password123!"
MANAGER_PIN = "1234"
ADMIN_PIN = "999999"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'POS_INVENTORY_REFRESH_ENABLED': False,
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


@dataclass
class Seed:
    property: Property
    outlet: Outlet
    other_outlet: Outlet
    t1: DiningTable
    t2: DiningTable
    sandwich: MenuItem
    iced_tea: MenuItem
    sold_out: MenuItem
    kitchen: Warehouse
    admin: User
    manager: User
    cashier: User
    server: User
    server2: User
    cook: User
    booking: Booking
    pending_booking: Booking
    unauthorized_booking: Booking
    senior: DiscountType
    manager_special: DiscountType

    @staticmethod
    def actor(user: User) -> Actor:
        return Actor.from_user(user)


@pytest.fixture(scope='function')
def seed(db_session):
    """
    Demo property: 12% tax, 10% service charge.

    Menu: Club Sandwich 250.00, Iced Tea 100.00, one sold-out item.
    Staff: admin (PIN 999999), manager (PIN 1234), cashier, two servers, a cook.
    """
    prop = Property(
        name="Test Hotel",
        code="TEST",
        tax_rate=Decimal("0.1200"),
        service_charge_rate=Decimal("0.1000"),
    )
    db_session.add(prop)
    db_session.flush()

    outlet = Outlet(property_id=prop.id, name="Lobby Restaurant", code="LOBBY")
    other_outlet = Outlet(property_id=prop.id, name="Pool Bar", code="POOL", outlet_type="BAR")
    db_session.add_all([outlet, other_outlet])
    db_session.flush()

    t1 = DiningTable(outlet_id=outlet.id, number="T1", capacity=4)
    t2 = DiningTable(outlet_id=outlet.id, number="T2", capacity=2)
    sandwich = MenuItem(property_id=prop.id, name="Club Sandwich", category="Mains", selling_price=Decimal("250.00"))
    iced_tea = MenuItem(property_id=prop.id, name="Iced Tea", category="Drinks", selling_price=Decimal("100.00"))
    sold_out = MenuItem(
        property_id=prop.id,
        name="Lobster Thermidor",
        category="Mains",
        selling_price=Decimal("1800.00"),
        is_available=False,
        unavailable_reason="Out of stock",
    )
    kitchen = Warehouse(property_id=prop.id, name="Main Kitchen", warehouse_type=WAREHOUSE_KITCHEN)
    db_session.add_all([t1, t2, sandwich, iced_tea, sold_out, kitchen])
    db_session.flush()

    db_session.add(StockLevel(warehouse_id=kitchen.id, menu_item_id=sandwich.id, quantity=10))

    booking = Booking(
        property_id=prop.id,
        short_ref="BK-0001",
        guest_name="Juan dela Cruz",
        room_number="305",
        status=BOOKING_CONFIRMED,
        room_charge_authorized=True,
        amount_due=Decimal("0.00"),
    )
    pending_booking = Booking(
        property_id=prop.id,
        short_ref="BK-0002",
        guest_name="Ana Reyes",
        room_number="412",
        status=BOOKING_PENDING,
    )
    unauthorized_booking = Booking(
        property_id=prop.id,
        short_ref="BK-0003",
        guest_name="Ben Santos",
        room_number="118",
        status=BOOKING_CONFIRMED,
        room_charge_authorized=False,
    )
    senior = DiscountType(property_id=prop.id, code="SENIOR", name="Senior Citizen", percentage=Decimal("20.00"))
    manager_special = DiscountType(
        property_id=prop.id,
        code="MGR50",
        name="Manager Special",
        percentage=Decimal("50.00"),
        max_amount=Decimal("200.00"),
        requires_approval=True,
    )
    db_session.add_all([booking, pending_booking, unauthorized_booking, senior, manager_special])
    db_session.commit()

    admin = create_user("admin", PASSWORD, "ADMIN", name="Admin", property_id=prop.id, pin=ADMIN_PIN)
    manager = create_user("manager", PASSWORD, "MANAGER", name="Maria Manager", property_id=prop.id, pin=MANAGER_PIN)
    cashier = create_user("cashier", PASSWORD, "CASHIER", name="Carlo Cashier", property_id=prop.id, pin="4321")
    server = create_user("server", PASSWORD, "SERVER", name="Sam Server", property_id=prop.id)
    server2 = create_user("server2", PASSWORD, "SERVER", name="Sofia Server", property_id=prop.id)
    cook = create_user("cook", PASSWORD, "KITCHEN", name="Kit Cook", property_id=prop.id)

    return Seed(
        property=prop,
        outlet=outlet,
        other_outlet=other_outlet,
        t1=t1,
        t2=t2,
        sandwich=sandwich,
        iced_tea=iced_tea,
        sold_out=sold_out,
        kitchen=kitchen,
        admin=admin,
        manager=manager,
        cashier=cashier,
        server=server,
        server2=server2,
        cook=cook,
        booking=booking,
        pending_booking=pending_booking,
        unauthorized_booking=unauthorized_booking,
        senior=senior,
        manager_special=manager_special,
    )


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def server_headers(client, seed):
    return auth_headers(get_auth_token(client, "server"))


@pytest.fixture(scope='function')
def cashier_headers(client, seed):
    return auth_headers(get_auth_token(client, "cashier"))


@pytest.fixture(scope='function')
def manager_headers(client, seed):
    return auth_headers(get_auth_token(client, "manager"))


@pytest.fixture(scope='function')
def cook_headers(client, seed):
    return auth_headers(get_auth_token(client, "cook"))
