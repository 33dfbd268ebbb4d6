# Overview: Flask CLI command group for database bootstrap and demo data.

# backend/hotelpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "hotelpos:create_app".
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask system init-db
#   Create all tables from the models (use "flask db upgrade" for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo property: outlet, tables, menu, kitchen stock, discount
#   presets, staff accounts with PINs and a confirmed room booking.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import (
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
from .models.bookings import BOOKING_CONFIRMED
from .models.menu import WAREHOUSE_KITCHEN
from .services.auth_service import create_user
from .validation import ValidationError

DEMO_PASSWORD = "Password123!"

DEMO_USERS = [
    ("admin", "Admin", "ADMIN", "9999"),
    ("manager", "Maria Manager", "MANAGER", "1234"),
    ("cashier", "Carlo Cashier", "CASHIER", None),
    ("server", "Sam Server", "SERVER", None),
    ("kitchen", "Kit Kitchen", "KITCHEN", None),
]

DEMO_MENU = [
    ("Club Sandwich", "Mains", Decimal("250.00")),
    ("Iced Tea", "Drinks", Decimal("100.00")),
    ("Chicken Adobo", "Mains", Decimal("320.00")),
    ("Halo-Halo", "Desserts", Decimal("180.00")),
]

DEMO_DISCOUNTS = [
    ("SENIOR", "Senior Citizen", Decimal("20.00"), None, False),
    ("PWD", "Person with Disability", Decimal("20.00"), None, False),
    ("MGR50", "Manager Special", Decimal("50.00"), Decimal("1000.00"), True),
]


@click.group('system')
def system_group():
    """Database bootstrap and demo data commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to load demo data.")


@system_group.command('seed-demo')
@click.option('--name', 'property_name', default='Demo Hotel', help='Property name')
@click.option('--code', 'property_code', default='DEMO', help='Property code')
@with_appcontext
def seed_demo(property_name, property_code):
    """
    Seed a demo property that can take orders right away.

    Rates: 12% tax and 10% service charge on the subtotal.
    All passwords default to "Password123!". Change them in production!
    """
    click.echo("START Seeding demo data...")

    prop = db.session.query(Property).filter_by(code=property_code).first()
    if not prop:
        prop = Property(
            name=property_name,
            code=property_code,
            tax_rate=Decimal("0.1200"),
            service_charge_rate=Decimal("0.1000"),
            is_active=True,
        )
        db.session.add(prop)
        db.session.commit()
        click.echo(f"PASS Created property: {prop.name} (ID: {prop.id})")
    else:
        click.echo(f"PASS Using existing property: {prop.name} (ID: {prop.id})")

    outlet = db.session.query(Outlet).filter_by(property_id=prop.id).first()
    if not outlet:
        outlet = Outlet(property_id=prop.id, name="Lobby Restaurant", code="LOBBY", outlet_type="RESTAURANT")
        db.session.add(outlet)
        db.session.flush()
        for number in range(1, 9):
            db.session.add(DiningTable(outlet_id=outlet.id, number=f"T{number}", capacity=4))
        db.session.commit()
        click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id}) with 8 tables")

    kitchen = db.session.query(Warehouse).filter_by(property_id=prop.id, warehouse_type=WAREHOUSE_KITCHEN).first()
    if not kitchen:
        kitchen = Warehouse(property_id=prop.id, name="Main Kitchen", warehouse_type=WAREHOUSE_KITCHEN)
        db.session.add(kitchen)
        db.session.flush()

    for name, category, price in DEMO_MENU:
        item = db.session.query(MenuItem).filter_by(property_id=prop.id, name=name).first()
        if item:
            continue
        item = MenuItem(property_id=prop.id, name=name, category=category, selling_price=price)
        db.session.add(item)
        db.session.flush()
        db.session.add(StockLevel(warehouse_id=kitchen.id, menu_item_id=item.id, quantity=50))
    db.session.commit()
    click.echo(f"PASS Menu ready: {len(DEMO_MENU)} items")

    for code, name, percentage, max_amount, requires_approval in DEMO_DISCOUNTS:
        if db.session.query(DiscountType).filter_by(property_id=prop.id, code=code).first():
            continue
        db.session.add(DiscountType(
            property_id=prop.id,
            code=code,
            name=name,
            percentage=percentage,
            max_amount=max_amount,
            requires_approval=requires_approval,
        ))
    db.session.commit()

    click.echo("\nUSERS Creating staff accounts...")
    for username, name, role, pin in DEMO_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, DEMO_PASSWORD, role, name=name, property_id=prop.id, pin=pin)
        except ValidationError as e:
            click.echo(f"FAIL Failed to create user '{username}': {e.message}")
            continue
        click.echo(f"PASS Created user: {username} ({role})")

    if not db.session.query(Booking).filter_by(short_ref="BK-DEMO1").first():
        db.session.add(Booking(
            property_id=prop.id,
            short_ref="BK-DEMO1",
            guest_name="Juan dela Cruz",
            room_number="305",
            status=BOOKING_CONFIRMED,
            room_charge_authorized=True,
        ))
        db.session.commit()
        click.echo("PASS Created confirmed booking BK-DEMO1 (room 305)")

    click.echo("\nDONE Demo data ready.")
    click.echo("   manager PIN -> 1234")
    click.echo(f"   all passwords -> {DEMO_PASSWORD}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
