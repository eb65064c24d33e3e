# Overview: Flask CLI command groups for bootstrap and day-to-day inspection.

# backend/station/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "station:create_app" (PowerShell: $env:FLASK_APP="station:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create every table (development databases; use "flask db upgrade" elsewhere).
# - python -m flask system seed-demo
#   Idempotent demo data: one station, fuel type, tank, nozzle, price, CASH/CARD methods,
#   a pompiste and a manager.
#
# Shift inspection:
# - python -m flask shifts open [--station-id 1]
#   List open shifts, longest-running first.
#
# Debt inspection:
# - python -m flask debts outstanding --pompiste-id 3
#   Outstanding balance of a pompiste.

import click
from datetime import timedelta
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import FuelType, Nozzle, PaymentMethod, Price, Station, Tank, User
from .models.auth import ROLE_MANAGER, ROLE_POMPISTE
from .services import debt_service, shift_service
from .validation import format_cents
from .time_utils import elapsed_hours, utcnow


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema created")


def _get_or_create(model, defaults=None, **lookup):
    instance = db.session.query(model).filter_by(**lookup).first()
    if instance:
        return instance, False
    instance = model(**lookup, **(defaults or {}))
    db.session.add(instance)
    db.session.flush()
    return instance, True


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a minimal station so the shift lifecycle can be exercised end to end.

    Safe to run repeatedly: existing rows (matched on their codes) are reused.
    """
    click.echo("START Seeding demo station...")

    station, created = _get_or_create(Station, {"name": "Demo Station"}, code="DEMO")
    click.echo(f"{'PASS Created' if created else 'SKIP Existing'} station {station.code} (ID: {station.id})")

    fuel, _ = _get_or_create(FuelType, {"name": "Gasoil"}, code="GASOIL")
    tank, _ = _get_or_create(
        Tank,
        {"fuel_type_id": fuel.id, "capacity_liters": Decimal("30000.000")},
        station_id=station.id, code="T1",
    )
    nozzle, created = _get_or_create(
        Nozzle,
        {"fuel_type_id": fuel.id, "tank_id": tank.id, "current_index": Decimal("1000.00")},
        station_id=station.id, code="P1-A",
    )
    click.echo(f"{'PASS Created' if created else 'SKIP Existing'} nozzle {nozzle.code} (ID: {nozzle.id})")

    if not db.session.query(Price).filter_by(station_id=station.id, fuel_type_id=fuel.id).first():
        db.session.add(Price(
            station_id=station.id,
            fuel_type_id=fuel.id,
            selling_price_cents=1250,
            effective_from=utcnow() - timedelta(days=1),
        ))
        click.echo("PASS Created price 12.50 per liter")

    _get_or_create(PaymentMethod, {"name": "Cash"}, code="CASH")
    _get_or_create(PaymentMethod, {"name": "Card", "requires_reference": True}, code="CARD")

    pompiste, _ = _get_or_create(
        User,
        {"station_id": station.id, "first_name": "Demo", "last_name": "Pompiste", "role": ROLE_POMPISTE},
        badge_code="POMP-001",
    )
    manager, _ = _get_or_create(
        User,
        {"station_id": station.id, "first_name": "Demo", "last_name": "Manager", "role": ROLE_MANAGER},
        badge_code="MGR-001",
    )

    db.session.commit()
    click.echo(f"PASS Pompiste ID: {pompiste.id}, Manager ID: {manager.id}")
    click.echo("DONE Demo station ready")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('open')
@click.option('--station-id', type=int, help='Filter by station ID')
@with_appcontext
def open_shifts(station_id):
    """
    List open shifts, longest-running first.

    Example:
        flask shifts open --station-id 1
    """
    shifts = shift_service.list_open_shifts(station_id)
    if not shifts:
        click.echo("No open shifts.")
        return

    click.echo(f"{'ID':<6} {'Nozzle':<8} {'Pompiste':<24} {'Index start':>12} {'Started':<20} {'Hours':>6}")
    for shift in shifts:
        hours = elapsed_hours(shift.started_at)
        click.echo(
            f"{shift.id:<6} {shift.nozzle_id:<8} {shift.pompiste.full_name:<24} "
            f"{shift.index_start:>12} {shift.started_at:%Y-%m-%d %H:%M:%S}  {hours:>6.1f}"
        )


@click.group('debts')
def debts_group():
    """Debt ledger inspection commands."""


@debts_group.command('outstanding')
@click.option('--pompiste-id', type=int, required=True, help='Pompiste user ID')
@with_appcontext
def outstanding(pompiste_id):
    """Outstanding balance of a pompiste over unsettled debts."""
    total_cents, count = debt_service.get_total_outstanding(pompiste_id)
    click.echo(f"Pompiste {pompiste_id}: {format_cents(total_cents)} outstanding over {count} debt(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(debts_group)
