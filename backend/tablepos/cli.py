# Overview: Flask CLI command groups for bootstrap, staff management and reconciliation.

# backend/tablepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use "flask db upgrade" for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: admin/chef/staff accounts, tables, categories and menu items.
#
# Staff:
# - python -m flask staff list
#   List staff accounts with roles and active status.
# - python -m flask staff create --username maria --role chef
#   Create a staff account.
#
# Orders:
# - python -m flask orders settle
#   Re-run settlement over open orders that have payments (after a skipped settlement).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import DiningTable, MenuCategory, MenuItem, User, STAFF_ROLES
from .services import order_service, staff_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


DEMO_STAFF = [
    ("admin", "Administrator", "admin"),
    ("chef", "Head Chef", "chef"),
    ("waiter", "Floor Staff", "staff"),
]

DEMO_TABLES = [
    ("T1", 2, "Window"),
    ("T2", 4, "Main Floor"),
    ("T3", 4, "Main Floor"),
    ("T4", 6, "Terrace"),
]

DEMO_MENU = {
    "Starters": [("Bruschetta", 650), ("Soup of the Day", 550)],
    "Mains": [("Margherita Pizza", 1250), ("Grilled Salmon", 1890), ("Mushroom Risotto", 1450)],
    "Drinks": [("Lemonade", 350), ("Espresso", 250)],
}


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo staff, tables and menu. Safe to run repeatedly."""
    click.echo("START Seeding demo data...")

    for username, display_name, role in DEMO_STAFF:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"SKIP Staff {username} exists")
            continue
        staff_service.create_staff(patch={"username": username, "display_name": display_name, "role": role})
        click.echo(f"PASS Created staff {username} ({role})")

    for name, capacity, location in DEMO_TABLES:
        if db.session.query(DiningTable).filter_by(name=name).first():
            continue
        db.session.add(DiningTable(name=name, capacity=capacity, location=location, status="available"))
    db.session.commit()
    click.echo(f"PASS Tables: {db.session.query(DiningTable).count()}")

    for category_name, items in DEMO_MENU.items():
        category = db.session.query(MenuCategory).filter_by(name=category_name).first()
        if not category:
            category = MenuCategory(name=category_name)
            db.session.add(category)
            db.session.flush()
        for item_name, price_cents in items:
            if db.session.query(MenuItem).filter_by(name=item_name).first():
                continue
            db.session.add(MenuItem(
                name=item_name,
                price_cents=price_cents,
                category_id=category.id,
                is_available=True,
            ))
    db.session.commit()
    click.echo(f"PASS Menu items: {db.session.query(MenuItem).count()}")


@click.group('staff')
def staff_group():
    """Staff account commands."""


@staff_group.command('list')
@with_appcontext
def list_staff():
    """List staff accounts."""
    users = staff_service.list_staff()
    if not users:
        click.echo("No staff accounts found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<10} {status}")


@staff_group.command('create')
@click.option('--username', prompt=True, help='Login name')
@click.option('--display-name', default=None, help='Name shown on screens')
@click.option('--role', type=click.Choice(STAFF_ROLES), default='employee', show_default=True)
@with_appcontext
def create_staff(username, display_name, role):
    """Create a staff account."""
    try:
        user = staff_service.create_staff(
            patch={"username": username.strip(), "display_name": display_name, "role": role}
        )
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created staff {user.username} (ID: {user.id}, role: {user.role})")


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('settle')
@with_appcontext
def settle_orders():
    """Re-run settlement for open orders with payments on record."""
    settled = order_service.settle_open_orders()
    if not settled:
        click.echo("PASS No orders needed settling.")
        return
    click.echo(f"PASS Settled {len(settled)} order(s): {', '.join(str(i) for i in settled)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(orders_group)
