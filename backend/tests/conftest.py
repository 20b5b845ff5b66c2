"""
Pytest fixtures for TablePOS backend tests.

Provides test database setup, staff fixtures, a small menu and test client.
"""

import pytest
from tablepos import create_app
from tablepos.extensions import db
from tablepos.models import DiningTable, MenuCategory, MenuItem, User
from tablepos.services.session_service import context_for_user


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'INFO',
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

        # Config flags some tests flip
        app.config['KITCHEN_NOTIFY_REMOVALS'] = False
        app.config['ORDER_INITIAL_STATUS'] = 'pending'
        app.config['SETTLEMENT_EPSILON_CENTS'] = 1

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username: str, role: str, is_active: bool = True) -> User:
    user = User(username=username, display_name=username.title(), role=role, is_active=is_active)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def waiter_user(db_session):
    return _make_user(db_session, "waiter", "staff")


@pytest.fixture(scope='function')
def chef_user(db_session):
    return _make_user(db_session, "chef", "chef")


@pytest.fixture(scope='function')
def employee_user(db_session):
    return _make_user(db_session, "employee", "employee")


@pytest.fixture(scope='function')
def inactive_user(db_session):
    return _make_user(db_session, "former", "admin", is_active=False)


@pytest.fixture(scope='function')
def admin(admin_user):
    """StaffContext for the admin account."""
    return context_for_user(admin_user)


@pytest.fixture(scope='function')
def waiter(waiter_user):
    return context_for_user(waiter_user)


@pytest.fixture(scope='function')
def chef(chef_user):
    return context_for_user(chef_user)


@pytest.fixture(scope='function')
def table(db_session):
    t = DiningTable(name="T1", capacity=4, status="available", location="Window")
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def menu(db_session):
    """Small menu keyed by short name."""
    mains = MenuCategory(name="Mains")
    db_session.add(mains)
    db_session.flush()

    items = {
        "burger": MenuItem(name="Burger", price_cents=1000, category_id=mains.id, is_available=True),
        "fries": MenuItem(name="Fries", price_cents=450, category_id=mains.id, is_available=True),
        "soda": MenuItem(name="Soda", price_cents=250, is_available=True),
        "feast": MenuItem(name="Feast Platter", price_cents=10000, category_id=mains.id, is_available=True),
        "retired": MenuItem(name="Retired Special", price_cents=1500, is_available=False),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


def staff_headers(user: User) -> dict:
    """Helper to create the staff identity header for a user."""
    return {'X-Staff-Id': str(user.id)}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return staff_headers(admin_user)


@pytest.fixture(scope='function')
def waiter_headers(waiter_user):
    return staff_headers(waiter_user)


@pytest.fixture(scope='function')
def chef_headers(chef_user):
    return staff_headers(chef_user)


@pytest.fixture(scope='function')
def employee_headers(employee_user):
    return staff_headers(employee_user)
