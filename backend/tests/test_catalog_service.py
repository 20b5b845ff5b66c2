"""
Tables, menu, inventory, staff and dashboard service tests.
"""

from datetime import timedelta

import pytest

from tablepos.extensions import db
from tablepos.models import MenuItem, Payment
from tablepos.services import (
    catalog_service,
    dashboard_service,
    inventory_service,
    order_service,
    payment_service,
    staff_service,
)
from tablepos.time_utils import utcnow
from tablepos.validation import ConflictError, NotFoundError, ValidationError


class TestTables:

    def test_duplicate_name_is_case_insensitive(self, table):
        with pytest.raises(ConflictError):
            catalog_service.create_table(patch={"name": "t1", "capacity": 2})

    def test_search(self, table):
        catalog_service.create_table(patch={"name": "Patio 2", "capacity": 2, "location": "Terrace"})
        assert [t.name for t in catalog_service.list_tables("terrace")] == ["Patio 2"]
        assert [t.name for t in catalog_service.list_tables("available")] == ["Patio 2", "T1"]

    def test_table_with_orders_cannot_be_deleted(self, waiter, table, menu):
        order_service.create_order(waiter, table_id=table.id, items=[{"menu_item_id": menu["soda"].id}])
        with pytest.raises(ConflictError):
            catalog_service.delete_table(table_id=table.id)

    def test_delete_unknown_table(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.delete_table(table_id=42)


class TestMenu:

    def test_referenced_item_cannot_be_deleted(self, waiter, table, menu):
        order_service.create_order(waiter, table_id=table.id, items=[{"menu_item_id": menu["soda"].id}])
        with pytest.raises(ConflictError, match="unavailable"):
            catalog_service.delete_menu_item(item_id=menu["soda"].id)

    def test_unreferenced_item_can_be_deleted(self, menu):
        catalog_service.delete_menu_item(item_id=menu["fries"].id)
        assert db.session.get(MenuItem, menu["fries"].id) is None

    def test_deleting_category_uncategorizes_items(self, menu):
        category_id = menu["burger"].category_id
        catalog_service.delete_category(category_id=category_id)
        assert db.session.get(MenuItem, menu["burger"].id).category_id is None

    def test_available_only(self, menu):
        names = [i.name for i in catalog_service.list_menu_items(available_only=True)]
        assert "Retired Special" not in names
        assert "Burger" in names

    def test_unknown_category(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.create_menu_item(patch={"name": "Pie", "price_cents": 500, "category_id": 77})


class TestInventory:

    def test_low_stock_includes_boundary(self, db_session):
        inventory_service.create_inventory_item(patch={"name": "Flour", "quantity": 5, "min_stock_level": 5})
        inventory_service.create_inventory_item(patch={"name": "Salt", "quantity": 10, "min_stock_level": 2})
        inventory_service.create_inventory_item(patch={"name": "Basil", "quantity": 0, "min_stock_level": 1})

        assert [i.name for i in inventory_service.list_low_stock()] == ["Basil", "Flour"]
        assert inventory_service.count_low_stock() == 2

    def test_duplicate_name(self, db_session):
        inventory_service.create_inventory_item(patch={"name": "Flour"})
        with pytest.raises(ConflictError):
            inventory_service.create_inventory_item(patch={"name": "FLOUR"})


class TestStaff:

    def test_create_and_rerole(self, db_session):
        user = staff_service.create_staff(patch={"username": "maria", "role": "Chef"})
        assert user.role == "chef"

        updated = staff_service.update_staff(user_id=user.id, patch={"role": "admin", "is_active": False})
        assert updated.role == "admin"
        assert updated.is_active is False

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError):
            staff_service.create_staff(patch={"username": "maria", "role": "owner"})

    def test_duplicate_username(self, admin_user):
        with pytest.raises(ConflictError):
            staff_service.create_staff(patch={"username": "ADMIN"})


class TestDashboard:

    def test_stats(self, admin, waiter, table, menu):
        table.status = "occupied"
        db.session.commit()

        paid = order_service.create_order(waiter, table_id=table.id, items=[{"menu_item_id": menu["burger"].id}]).order
        order_service.create_order(waiter, table_id=table.id, items=[{"menu_item_id": menu["soda"].id}])
        payment_service.record_payment(admin, order_id=paid.id, amount_cents=1000, method="card")

        # Yesterday's payment stays out of today's sales
        db.session.add(Payment(
            order_id=paid.id, amount_cents=999, method="cash", change_cents=0,
            created_at=utcnow() - timedelta(days=1),
        ))
        db.session.commit()

        inventory_service.create_inventory_item(patch={"name": "Flour", "quantity": 0, "min_stock_level": 1})

        stats = dashboard_service.dashboard_stats()
        assert stats["pending_orders"] == 1
        assert stats["occupied_tables"] == 1
        assert stats["sales_cents"] == 1000
        assert stats["low_stock_count"] == 1
        assert len(stats["recent_orders"]) == 2
