# backend/tablepos/services/catalog_service.py
"""
Floor & Menu Catalog Service

Tables, menu categories and menu items. Routes validate payloads with the
policy layer in validation.py; this module applies validated patches and
enforces uniqueness and referential rules.
"""
from __future__ import annotations

from ..extensions import db
from ..models import DiningTable, KitchenTicket, MenuCategory, MenuItem, Order, OrderLine
from ..validation import ConflictError, NotFoundError
from .concurrency import commit

TABLE_MUTABLE_FIELDS = {"name", "capacity", "status", "location"}
MENU_ITEM_MUTABLE_FIELDS = {"name", "description", "price_cents", "category_id", "image_url", "is_available"}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


# =============================================================================
# TABLES
# =============================================================================

def list_tables(search: str | None = None) -> list[DiningTable]:
    query = db.session.query(DiningTable).order_by(DiningTable.name.asc(), DiningTable.id.asc())
    tables = query.all()
    term = (search or "").strip().lower()
    if not term:
        return tables
    return [
        t for t in tables
        if term in t.name.lower()
        or term in (t.location or "").lower()
        or term in t.status.lower()
    ]


def get_table(table_id: int) -> DiningTable:
    table = db.session.get(DiningTable, table_id)
    if not table:
        raise NotFoundError(f"Table {table_id} not found")
    return table


def _ensure_unique_table_name(name: str | None, exclude_id: int | None = None) -> None:
    if name is None:
        return
    query = db.session.query(DiningTable).filter(db.func.lower(DiningTable.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(DiningTable.id != exclude_id)
    if query.first():
        raise ConflictError(f"A table named '{name}' already exists.")


def create_table(*, patch: dict) -> DiningTable:
    _ensure_unique_table_name(patch.get("name"))

    table = DiningTable(status="available")
    _apply_patch(table, patch, TABLE_MUTABLE_FIELDS)
    db.session.add(table)
    commit("create table")
    return table


def update_table(*, table_id: int, patch: dict) -> DiningTable:
    table = get_table(table_id)
    _ensure_unique_table_name(patch.get("name"), exclude_id=table.id)

    _apply_patch(table, patch, TABLE_MUTABLE_FIELDS)
    commit("update table")
    return table


def delete_table(*, table_id: int) -> None:
    table = get_table(table_id)
    has_orders = db.session.query(Order.id).filter(Order.table_id == table.id).first()
    if has_orders:
        raise ConflictError("Table has orders on record and cannot be deleted.")

    db.session.delete(table)
    commit("delete table")


# =============================================================================
# MENU CATEGORIES
# =============================================================================

def list_categories() -> list[MenuCategory]:
    return db.session.query(MenuCategory).order_by(MenuCategory.name.asc()).all()


def create_category(*, name: str) -> MenuCategory:
    existing = db.session.query(MenuCategory).filter(db.func.lower(MenuCategory.name) == name.lower()).first()
    if existing:
        raise ConflictError(f"Category '{name}' already exists.")

    category = MenuCategory(name=name)
    db.session.add(category)
    commit("create category")
    return category


def delete_category(*, category_id: int) -> None:
    category = db.session.get(MenuCategory, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")

    # Items keep existing, just uncategorized
    db.session.query(MenuItem).filter(MenuItem.category_id == category.id).update(
        {MenuItem.category_id: None}, synchronize_session=False
    )
    db.session.delete(category)
    commit("delete category")


# =============================================================================
# MENU ITEMS
# =============================================================================

def list_menu_items(*, available_only: bool = False, search: str | None = None) -> list[MenuItem]:
    query = db.session.query(MenuItem)
    if available_only:
        query = query.filter(MenuItem.is_available.is_(True))
    term = (search or "").strip()
    if term:
        query = query.filter(MenuItem.name.ilike(f"%{term}%"))
    return query.order_by(MenuItem.name.asc(), MenuItem.id.asc()).all()


def get_menu_item(item_id: int) -> MenuItem:
    item = db.session.get(MenuItem, item_id)
    if not item:
        raise NotFoundError(f"Menu item {item_id} not found")
    return item


def _ensure_category(category_id: int | None) -> None:
    if category_id is not None and not db.session.get(MenuCategory, category_id):
        raise NotFoundError(f"Category {category_id} not found")


def create_menu_item(*, patch: dict) -> MenuItem:
    _ensure_category(patch.get("category_id"))

    item = MenuItem(is_available=True)
    _apply_patch(item, patch, MENU_ITEM_MUTABLE_FIELDS)
    db.session.add(item)
    commit("create menu item")
    return item


def update_menu_item(*, item_id: int, patch: dict) -> MenuItem:
    """
    Update a menu item. Price changes only affect orders placed afterwards;
    existing lines keep their captured price.
    """
    item = get_menu_item(item_id)
    if "category_id" in patch:
        _ensure_category(patch["category_id"])

    _apply_patch(item, patch, MENU_ITEM_MUTABLE_FIELDS)
    commit("update menu item")
    return item


def delete_menu_item(*, item_id: int) -> None:
    item = get_menu_item(item_id)

    referenced = (
        db.session.query(OrderLine.id).filter(OrderLine.menu_item_id == item.id).first()
        or db.session.query(KitchenTicket.id).filter(KitchenTicket.menu_item_id == item.id).first()
    )
    if referenced:
        raise ConflictError("Menu item appears on orders; mark it unavailable instead.")

    db.session.delete(item)
    commit("delete menu item")
