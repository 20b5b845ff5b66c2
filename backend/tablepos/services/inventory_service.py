# Overview: Service-layer operations for kitchen inventory; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryItem
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError
from .concurrency import commit

INVENTORY_MUTABLE_FIELDS = {"name", "unit", "quantity", "min_stock_level", "supplier"}


def _apply_inventory_patch(item: InventoryItem, patch: dict) -> None:
    for k, v in patch.items():
        if k not in INVENTORY_MUTABLE_FIELDS:
            continue
        setattr(item, k, v)
    item.updated_at = utcnow()


def _ensure_unique_name(name: str | None, exclude_id: int | None = None) -> None:
    if name is None:
        return
    query = db.session.query(InventoryItem).filter(db.func.lower(InventoryItem.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first():
        raise ConflictError(f"Inventory item '{name}' already exists.")


def list_inventory(search: str | None = None) -> list[InventoryItem]:
    query = db.session.query(InventoryItem)
    term = (search or "").strip()
    if term:
        query = query.filter(
            db.or_(InventoryItem.name.ilike(f"%{term}%"), InventoryItem.supplier.ilike(f"%{term}%"))
        )
    return query.order_by(InventoryItem.name.asc()).all()


def list_low_stock() -> list[InventoryItem]:
    """Items at or below their minimum stock level."""
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.quantity <= InventoryItem.min_stock_level)
        .order_by(InventoryItem.name.asc())
        .all()
    )


def count_low_stock() -> int:
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.quantity <= InventoryItem.min_stock_level)
        .count()
    )


def get_inventory_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def create_inventory_item(*, patch: dict) -> InventoryItem:
    _ensure_unique_name(patch.get("name"))

    item = InventoryItem(quantity=0, min_stock_level=0)
    _apply_inventory_patch(item, patch)
    db.session.add(item)
    commit("create inventory item")
    return item


def update_inventory_item(*, item_id: int, patch: dict) -> InventoryItem:
    item = get_inventory_item(item_id)
    _ensure_unique_name(patch.get("name"), exclude_id=item.id)

    _apply_inventory_patch(item, patch)
    commit("update inventory item")
    return item


def delete_inventory_item(*, item_id: int) -> None:
    item = get_inventory_item(item_id)
    db.session.delete(item)
    commit("delete inventory item")
