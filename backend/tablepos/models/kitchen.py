from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class KitchenTicket(db.Model):
    """
    Kitchen notice for newly added quantity of one (menu item, note) key.

    Created from the item delta when an order is placed or edited. Tickets
    are work items for the kitchen display, separate from the order's
    authoritative line set.
    """
    __tablename__ = "kitchen_tickets"
    __table_args__ = (
        db.Index("ix_kitchen_tickets_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, in_progress, ready, delivered, cancelled
    chef_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("kitchen_tickets", lazy=True, cascade="all, delete-orphan"))
    menu_item = db.relationship("MenuItem")
    chef = db.relationship("User")

    def to_dict(self) -> dict:
        table = self.order.table if self.order else None
        return {
            "id": self.id,
            "order_id": self.order_id,
            "menu_item_id": self.menu_item_id,
            "menu_item_name": self.menu_item.name if self.menu_item else None,
            "quantity": self.quantity,
            "notes": self.notes,
            "status": self.status,
            "chef_id": self.chef_id,
            "chef_username": self.chef.username if self.chef else None,
            "table_name": table.name if table else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
