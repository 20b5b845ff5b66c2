from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DiningTable(db.Model):
    """A table on the floor that orders are opened against."""
    __tablename__ = "dining_tables"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    capacity = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="available", index=True)  # available, occupied, reserved, cleaning
    location = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "capacity": self.capacity,
            "status": self.status,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
        }
