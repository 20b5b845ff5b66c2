from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STAFF_ROLES = ("admin", "staff", "chef", "employee")


class User(db.Model):
    """
    Staff accounts for attribution and role checks.

    Credentials live with the fronting auth gateway; this table only holds
    who the staff member is and which role they act under.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    display_name = db.Column(db.String(120), nullable=True)
    role = db.Column(db.String(16), nullable=False, default="employee")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
