# Overview: Resolves the acting staff member for a request into an explicit context object.

"""
Staff Context

The acting staff member is resolved once per request and handed to every
service call as a StaffContext. Services never look at request globals, so
the same functions run unchanged from routes, the CLI and tests.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import User


@dataclass(frozen=True)
class StaffContext:
    """Who is performing an action, and under which role."""
    user_id: int | None
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


def context_for_user(user: User) -> StaffContext:
    return StaffContext(user_id=user.id, username=user.username, role=user.role)


def resolve_staff(staff_id) -> StaffContext | None:
    """
    Look up an active staff member by id.

    Returns None for unknown, inactive or malformed ids.
    """
    try:
        user_id = int(staff_id)
    except (TypeError, ValueError):
        return None

    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return context_for_user(user)
