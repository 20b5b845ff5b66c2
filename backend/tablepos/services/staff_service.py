# Overview: Service-layer operations for staff accounts; creation, role changes and deactivation.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import STAFF_ROLES, User
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_text
from .concurrency import commit

STAFF_MUTABLE_FIELDS = {"username", "display_name", "role", "is_active"}


def _normalize_role(role) -> str:
    normalized = coerce_text(role, "role").lower()
    if normalized not in STAFF_ROLES:
        raise ValidationError(f"role must be one of {', '.join(STAFF_ROLES)}")
    return normalized


def _ensure_unique_username(username: str | None, exclude_id: int | None = None) -> None:
    if username is None:
        return
    query = db.session.query(User).filter(db.func.lower(User.username) == username.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ConflictError(f"Username '{username}' already exists.")


def list_staff(*, include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username.asc()).all()


def get_staff(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"Staff member {user_id} not found")
    return user


def create_staff(*, patch: dict) -> User:
    """
    Create a staff account.

    Raises:
        ValidationError: Unknown role
        ConflictError: Username already taken (case-insensitive)
    """
    role = _normalize_role(patch.get("role", "employee"))
    _ensure_unique_username(patch.get("username"))

    user = User(
        username=patch["username"],
        display_name=patch.get("display_name"),
        role=role,
        is_active=patch.get("is_active", True),
    )
    db.session.add(user)
    commit("create staff")

    current_app.logger.info("Staff member %s created with role %s", user.username, user.role)
    return user


def update_staff(*, user_id: int, patch: dict) -> User:
    """Rename, re-role or (de)activate a staff account. Staff rows are never deleted."""
    user = get_staff(user_id)
    if "role" in patch:
        patch["role"] = _normalize_role(patch["role"])
    _ensure_unique_username(patch.get("username"), exclude_id=user.id)

    for k, v in patch.items():
        if k in STAFF_MUTABLE_FIELDS:
            setattr(user, k, v)
    commit("update staff")
    return user
