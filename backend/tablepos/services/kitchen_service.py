# Overview: Service-layer operations for the kitchen display; ticket creation from item deltas and ticket lifecycle.

"""
Kitchen Ticket Service

Tickets are created from the positive item delta whenever an order is
placed or edited, so the kitchen only sees quantity it has not been told
about yet.

STATE MACHINE:
    pending -> in_progress -> ready -> delivered
    pending | in_progress -> cancelled
"""

from __future__ import annotations

from typing import Mapping

from flask import current_app

from ..extensions import db
from ..models import KitchenTicket, Order
from ..reconciliation import SnapshotKey
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, coerce_text
from .concurrency import backend_call, commit, fetch_current
from .session_service import StaffContext


TICKET_PENDING = "pending"
TICKET_IN_PROGRESS = "in_progress"
TICKET_READY = "ready"
TICKET_DELIVERED = "delivered"
TICKET_CANCELLED = "cancelled"

TICKET_TRANSITIONS = {
    TICKET_PENDING: {TICKET_IN_PROGRESS, TICKET_CANCELLED},
    TICKET_IN_PROGRESS: {TICKET_READY, TICKET_CANCELLED},
    TICKET_READY: {TICKET_DELIVERED},
    TICKET_DELIVERED: set(),
    TICKET_CANCELLED: set(),
}
OPEN_TICKET_STATUSES = (TICKET_PENDING, TICKET_IN_PROGRESS, TICKET_READY)


class KitchenError(ValidationError):
    """Raised for invalid kitchen ticket operations."""
    pass


def create_tickets_for_delta(order: Order, added: Mapping[SnapshotKey, int]) -> list[KitchenTicket]:
    """
    Stage one pending ticket per newly added (menu item, note) key.

    Does not commit; tickets ride along with the order write that produced
    the delta.
    """
    now = utcnow()
    tickets = []
    for (menu_item_id, note), quantity in added.items():
        ticket = KitchenTicket(
            order_id=order.id,
            menu_item_id=menu_item_id,
            quantity=quantity,
            notes=note or None,
            status=TICKET_PENDING,
            created_at=now,
        )
        db.session.add(ticket)
        tickets.append(ticket)
    return tickets


def cancel_open_tickets(order_id: int) -> int:
    """Cancel tickets the kitchen has not finished yet. Does not commit."""
    now = utcnow()
    tickets = (
        db.session.query(KitchenTicket)
        .filter(
            KitchenTicket.order_id == order_id,
            KitchenTicket.status.in_((TICKET_PENDING, TICKET_IN_PROGRESS)),
        )
        .all()
    )
    for ticket in tickets:
        ticket.status = TICKET_CANCELLED
        ticket.updated_at = now
    return len(tickets)


def list_tickets(*, include_closed: bool = False, order_id: int | None = None) -> list[KitchenTicket]:
    """Tickets oldest first, the order the kitchen works them in."""
    query = db.session.query(KitchenTicket)
    if not include_closed:
        query = query.filter(KitchenTicket.status.in_(OPEN_TICKET_STATUSES))
    if order_id is not None:
        query = query.filter(KitchenTicket.order_id == order_id)
    return query.order_by(KitchenTicket.created_at.asc(), KitchenTicket.id.asc()).all()


def update_ticket_status(actor: StaffContext, ticket_id: int, new_status: str) -> KitchenTicket:
    """
    Move a ticket along the kitchen workflow.

    Taking a ticket (in_progress) records the acting staff member as chef
    unless one is already assigned.

    Raises:
        KitchenError: Unknown status or illegal transition
        NotFoundError: Ticket does not exist
    """
    target = coerce_text(new_status, "status", KitchenError).lower()
    if target not in TICKET_TRANSITIONS:
        raise KitchenError(
            f"Invalid ticket status '{new_status}'. Must be one of: {', '.join(sorted(TICKET_TRANSITIONS))}"
        )

    with backend_call("update kitchen ticket"):
        ticket = fetch_current(db.session.query(KitchenTicket).filter_by(id=ticket_id)).first()
    if not ticket:
        raise NotFoundError(f"Kitchen ticket {ticket_id} not found")

    if target not in TICKET_TRANSITIONS[ticket.status]:
        raise KitchenError(f"Cannot move ticket from {ticket.status} to {target}")

    if target == TICKET_IN_PROGRESS and ticket.chef_id is None:
        ticket.chef_id = actor.user_id
    ticket.status = target
    ticket.updated_at = utcnow()
    commit("update kitchen ticket")

    current_app.logger.info(
        "Kitchen ticket %s for order %s -> %s by %s", ticket.id, ticket.order_id, target, actor.username
    )
    return ticket
