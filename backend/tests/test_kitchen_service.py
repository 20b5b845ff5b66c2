"""
Kitchen ticket workflow tests.
"""

import pytest

from tablepos.services import kitchen_service, order_service
from tablepos.services.kitchen_service import KitchenError
from tablepos.validation import NotFoundError


@pytest.fixture
def ticket(waiter, table, menu):
    order = order_service.create_order(
        waiter, table_id=table.id, items=[{"menu_item_id": menu["burger"].id, "quantity": 2, "notes": "rare"}]
    ).order
    return kitchen_service.list_tickets(order_id=order.id)[0]


def test_full_workflow_records_chef(chef, ticket):
    taken = kitchen_service.update_ticket_status(chef, ticket.id, "in_progress")
    assert taken.chef_id == chef.user_id

    kitchen_service.update_ticket_status(chef, ticket.id, "ready")
    done = kitchen_service.update_ticket_status(chef, ticket.id, "delivered")
    assert done.status == "delivered"


def test_ticket_payload(ticket):
    data = ticket.to_dict()
    assert data["menu_item_name"] == "Burger"
    assert data["quantity"] == 2
    assert data["notes"] == "rare"
    assert data["table_name"] == "T1"


@pytest.mark.parametrize("path,target", [
    ((), "ready"),
    ((), "delivered"),
    (("in_progress", "ready"), "cancelled"),
    (("in_progress", "ready", "delivered"), "in_progress"),
])
def test_illegal_moves(chef, ticket, path, target):
    for status in path:
        kitchen_service.update_ticket_status(chef, ticket.id, status)
    with pytest.raises(KitchenError):
        kitchen_service.update_ticket_status(chef, ticket.id, target)


def test_unknown_status(chef, ticket):
    with pytest.raises(KitchenError, match="Invalid ticket status"):
        kitchen_service.update_ticket_status(chef, ticket.id, "burnt")


def test_unknown_ticket(chef, db_session):
    with pytest.raises(NotFoundError):
        kitchen_service.update_ticket_status(chef, 999, "in_progress")


def test_queue_hides_closed_tickets(chef, ticket):
    kitchen_service.update_ticket_status(chef, ticket.id, "cancelled")
    assert kitchen_service.list_tickets() == []
    assert [t.id for t in kitchen_service.list_tickets(include_closed=True)] == [ticket.id]
