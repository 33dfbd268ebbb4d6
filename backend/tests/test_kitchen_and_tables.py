"""
Kitchen queue, ticket bumping and table status changes.
"""

from datetime import timedelta

import pytest

from hotelpos.extensions import db
from hotelpos.models import DiningTable, OrderItem
from hotelpos.services import kitchen_service, order_service, table_service
from hotelpos.time_utils import utcnow
from hotelpos.validation import BusinessRuleError, NotFoundError, StateTransitionError


def _sent_order(seed, table_id=None):
    actor = seed.actor(seed.server)
    order = order_service.create_order(seed.outlet.id, actor, table_id=table_id)
    order_service.add_item(order.id, seed.sandwich.id, 2, actor)
    order_service.add_item(order.id, seed.iced_tea.id, 1, actor)
    return order_service.send_to_kitchen(order.id, actor)


class TestKitchenQueue:
    def test_queue_shows_sent_orders(self, seed):
        order = _sent_order(seed, seed.t1.id)
        order_service.create_order(seed.outlet.id, seed.actor(seed.server))  # not sent, not shown

        tickets = kitchen_service.get_kitchen_orders(seed.outlet.id)
        assert len(tickets) == 1
        ticket = tickets[0]
        assert ticket["order_id"] == order.id
        assert ticket["table_number"] == "T1"
        assert len(ticket["items"]) == 2
        assert ticket["is_overdue"] is False

        assert kitchen_service.get_kitchen_orders(seed.other_outlet.id) == []

    def test_old_ticket_is_overdue(self, seed):
        order = _sent_order(seed)
        for item in db.session.query(OrderItem).filter_by(order_id=order.id):
            item.sent_to_kitchen_at = utcnow() - timedelta(minutes=40)
        db.session.commit()

        ticket = kitchen_service.get_kitchen_orders(seed.outlet.id)[0]
        assert ticket["age_minutes"] >= 40
        assert ticket["is_overdue"] is True

    def test_mark_order_ready(self, seed):
        order = _sent_order(seed)
        order = kitchen_service.mark_order_ready(order.id, seed.actor(seed.cook))

        assert order.status == "READY"
        assert all(item.status == "READY" for item in order.items)
        assert kitchen_service.get_kitchen_orders(seed.outlet.id) == []

    def test_queue_by_station(self, seed):
        order = _sent_order(seed, seed.t1.id)

        stations = kitchen_service.get_kitchen_orders_by_station(seed.outlet.id)
        assert sorted(stations) == ["Drinks", "Mains"]
        assert [t["order_id"] for t in stations["Mains"]] == [order.id]
        assert [i["name"] for i in stations["Mains"][0]["items"]] == ["Club Sandwich"]
        assert [i["name"] for i in stations["Drinks"][0]["items"]] == ["Iced Tea"]
        assert stations["Drinks"][0]["table_number"] == "T1"

    def test_stats(self, seed):
        first = _sent_order(seed)
        second = _sent_order(seed)
        tea = next(i for i in second.items if i.menu_item_id == seed.iced_tea.id)
        order_service.update_item_status(tea.id, "PREPARING", seed.actor(seed.cook))

        for item in db.session.query(OrderItem).filter_by(order_id=first.id):
            item.sent_to_kitchen_at = utcnow() - timedelta(minutes=40)
        db.session.commit()

        stats = kitchen_service.get_kitchen_stats(seed.outlet.id)
        assert stats["total_orders"] == 2
        assert stats["overdue_orders"] == 1
        assert stats["total_items"] == 4
        assert stats["sent_items"] == 3
        assert stats["preparing_items"] == 1
        assert stats["ready_orders"] == 0
        assert stats["completed_items"] == 0
        assert stats["avg_prep_minutes"] == 0

        kitchen_service.mark_order_ready(first.id, seed.actor(seed.cook))
        stats = kitchen_service.get_kitchen_stats(seed.outlet.id)
        assert stats["total_orders"] == 1
        assert stats["ready_orders"] == 1
        assert stats["completed_items"] == 2
        assert stats["avg_prep_minutes"] >= 40

    def test_empty_stats(self, seed):
        stats = kitchen_service.get_kitchen_stats(seed.other_outlet.id)
        assert stats["total_orders"] == 0
        assert stats["avg_age_minutes"] == 0
        assert stats["avg_prep_minutes"] == 0

    def test_mark_ready_needs_kitchen_status(self, seed):
        order = order_service.create_order(seed.outlet.id, seed.actor(seed.server))
        with pytest.raises(StateTransitionError):
            kitchen_service.mark_order_ready(order.id, seed.actor(seed.cook))


class TestTables:
    def test_bus_a_table(self, seed):
        order = order_service.create_order(seed.outlet.id, seed.actor(seed.server), table_id=seed.t1.id)

        with pytest.raises(StateTransitionError):
            table_service.update_table_status(seed.t1.id, "AVAILABLE")

        # bussed early while the guests are still paying
        table_service.update_table_status(seed.t1.id, "DIRTY")
        with pytest.raises(BusinessRuleError, match="still has an active order"):
            table_service.update_table_status(seed.t1.id, "AVAILABLE")

        order_service.cancel_order(order.id, seed.actor(seed.server))
        assert db.session.get(DiningTable, seed.t1.id).status == "DIRTY"
        table = table_service.update_table_status(seed.t1.id, "AVAILABLE")
        assert table.status == "AVAILABLE"

    def test_illegal_transition(self, seed):
        with pytest.raises(StateTransitionError):
            table_service.update_table_status(seed.t2.id, "DIRTY")

    def test_reserve_then_seat(self, seed):
        table_service.update_table_status(seed.t2.id, "RESERVED")
        order_service.create_order(seed.outlet.id, seed.actor(seed.server), table_id=seed.t2.id)
        assert db.session.get(DiningTable, seed.t2.id).status == "OCCUPIED"

    def test_out_of_service(self, seed):
        assert table_service.update_table_status(seed.t2.id, "OUT_OF_SERVICE").status == "OUT_OF_SERVICE"
        assert table_service.update_table_status(seed.t2.id, "AVAILABLE").status == "AVAILABLE"

    def test_system_writes_skip_the_machine(self, seed):
        # OUT_OF_SERVICE -> OCCUPIED is not a user transition, but order creation may force it
        table_service.update_table_status(seed.t2.id, "OUT_OF_SERVICE")
        table_service.set_occupied(seed.t2.id)
        table_service.set_available(seed.t2.id)
        db.session.commit()
        assert db.session.get(DiningTable, seed.t2.id).status == "AVAILABLE"

    def test_missing_table(self, seed):
        with pytest.raises(NotFoundError, match="Table not found"):
            table_service.update_table_status(4040, "AVAILABLE")
