"""Tests for the reservation engine, stock adjustments and reorder suggestions."""

import math

import pytest

from hotel_ops.domain import PartMovementType, Role, TicketStatus
from hotel_ops.services import ErrorKind, OperationsLedger


def _assert_reserved_within_on_hand(ledger):
    for part in ledger.parts:
        assert 0 <= part.stock_reserved <= part.stock_on_hand, part.id


class TestReserve:
    def test_last_unit_can_be_reserved_only_once(self, ledger, make_ticket):
        first = make_ticket()
        second = make_ticket(room_number="102")
        part = ledger.parts.get("P-001")

        result = ledger.reserve_part_for_ticket(first.id, "P-001", 1)

        assert result.ok
        assert part.available == 0
        assert first.status == TicketStatus.WAITING_PART
        denied = ledger.reserve_part_for_ticket(second.id, "P-001", 1)
        assert not denied.ok
        assert denied.kind == ErrorKind.INSUFFICIENT_STOCK
        assert second.status == TicketStatus.OPEN
        assert part.stock_reserved == 1

    def test_reservation_links_ticket_and_logs_movement(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.set_role(Role.MAINTENANCE)
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 2)

        assert ticket.needs_part
        assert (ticket.part_id, ticket.part_name, ticket.part_qty) == (
            "P-002",
            "Sink Gasket Kit",
            2,
        )
        assert ticket.reserved_qty == 2
        assert ticket.history[-1].action == "Part reserved: Sink Gasket Kit (x2)"
        movement = ledger.movements.list()[0]
        assert movement.type == PartMovementType.RESERVE
        assert (movement.part_id, movement.qty, movement.ticket_id) == ("P-002", 2, ticket.id)
        assert movement.user == Role.MAINTENANCE

    @pytest.mark.parametrize("requested, held", [(2.7, 2), (0, 1), (-3, 1), (None, 1)])
    def test_quantity_is_floored_and_at_least_one(self, ledger, make_ticket, requested, held):
        ticket = make_ticket()
        assert ledger.reserve_part_for_ticket(ticket.id, "P-002", requested).ok
        assert ticket.reserved_qty == held
        assert ledger.parts.get("P-002").stock_reserved == held

    def test_non_finite_quantity_is_invalid(self, ledger, make_ticket):
        ticket = make_ticket()
        result = ledger.reserve_part_for_ticket(ticket.id, "P-002", math.inf)
        assert result.kind == ErrorKind.INVALID_INPUT

    @pytest.mark.parametrize("role", [Role.CLEANING, Role.RECEPTION, Role.SUPERVISOR])
    def test_role_without_reserve_capability_is_denied(self, ledger, make_ticket, role):
        ticket = make_ticket()
        ledger.set_role(role)
        result = ledger.reserve_part_for_ticket(ticket.id, "P-002", 1)
        assert result.kind == ErrorKind.PERMISSION_DENIED
        assert ledger.parts.get("P-002").stock_reserved == 0
        assert len(ledger.movements) == 0

    def test_unknown_ticket_or_part(self, ledger, make_ticket):
        ticket = make_ticket()
        assert ledger.reserve_part_for_ticket("T-0", "P-002", 1).kind == ErrorKind.NOT_FOUND
        assert ledger.reserve_part_for_ticket(ticket.id, "P-404", 1).kind == ErrorKind.NOT_FOUND

    def test_rereserving_releases_the_previous_hold(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 3)
        ledger.reserve_part_for_ticket(ticket.id, "P-001", 1)

        assert ledger.parts.get("P-002").stock_reserved == 0
        assert ledger.parts.get("P-001").stock_reserved == 1
        assert ticket.part_id == "P-001"
        assert ticket.reserved_qty == 1
        types = [movement.type for movement in ledger.movements_for_ticket(ticket.id)]
        assert types == [
            PartMovementType.RESERVE,
            PartMovementType.RELEASE,
            PartMovementType.RESERVE,
        ]


class TestReleaseAndIssue:
    def test_release_restores_reserved_stock(self, ledger, make_ticket):
        ticket = make_ticket()
        part = ledger.parts.get("P-002")
        before = part.stock_reserved

        ledger.reserve_part_for_ticket(ticket.id, "P-002", 3)
        result = ledger.release_reservation_for_ticket(ticket.id, "Guest checked out")

        assert result.ok
        assert part.stock_reserved == before
        assert part.stock_on_hand == 5
        assert not ticket.needs_part
        assert ticket.reserved_qty == 0
        release = ledger.movements.list()[0]
        assert (release.type, release.qty, release.note) == (
            PartMovementType.RELEASE,
            3,
            "Guest checked out",
        )

    def test_release_twice_does_not_double_count(self, ledger, make_ticket):
        holder = make_ticket()
        other = make_ticket(room_number="102")
        ledger.reserve_part_for_ticket(holder.id, "P-002", 2)
        ledger.reserve_part_for_ticket(other.id, "P-002", 1)
        ledger.release_reservation_for_ticket(holder.id)

        result = ledger.release_reservation_for_ticket(holder.id)

        assert result.kind == ErrorKind.INVALID_INPUT
        assert ledger.parts.get("P-002").stock_reserved == 1

    def test_release_without_reservation_fails(self, ledger, make_ticket):
        ticket = make_ticket()
        assert ledger.release_reservation_for_ticket(ticket.id).kind == ErrorKind.INVALID_INPUT

    def test_issue_consumes_reserved_stock(self, ledger, make_ticket):
        ticket = make_ticket()
        part = ledger.parts.get("P-002")
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 2)

        result = ledger.issue_reserved_part_for_ticket(ticket.id, "Installed")

        assert result.ok
        assert (part.stock_on_hand, part.stock_reserved) == (3, 0)
        assert not ticket.needs_part
        assert ticket.history[-1].action == "Part used: Sink Gasket Kit (x2)"
        issue = ledger.movements.list()[0]
        assert (issue.type, issue.qty, issue.ticket_id) == (
            PartMovementType.ISSUE,
            2,
            ticket.id,
        )
        _assert_reserved_within_on_hand(ledger)

    def test_issue_twice_fails_the_second_time(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 1)
        ledger.issue_reserved_part_for_ticket(ticket.id)
        result = ledger.issue_reserved_part_for_ticket(ticket.id)
        assert result.kind == ErrorKind.INVALID_INPUT
        assert ledger.parts.get("P-002").stock_on_hand == 4

    def test_release_and_issue_are_permission_gated(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 1)
        ledger.set_role(Role.CLEANING)
        assert ledger.release_reservation_for_ticket(ticket.id).kind == (
            ErrorKind.PERMISSION_DENIED
        )
        assert ledger.issue_reserved_part_for_ticket(ticket.id).kind == (
            ErrorKind.PERMISSION_DENIED
        )
        assert ticket.reserved_qty == 1

    def test_reserved_never_exceeds_on_hand_through_reserve_and_issue(self):
        ledger = OperationsLedger.with_demo_data()
        ledger.set_role(Role.MAINTENANCE)
        _assert_reserved_within_on_hand(ledger)
        ledger.issue_reserved_part_for_ticket("T-8001")
        ledger.reserve_part_for_ticket("T-8003", "P-099", 4)
        ledger.reserve_part_for_ticket("T-2001", "P-099", 6)
        ledger.reserve_part_for_ticket("T-2002", "P-099", 1)
        ledger.issue_reserved_part_for_ticket("T-8003")
        ledger.release_reservation_for_ticket("T-8002")
        ledger.issue_reserved_part_for_ticket("T-2001")
        _assert_reserved_within_on_hand(ledger)


class TestReservationLink:
    def test_held_part_cannot_be_swapped_by_update(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 2)

        with pytest.raises(ValueError):
            ledger.update_ticket(ticket.id, {"part_id": "P-001"}, "Swap part")
        with pytest.raises(ValueError):
            ledger.update_ticket(ticket.id, {"needs_part": False}, "No part needed")

        assert (ticket.part_id, ticket.needs_part, ticket.reserved_qty) == ("P-002", True, 2)
        assert ledger.release_reservation_for_ticket(ticket.id).ok
        assert ledger.parts.get("P-002").stock_reserved == 0
        assert ledger.parts.get("P-001").stock_reserved == 0

    def test_reserved_quantity_cannot_be_written(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 2)
        with pytest.raises(ValueError):
            ledger.update_ticket(ticket.id, {"reserved_qty": 0}, "Drop hold")
        assert ticket.reserved_qty == 2
        assert ledger.parts.get("P-002").stock_reserved == 2

    def test_unchanged_part_link_is_accepted_during_hold(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 1)
        ledger.update_ticket(ticket.id, {"part_id": "P-002", "description": "Gasket"}, "Edit")
        assert ticket.description == "Gasket"
        assert ticket.reserved_qty == 1

    def test_part_request_is_editable_without_a_hold(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.update_ticket(ticket.id, {"needs_part": True, "part_id": "P-001"}, "Request")
        assert ticket.part_id == "P-001"
        ledger.update_ticket(ticket.id, {"part_id": "P-002"}, "Change request")
        assert ticket.part_id == "P-002"
        assert ledger.parts.get("P-002").stock_reserved == 0


class TestAdjustStock:
    def test_large_negative_delta_clamps_to_zero(self, ledger):
        ledger.parts.get("P-002").stock_on_hand = 5
        result = ledger.adjust_stock("P-002", -100, "Cycle count")
        assert result.ok
        assert ledger.parts.get("P-002").stock_on_hand == 0
        movement = ledger.movements.list()[0]
        assert (movement.type, movement.qty, movement.note) == (
            PartMovementType.ADJUST,
            100,
            "Cycle count",
        )

    def test_positive_delta_is_truncated(self, ledger):
        ledger.adjust_stock("P-002", 2.9)
        assert ledger.parts.get("P-002").stock_on_hand == 7

    @pytest.mark.parametrize("delta", [0, 0.4, -0.9, math.nan])
    def test_zero_delta_is_invalid(self, ledger, delta):
        result = ledger.adjust_stock("P-002", delta)
        assert result.kind == ErrorKind.INVALID_INPUT
        assert len(ledger.movements) == 0

    def test_only_management_adjusts(self, ledger):
        ledger.set_role(Role.MAINTENANCE)
        assert ledger.adjust_stock("P-002", 1).kind == ErrorKind.PERMISSION_DENIED

    def test_unknown_part(self, ledger):
        assert ledger.adjust_stock("P-404", 1).kind == ErrorKind.NOT_FOUND

    def test_reserved_stock_is_left_alone(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 4)
        ledger.adjust_stock("P-002", -3)
        part = ledger.parts.get("P-002")
        assert (part.stock_on_hand, part.stock_reserved) == (2, 4)
        assert part.available == 0


class TestReorderSuggestions:
    def test_low_stock_part_is_suggested(self, ledger):
        suggestions = {s.part.id: s for s in ledger.reorder_suggestions()}
        assert set(suggestions) == {"P-001"}
        assert suggestions["P-001"].suggested_qty == 19
        assert suggestions["P-001"].waiting_qty == 0

    def test_awaited_part_is_suggested_even_when_stocked(self, ledger, make_ticket):
        ticket = make_ticket(
            status=TicketStatus.WAITING_PART, needs_part=True, part_id="P-002", part_qty=7
        )
        suggestions = {s.part.id: s for s in ledger.reorder_suggestions()}
        assert suggestions["P-002"].waiting_qty == 7
        assert suggestions["P-002"].suggested_qty == 7
        assert suggestions["P-002"].tickets == [ticket]

    def test_closed_tickets_are_not_waiting(self, ledger, make_ticket):
        make_ticket(status=TicketStatus.RESOLVED, needs_part=True, part_id="P-002", part_qty=7)
        assert "P-002" not in {s.part.id for s in ledger.reorder_suggestions()}

    def test_search_matches_name_sku_and_category(self, ledger):
        assert [p.id for p in ledger.search_parts("gasket")] == ["P-002"]
        assert [p.id for p in ledger.search_parts("ele-out")] == ["P-001"]
        assert [p.id for p in ledger.search_parts("plumbing")] == ["P-002"]


class TestMovementLedger:
    def test_movements_are_filtered_by_part(self, ledger, make_ticket):
        ticket = make_ticket()
        ledger.reserve_part_for_ticket(ticket.id, "P-002", 1)
        ledger.adjust_stock("P-001", 4)
        assert [m.type for m in ledger.movements_for_part("P-001")] == [PartMovementType.ADJUST]
        assert [m.type for m in ledger.movements_for_part("P-002")] == [
            PartMovementType.RESERVE
        ]

    def test_movement_ids_are_unique_and_newest_first(self, ledger):
        ledger.adjust_stock("P-001", 1)
        ledger.adjust_stock("P-001", 1)
        assert ledger.movements.ids() == ["M-2", "M-1"]
