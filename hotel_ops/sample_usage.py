"""Demonstration script for the hotel operations ledger."""

from __future__ import annotations

import logging
from pprint import pprint

from . import Impact, OperationsLedger, Role, Urgency
from .scoring import is_flame_tier, stock_badge


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ledger = OperationsLedger.with_demo_data()

    # Guest complaint at the front desk
    ledger.set_role(Role.RECEPTION)
    complaint = ledger.add_ticket(
        room_number="105",
        is_occupied=True,
        asset="Electrical",
        issue_type="Not Working / Won't Turn On",
        description="Nightstand outlet sparks when a charger is plugged in.",
        urgency=Urgency.HIGH,
        impact=Impact.BLOCKING,
    )
    print(f"{complaint.id} -> {complaint.maintenance_type.value}, {complaint.priority_score} pts")

    # Maintenance reserves the last outlet in stock
    ledger.set_role(Role.MAINTENANCE)
    print(ledger.reserve_part_for_ticket(complaint.id, "P-001", 1).message)
    print(ledger.reserve_part_for_ticket("T-8003", "P-001", 1).message)

    # Take a remote from an empty room for the guest waiting in 106
    result = ledger.cannibalize_part("T-8001", "118", "Universal AC Remote Control")
    print(result.message)

    ledger.issue_reserved_part_for_ticket(complaint.id, "Installed in room 105")
    ledger.resolve_ticket(complaint.id, time_spent_minutes=30)

    # Management restocks
    ledger.set_role(Role.MANAGEMENT)
    print("\nReorder suggestions")
    for suggestion in ledger.reorder_suggestions():
        part = suggestion.part
        print(
            f" - {part.name} [{stock_badge(part)}]: on hand {part.stock_on_hand},"
            f" waiting {suggestion.waiting_qty}, buy {suggestion.suggested_qty} {part.unit}"
        )
    purchase = ledger.create_po_for_part("P-001", 10, ticket_id=complaint.id)
    ledger.receive_po(purchase.po_id)
    print(f"\nP-001 on hand after receipt: {ledger.parts.get('P-001').stock_on_hand}")

    print("\nTop tickets")
    for ticket in ledger.sorted_by_priority(include_closed=False)[:5]:
        flame = " (!)" if is_flame_tier(ticket.priority_score) else ""
        print(f" - {ticket.id} room {ticket.room_number}: {ticket.priority_score} pts{flame}")

    print("\nMovement log")
    pprint([(m.id, m.type.value, m.part_id, m.qty) for m in ledger.movements])


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()
