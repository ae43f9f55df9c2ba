"""Pure derivation functions: priority, routing, stock signals and permissions."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from .domain import (
    Impact,
    InventoryPart,
    MaintenanceType,
    Permissions,
    ReadingLimits,
    ReadingStatus,
    Role,
    Ticket,
    TicketStatus,
    Urgency,
)

FLAME_THRESHOLD = 80

URGENCY_WEIGHTS: Mapping[Urgency, int] = {
    Urgency.LOW: 10,
    Urgency.MEDIUM: 25,
    Urgency.HIGH: 40,
}

IMPACT_WEIGHTS: Mapping[Impact, int] = {
    Impact.NONE: 0,
    Impact.ANNOYING: 15,
    Impact.BLOCKING: 30,
}

OCCUPIED_BONUS = 20

# Closed statuses have no bonus; their base score is halved instead.
STATUS_BONUS: Mapping[TicketStatus, int] = {
    TicketStatus.OPEN: 10,
    TicketStatus.WAITING_PART: 8,
    TicketStatus.IN_PROGRESS: 5,
    TicketStatus.VENDOR: 3,
}

ASSET_MAINTENANCE_TYPES: Mapping[str, MaintenanceType] = {
    "air conditioning": MaintenanceType.HVAC_TECHNICIAN,
    "hvac": MaintenanceType.HVAC_TECHNICIAN,
    "plumbing": MaintenanceType.PLUMBER,
    "bathroom fixtures": MaintenanceType.PLUMBER,
    "electrical": MaintenanceType.ELECTRICIAN,
    "appliances": MaintenanceType.ELECTRICIAN,
    "furniture": MaintenanceType.CARPENTER,
    "tv/wifi": MaintenanceType.TV_NETWORK_TECHNICIAN,
    "locksmith": MaintenanceType.LOCKSMITH,
}


def priority_score(
    urgency: Urgency, impact: Impact, is_occupied: bool, status: TicketStatus
) -> int:
    """Rank how urgently a ticket needs attention, in the range 0..100."""

    base = URGENCY_WEIGHTS[urgency] + IMPACT_WEIGHTS[impact]
    if is_occupied:
        base += OCCUPIED_BONUS
    if status.is_closed:
        return base // 2
    return base + STATUS_BONUS[status]


def calculate_priority(ticket: Ticket) -> int:
    return priority_score(ticket.urgency, ticket.impact, ticket.is_occupied, ticket.status)


def is_flame_tier(score: int, threshold: int = FLAME_THRESHOLD) -> bool:
    return score > threshold


def maintenance_type_for(asset: str) -> MaintenanceType:
    """Route an asset category to the specialty that handles it."""

    return ASSET_MAINTENANCE_TYPES.get(asset.strip().lower(), MaintenanceType.GENERAL)


def permissions_for(role: Role) -> Permissions:
    return Permissions(
        can_view_inventory=role
        in (Role.MANAGEMENT, Role.MAINTENANCE, Role.SUPERVISOR),
        can_reserve=role in (Role.MANAGEMENT, Role.MAINTENANCE),
        can_create_po=role == Role.MANAGEMENT,
        can_adjust_stock=role == Role.MANAGEMENT,
    )


# ----------------------------------------------------------------------
# Stock signals
# ----------------------------------------------------------------------
def stock_badge(part: InventoryPart) -> str:
    if part.stock_on_hand <= 0:
        return "OUT"
    if part.stock_on_hand <= part.min_stock:
        return "LOW"
    return "OK"


def should_reorder(part: InventoryPart) -> bool:
    return part.stock_on_hand <= part.min_stock


def reorder_target(part: InventoryPart, target_factor: float = 2.0) -> int:
    return max(part.min_stock, int(part.min_stock * target_factor))


def suggested_reorder_qty(
    part: InventoryPart,
    awaited_qty: int = 0,
    *,
    target_factor: float = 2.0,
) -> int:
    """Quantity to buy: the gap to the target level or what tickets await, whichever is larger."""

    gap = 0
    if should_reorder(part):
        gap = max(0, reorder_target(part, target_factor) - max(part.stock_on_hand, 0))
    return max(gap, awaited_qty, 0)


def awaited_quantity(part_id: str, tickets: Iterable[Ticket]) -> int:
    return sum(ticket.part_qty or 1 for ticket in tickets if ticket.part_id == part_id)


def is_awaiting_part(ticket: Ticket) -> bool:
    """Open tickets blocked on a part, or asking for one not yet linked."""

    if ticket.status.is_closed:
        return False
    return ticket.status == TicketStatus.WAITING_PART or (
        ticket.needs_part and not ticket.part_id
    )


# ----------------------------------------------------------------------
# Logbook readings
# ----------------------------------------------------------------------
def reading_status(value: float, limits: ReadingLimits) -> ReadingStatus:
    if value < limits.crit_min or value > limits.crit_max:
        return ReadingStatus.CRITICAL
    if value < limits.min or value > limits.max:
        return ReadingStatus.WARNING
    return ReadingStatus.OK


def evaluate_readings(
    readings: Mapping[str, float], fields: Sequence[ReadingLimits]
) -> ReadingStatus:
    """Worst status across all configured fields; missing readings count as 0."""

    status = ReadingStatus.OK
    for limits in fields:
        field_status = reading_status(readings.get(limits.key, 0.0), limits)
        if field_status == ReadingStatus.CRITICAL:
            return ReadingStatus.CRITICAL
        if field_status == ReadingStatus.WARNING:
            status = ReadingStatus.WARNING
    return status


__all__ = [
    "FLAME_THRESHOLD",
    "priority_score",
    "calculate_priority",
    "is_flame_tier",
    "maintenance_type_for",
    "permissions_for",
    "stock_badge",
    "should_reorder",
    "reorder_target",
    "suggested_reorder_qty",
    "awaited_quantity",
    "is_awaiting_part",
    "reading_status",
    "evaluate_readings",
]
