"""Bundled demo dataset used on first start and whenever stored state is unusable."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .domain import (
    AuditEvent,
    Impact,
    InventoryPart,
    LogbookType,
    PartCategory,
    POStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    ReadingLimits,
    Role,
    Room,
    Ticket,
    TicketOrigin,
    TicketStatus,
    Urgency,
)
from .scoring import maintenance_type_for

ROOMS: Tuple[Room, ...] = tuple(
    [
        Room(
            number=str(101 + i),
            floor=1,
            type="Suite" if i % 3 == 0 else "Deluxe" if i % 2 == 0 else "Standard",
        )
        for i in range(20)
    ]
    + [
        Room(number=str(201 + i), floor=2, type="Suite" if i % 4 == 0 else "Standard")
        for i in range(30)
    ]
)

ASSETS: Tuple[str, ...] = (
    "Air Conditioning",
    "Plumbing",
    "Electrical",
    "TV/WiFi",
    "Furniture",
    "Locksmith",
    "Bathroom Fixtures",
    "Linens / Amenities",
    "Appliances",
    "Other",
)

ISSUE_TYPES: Tuple[str, ...] = (
    "Not Working / Won't Turn On",
    "Broken / Physically Damaged",
    "Missing / Lost",
    "Low / Dead Battery",
    "Dirty / Stained",
    "Dripping / Water Leak",
    "Abnormal Noise",
    "Bad Smell",
    "No Signal / Unprogrammed",
    "Clogged / Blocked",
)

CHECKLIST_ROOM_EXIT: Tuple[Tuple[str, str], ...] = (
    ("lights", "Lighting (all fixtures turn on)"),
    ("tv", "TV and remote (signal OK)"),
    ("ac", "A/C and remote (cools / configured)"),
    ("water", "Faucets and toilet (no leaks)"),
    ("lock", "Door lock (works)"),
    ("safe", "Safe (open / batteries)"),
)

LOGBOOK_FIELDS: Dict[LogbookType, Tuple[ReadingLimits, ...]] = {
    LogbookType.POOL: (
        ReadingLimits("chlorine", "Chlorine (ppm)", 1.0, 3.0, 0.5, 5.0, "ppm"),
        ReadingLimits("ph", "pH", 7.2, 7.6, 6.8, 8.0),
        ReadingLimits("temp", "Temperature", 26, 29, 20, 35, "°C"),
    ),
    LogbookType.BOILERS: (
        ReadingLimits("pressure", "Pressure (psi)", 30, 50, 15, 70, "psi"),
        ReadingLimits("outlet_temp", "Outlet temperature", 55, 65, 45, 80, "°C"),
        ReadingLimits("gas_level", "Gas level", 20, 100, 10, 100, "%"),
    ),
    LogbookType.ENERGY: (
        ReadingLimits("meter", "Meter reading", 0, 999999, -1, 9999999, "kWh"),
        ReadingLimits("voltage", "Line voltage", 110, 127, 100, 140, "V"),
    ),
}

_PARTS: Tuple[dict, ...] = (
    dict(id="P-001", name="Universal Premium Outlet, White", category=PartCategory.ELECTRICAL,
         unit="pc", stock_on_hand=1, stock_reserved=0, min_stock=10,
         preferred_vendor="Local Hardware", lead_time_days=2, location="Storeroom E-2",
         sku="ELE-OUT-UNI-WHT"),
    dict(id="P-002", name="Universal Sink Gasket Kit", category=PartCategory.PLUMBING,
         unit="kit", stock_on_hand=2, stock_reserved=0, min_stock=15,
         preferred_vendor="Plumbing Express", lead_time_days=1, location="Storeroom P-1",
         sku="PLO-EMP-KIT"),
    dict(id="P-004", name="Universal AC Remote Control", category=PartCategory.HVAC,
         unit="pc", stock_on_hand=1, stock_reserved=1, min_stock=5,
         preferred_vendor="Southern Climate", lead_time_days=3, location="Storeroom H-3",
         sku="HVAC-RMT-UNI"),
    dict(id="P-009", name="4K HDMI Cable (2m)", category=PartCategory.TV_WIFI,
         unit="pc", stock_on_hand=0, stock_reserved=0, min_stock=5,
         preferred_vendor="TechSolutions", lead_time_days=2, location="Cabinet T-1",
         sku="TV-HDMI-2M"),
    dict(id="P-003", name="Industrial AA Alkaline Batteries", category=PartCategory.LOCKSMITH,
         unit="pack", stock_on_hand=4, stock_reserved=0, min_stock=20,
         preferred_vendor="Battery Wholesale", lead_time_days=1, location="Front Desk",
         sku="CER-BAT-AA"),
    dict(id="P-008", name="Wood Epoxy Glue", category=PartCategory.FURNITURE,
         unit="tube", stock_on_hand=0, stock_reserved=0, min_stock=3,
         preferred_vendor="Fine Woods", lead_time_days=2, location="Workshop",
         sku="MOB-EPO-WOD"),
    dict(id="P-011", name="Matte White Paint (Gallon)", category=PartCategory.OTHER,
         unit="gal", stock_on_hand=1, stock_reserved=0, min_stock=4,
         preferred_vendor="Pro Paints", lead_time_days=1, location="Storeroom Q-1",
         sku="OTR-PNT-WHT"),
    dict(id="P-006", name="Warm LED Bulb 9W", category=PartCategory.ELECTRICAL,
         unit="pc", stock_on_hand=2, stock_reserved=2, min_stock=10,
         preferred_vendor="Illumina", lead_time_days=1, location="Storeroom E-1",
         sku="ELE-LED-9W"),
    dict(id="P-099", name="Black Insulating Tape", category=PartCategory.CONSUMABLES,
         unit="roll", stock_on_hand=10, stock_reserved=0, min_stock=2,
         preferred_vendor="Local Hardware", lead_time_days=0, location="Toolbox",
         sku="CON-TAPE-BLK"),
)

_URGENT_TEMPLATES: Tuple[Tuple[str, str, str], ...] = (
    ("Air Conditioning", "Not Working / Won't Turn On",
     "BMS sensor: temperature stays at 26°C after one hour of operation."),
    ("Plumbing", "Clogged / Blocked",
     "Housekeeping reports: sink drains very slowly, possible partial clog."),
    ("Electrical", "Not Working / Won't Turn On",
     "Guest reports: nightstand outlet has no power to charge a phone."),
    ("Locksmith", "Low / Dead Battery",
     "Automatic alert: main door lock battery at 15%."),
    ("TV/WiFi", "No Signal / Unprogrammed",
     "Guest reports: TV shows a blue 'No Signal' screen on sports channels."),
)


def initial_parts() -> List[InventoryPart]:
    return [InventoryPart(**values) for values in _PARTS]


def initial_purchase_orders(now: Optional[datetime] = None) -> List[PurchaseOrder]:
    now = now or datetime.now()
    return [
        PurchaseOrder(
            id="OC-9001",
            status=POStatus.ORDERED,
            created_at=now - timedelta(days=1),
            created_by=Role.MANAGEMENT,
            vendor="Illumina",
            eta_date=now + timedelta(days=1),
            items=[
                PurchaseOrderItem(
                    part_id="P-006", part_name="Warm LED Bulb 9W", qty=50, unit="pc"
                )
            ],
            notes="Urgent lighting restock",
        )
    ]


def _ticket(
    *,
    ticket_id: str,
    room: str,
    occupied: bool,
    asset: str,
    issue: str,
    description: str,
    urgency: Urgency,
    impact: Impact,
    status: TicketStatus,
    origin: TicketOrigin,
    created_at: datetime,
    created_by: Role,
    history_user: object = None,
    history_action: str = "Ticket created",
    notes: Optional[List[str]] = None,
    **extra: object,
) -> Ticket:
    return Ticket(
        id=ticket_id,
        room_number=room,
        is_occupied=occupied,
        asset=asset,
        issue_type=issue,
        description=description,
        urgency=urgency,
        impact=impact,
        status=status,
        maintenance_type=maintenance_type_for(asset),
        origin=origin,
        created_at=created_at,
        created_by=created_by,
        notes=list(notes or []),
        history=[
            AuditEvent(
                date=created_at,
                action=history_action,
                user=history_user if history_user is not None else created_by,
            )
        ],
        **extra,
    )


def initial_tickets(now: Optional[datetime] = None) -> List[Ticket]:
    """Demo tickets; priority scores are left for the ledger to compute."""

    now = now or datetime.now()
    tickets = [
        _ticket(
            ticket_id="T-8001",
            room="106",
            occupied=True,
            asset="Air Conditioning",
            issue="Missing / Lost",
            description="Remote control missing from the room. Guest needs one urgently.",
            urgency=Urgency.HIGH,
            impact=Impact.BLOCKING,
            status=TicketStatus.WAITING_PART,
            origin=TicketOrigin.GUEST,
            created_at=now - timedelta(days=1),
            created_by=Role.RECEPTION,
            needs_part=True,
            part_id="P-004",
            part_name="Universal AC Remote Control",
            part_qty=1,
            reserved_qty=1,
        ),
        _ticket(
            ticket_id="T-8002",
            room="202",
            occupied=False,
            asset="Electrical",
            issue="Not Working / Won't Turn On",
            description="Main suite bulbs burned out.",
            urgency=Urgency.MEDIUM,
            impact=Impact.ANNOYING,
            status=TicketStatus.WAITING_PART,
            origin=TicketOrigin.STAFF,
            created_at=now - timedelta(days=2),
            created_by=Role.MAINTENANCE,
            needs_part=True,
            part_id="P-006",
            part_name="Warm LED Bulb 9W",
            part_qty=2,
            reserved_qty=2,
        ),
        _ticket(
            ticket_id="T-8003",
            room="101",
            occupied=True,
            asset="Plumbing",
            issue="Dripping / Water Leak",
            description="Minor shower leak spotted during cleaning.",
            urgency=Urgency.LOW,
            impact=Impact.ANNOYING,
            status=TicketStatus.OPEN,
            origin=TicketOrigin.STAFF,
            created_at=now,
            created_by=Role.CLEANING,
        ),
    ]
    for i in range(15):
        asset, issue, description = _URGENT_TEMPLATES[i % len(_URGENT_TEMPLATES)]
        system_raised = i % 3 == 0
        tickets.append(
            _ticket(
                ticket_id=f"T-{2000 + i}",
                room=str(201 + i),
                occupied=i % 2 == 0,
                asset=asset,
                issue=issue,
                description=description,
                urgency=Urgency.HIGH if system_raised else Urgency.MEDIUM,
                impact=Impact.BLOCKING if i % 2 == 0 else Impact.ANNOYING,
                status=TicketStatus.OPEN,
                origin=TicketOrigin.SYSTEM if system_raised else TicketOrigin.GUEST,
                created_at=now,
                created_by=Role.MANAGEMENT if system_raised else Role.RECEPTION,
                history_user="System",
                history_action="Ticket registered in system",
                notes=["Simulation: ticket raised by an operational event."],
            )
        )
    return tickets


__all__ = [
    "ROOMS",
    "ASSETS",
    "ISSUE_TYPES",
    "CHECKLIST_ROOM_EXIT",
    "LOGBOOK_FIELDS",
    "initial_parts",
    "initial_purchase_orders",
    "initial_tickets",
]
