"""Core data structures for the hotel operations ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class Role(str, Enum):
    """Staff roles that can act on the ledger."""

    MANAGEMENT = "Management"
    CLEANING = "Cleaning"
    RECEPTION = "Reception"
    MAINTENANCE = "Maintenance"
    SUPERVISOR = "Floor Supervisor"


class Urgency(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Impact(str, Enum):
    NONE = "None"
    ANNOYING = "Annoying"
    BLOCKING = "Blocking"


class TicketStatus(str, Enum):
    """Lifecycle stages for a maintenance ticket."""

    OPEN = "Reported"
    IN_PROGRESS = "In Progress"
    WAITING_PART = "Waiting Part"
    VENDOR = "Requires Vendor"
    RESOLVED = "Resolved"
    VERIFIED = "Verified"

    @property
    def is_closed(self) -> bool:
        return self in (TicketStatus.RESOLVED, TicketStatus.VERIFIED)


class TicketOrigin(str, Enum):
    GUEST = "GUEST"
    STAFF = "STAFF"
    SYSTEM = "SYSTEM"


class MaintenanceType(str, Enum):
    """Specialty a ticket is routed to."""

    ELECTRICIAN = "Electrician"
    PLUMBER = "Plumber"
    HVAC_TECHNICIAN = "HVAC Technician"
    CARPENTER = "Carpenter"
    TV_NETWORK_TECHNICIAN = "TV/Network Technician"
    LOCKSMITH = "Locksmith"
    GENERAL = "General"


class PartCategory(str, Enum):
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    HVAC = "HVAC"
    LOCKSMITH = "Locksmith"
    FURNITURE = "Furniture"
    TV_WIFI = "TV/WiFi"
    CONSUMABLES = "Consumables"
    OTHER = "Other"


class PartMovementType(str, Enum):
    """Kinds of stock-affecting events recorded in the movement ledger."""

    RESERVE = "RESERVE"
    RELEASE = "RELEASE"
    ISSUE = "ISSUE"
    RECEIVE = "RECEIVE"
    ADJUST = "ADJUST"
    PO_CREATED = "PO_CREATED"
    PO_SENT = "PO_SENT"
    PO_RECEIVED = "PO_RECEIVED"


class POStatus(str, Enum):
    DRAFT = "Draft"
    ORDERED = "Ordered"
    RECEIVED = "Received"
    CANCELED = "Canceled"


class LogbookType(str, Enum):
    """Utility areas with a reading logbook."""

    POOL = "POOL"
    BOILERS = "BOILERS"
    ENERGY = "ENERGY"


class ReadingStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(slots=True)
class AuditEvent:
    """Single entry in a ticket's append-only history."""

    date: datetime
    action: str
    user: Union[Role, str]


@dataclass(slots=True)
class Ticket:
    """A tracked maintenance or housekeeping issue tied to a room.

    ``priority_score`` is derived from the other fields and is only ever
    written by the ledger after a mutation; ``reserved_qty`` is the quantity
    currently held in stock for this ticket (zero when no reservation is
    active), while ``part_qty`` records what was requested.
    """

    id: str
    room_number: str
    is_occupied: bool
    asset: str
    issue_type: str
    description: str
    urgency: Urgency
    impact: Impact
    status: TicketStatus
    maintenance_type: MaintenanceType
    origin: TicketOrigin
    created_at: datetime
    created_by: Role
    assigned_to: Optional[str] = None
    notes: List[str] = field(default_factory=list)
    history: List[AuditEvent] = field(default_factory=list)
    needs_part: bool = False
    part_id: Optional[str] = None
    part_name: Optional[str] = None
    part_qty: Optional[int] = None
    reserved_qty: int = 0
    cannibalized_from_room: Optional[str] = None
    needs_vendor: bool = False
    vendor_type: Optional[str] = None
    po_id: Optional[str] = None
    verified_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    time_spent_minutes: Optional[int] = None
    evidence_photo_url: Optional[str] = None
    priority_score: int = 0

    @property
    def has_active_reservation(self) -> bool:
        return self.reserved_qty > 0 and self.part_id is not None


@dataclass(slots=True)
class InventoryPart:
    """Spare part master data with physical and reserved stock."""

    id: str
    name: str
    category: PartCategory
    unit: str
    stock_on_hand: int
    stock_reserved: int = 0
    min_stock: int = 0
    preferred_vendor: Optional[str] = None
    lead_time_days: Optional[int] = None
    location: str = ""
    sku: str = ""

    @property
    def available(self) -> int:
        return max(0, self.stock_on_hand - self.stock_reserved)


@dataclass(frozen=True, slots=True)
class PartMovement:
    """Immutable ledger record; ``qty`` is never negative, the type gives the sign."""

    id: str
    part_id: str
    type: PartMovementType
    qty: int
    date: datetime
    user: Union[Role, str]
    note: Optional[str] = None
    ticket_id: Optional[str] = None
    po_id: Optional[str] = None


@dataclass(slots=True)
class PurchaseOrderItem:
    part_id: str
    part_name: str
    qty: int
    unit: Optional[str] = None


@dataclass(slots=True)
class PurchaseOrder:
    """Replenishment request sent to a vendor."""

    id: str
    status: POStatus
    created_at: datetime
    created_by: Union[Role, str]
    vendor: str
    eta_date: Optional[datetime] = None
    items: List[PurchaseOrderItem] = field(default_factory=list)
    notes: str = ""

    @property
    def total_qty(self) -> int:
        return sum(item.qty for item in self.items)


@dataclass(slots=True)
class LogbookEntry:
    """Utility reading recorded by maintenance staff."""

    id: str
    date: datetime
    type: LogbookType
    readings: Dict[str, float]
    user: Union[Role, str]
    status: ReadingStatus
    notes: str = ""


@dataclass(frozen=True, slots=True)
class ReadingLimits:
    """Normal and critical bounds for one logbook reading."""

    key: str
    label: str
    min: float
    max: float
    crit_min: float
    crit_max: float
    unit: str = ""


@dataclass(slots=True)
class Room:
    number: str
    floor: int
    type: str


@dataclass(frozen=True, slots=True)
class Permissions:
    """Capabilities derived from the active role; never persisted."""

    can_view_inventory: bool
    can_reserve: bool
    can_create_po: bool
    can_adjust_stock: bool


__all__ = [
    "Role",
    "Urgency",
    "Impact",
    "TicketStatus",
    "TicketOrigin",
    "MaintenanceType",
    "PartCategory",
    "PartMovementType",
    "POStatus",
    "LogbookType",
    "ReadingStatus",
    "AuditEvent",
    "Ticket",
    "InventoryPart",
    "PartMovement",
    "PurchaseOrderItem",
    "PurchaseOrder",
    "LogbookEntry",
    "ReadingLimits",
    "Room",
    "Permissions",
]
