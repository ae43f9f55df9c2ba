"""Service layer that implements the hotel operations ledger."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Union,
)

from .domain import (
    AuditEvent,
    Impact,
    InventoryPart,
    LogbookEntry,
    LogbookType,
    PartMovement,
    PartMovementType,
    Permissions,
    POStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    Role,
    Ticket,
    TicketOrigin,
    TicketStatus,
    Urgency,
)
from .repository import InMemoryRepository
from .scoring import (
    awaited_quantity,
    calculate_priority,
    evaluate_readings,
    is_awaiting_part,
    maintenance_type_for,
    permissions_for,
    should_reorder,
    suggested_reorder_qty,
)
from .seed import LOGBOOK_FIELDS, initial_parts, initial_purchase_orders, initial_tickets

logger = logging.getLogger(__name__)

TICKETS = "tickets"
PARTS = "parts"
PURCHASE_ORDERS = "pos"
MOVEMENTS = "movements"
LOGBOOK = "logbook"
INSPECTIONS = "inspections"
ALL_COLLECTIONS: FrozenSet[str] = frozenset(
    {TICKETS, PARTS, PURCHASE_ORDERS, MOVEMENTS, LOGBOOK, INSPECTIONS}
)

CSV_HEADER = "ID,Room,Status,Description"

# Fields derived or owned by the ledger; never accepted from callers.
_PROTECTED_TICKET_FIELDS = frozenset(
    {"id", "history", "priority_score", "maintenance_type", "reserved_qty"}
)
# Owned by the reservation engine while a hold is active.
_RESERVATION_TICKET_FIELDS = frozenset({"part_id", "needs_part"})
_REQUIRED_TICKET_FIELDS = frozenset(
    {"room_number", "asset", "urgency", "impact", "status", "origin", "created_by"}
)
_TICKET_FIELDS = frozenset(Ticket.__dataclass_fields__)
_ENUM_TICKET_FIELDS: Mapping[str, type] = {
    "urgency": Urgency,
    "impact": Impact,
    "status": TicketStatus,
    "origin": TicketOrigin,
    "created_by": Role,
}

ChangeListener = Callable[[FrozenSet[str]], None]


class ErrorKind(str, Enum):
    """Expected, caller-visible failure categories."""

    PERMISSION_DENIED = "PermissionDenied"
    NOT_FOUND = "NotFound"
    INSUFFICIENT_STOCK = "InsufficientStock"
    INVALID_INPUT = "InvalidInput"
    ALREADY_FINALIZED = "AlreadyFinalized"


@dataclass(slots=True)
class OperationResult:
    """Outcome of a ledger operation; failures are returned, not raised."""

    ok: bool
    message: str
    kind: Optional[ErrorKind] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message: str, **extra: Any) -> "OperationResult":
        return cls(ok=True, message=message, extra=extra)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "OperationResult":
        return cls(ok=False, message=message, kind=kind)

    @property
    def po_id(self) -> Optional[str]:
        return self.extra.get("po_id")

    @property
    def ticket_id(self) -> Optional[str]:
        return self.extra.get("ticket_id")

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"ok": self.ok, "message": self.message}
        if self.kind is not None:
            payload["kind"] = self.kind.value
        payload.update(self.extra)
        return payload


@dataclass(slots=True)
class LedgerOptions:
    """Configuration values controlling ledger defaults."""

    default_eta_days: int = 3
    placeholder_vendor: str = "Vendor (DEMO)"
    ticket_id_floor: int = 1000
    reorder_target_factor: float = 2.0
    receive_delay_seconds: float = 0.6
    flame_threshold: int = 80


@dataclass(slots=True)
class ReorderSuggestion:
    """A part worth buying, with the tickets waiting on it."""

    part: InventoryPart
    waiting_qty: int
    suggested_qty: int
    tickets: List[Ticket] = field(default_factory=list)


class IdSequence:
    """Authoritative id generator for one prefix.

    The counter starts at the highest numeric suffix already in use (never
    below ``floor``) and only moves forward.
    """

    def __init__(self, prefix: str, floor: int = 0) -> None:
        self.prefix = prefix
        self.floor = floor
        self._last = floor

    def reset(self, existing_ids: Iterable[str]) -> None:
        last = self.floor
        for existing in existing_ids:
            digits = re.sub(r"\D", "", str(existing))
            if digits:
                last = max(last, int(digits))
        self._last = last

    def next(self) -> str:
        self._last += 1
        return f"{self.prefix}{self._last}"


def _clamp(value: int) -> int:
    return max(0, value)


def _normalize_qty(value: Union[int, float, None]) -> Optional[int]:
    """Floor to an integer of at least 1; ``None`` for non-finite input."""

    if value is None:
        return 1
    number = float(value)
    if not math.isfinite(number):
        return None
    return max(1, math.floor(number))


def find_part_id_by_name(
    parts: Iterable[InventoryPart], name: Optional[str]
) -> Optional[str]:
    if not name:
        return None
    wanted = name.strip().lower()
    for part in parts:
        if part.name.strip().lower() == wanted:
            return part.id
    return None


class OperationsLedger:
    """Facade that owns every collection and is their only write path.

    All state lives on the instance; callers create one per hotel (or per
    test) and pass it around. Each public write operation validates first,
    applies all of its effects, then notifies change listeners.
    """

    def __init__(
        self,
        *,
        tickets: Optional[Iterable[Ticket]] = None,
        parts: Optional[Iterable[InventoryPart]] = None,
        purchase_orders: Optional[Iterable[PurchaseOrder]] = None,
        movements: Optional[Iterable[PartMovement]] = None,
        logbook: Optional[Iterable[LogbookEntry]] = None,
        inspections: Optional[Mapping[str, datetime]] = None,
        role: Role = Role.MANAGEMENT,
        options: Optional[LedgerOptions] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.options = options or LedgerOptions()
        self.role = role
        self._clock = clock
        self.tickets: InMemoryRepository[Ticket] = InMemoryRepository()
        self.parts: InMemoryRepository[InventoryPart] = InMemoryRepository()
        self.purchase_orders: InMemoryRepository[PurchaseOrder] = InMemoryRepository()
        self.movements: InMemoryRepository[PartMovement] = InMemoryRepository()
        self.logbook: InMemoryRepository[LogbookEntry] = InMemoryRepository()
        self.inspections: Dict[str, datetime] = {}
        self._ticket_ids = IdSequence("T-", self.options.ticket_id_floor)
        self._movement_ids = IdSequence("M-")
        self._po_ids = IdSequence("OC-")
        self._logbook_ids = IdSequence("LOG-")
        self._listeners: List[ChangeListener] = []
        self.replace_state(
            tickets=tickets or (),
            parts=parts or (),
            purchase_orders=purchase_orders or (),
            movements=movements or (),
            logbook=logbook or (),
            inspections=inspections or {},
            notify=False,
        )

    @classmethod
    def with_demo_data(cls, **kwargs: Any) -> "OperationsLedger":
        ledger = cls(**kwargs)
        ledger.reset_demo_data(notify=False)
        return ledger

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------
    @property
    def permissions(self) -> Permissions:
        return permissions_for(self.role)

    def set_role(self, role: Role) -> Role:
        self.role = Role(role)
        return self.role

    def now(self) -> datetime:
        return self._clock()

    def update_options(
        self,
        *,
        default_eta_days: Optional[int] = None,
        placeholder_vendor: Optional[str] = None,
        reorder_target_factor: Optional[float] = None,
        receive_delay_seconds: Optional[float] = None,
        flame_threshold: Optional[int] = None,
    ) -> LedgerOptions:
        """Apply new defaults, clamping negative values."""

        current = self.options
        self.options = LedgerOptions(
            default_eta_days=max(
                current.default_eta_days if default_eta_days is None else default_eta_days, 0
            ),
            placeholder_vendor=placeholder_vendor or current.placeholder_vendor,
            ticket_id_floor=current.ticket_id_floor,
            reorder_target_factor=max(
                current.reorder_target_factor
                if reorder_target_factor is None
                else reorder_target_factor,
                1.0,
            ),
            receive_delay_seconds=max(
                current.receive_delay_seconds
                if receive_delay_seconds is None
                else receive_delay_seconds,
                0.0,
            ),
            flame_threshold=max(
                current.flame_threshold if flame_threshold is None else flame_threshold, 0
            ),
        )
        return self.options

    def replace_state(
        self,
        *,
        tickets: Iterable[Ticket],
        parts: Iterable[InventoryPart],
        purchase_orders: Iterable[PurchaseOrder],
        movements: Iterable[PartMovement],
        logbook: Iterable[LogbookEntry],
        inspections: Mapping[str, datetime],
        notify: bool = True,
    ) -> None:
        """Swap in whole collections (hydration and reset)."""

        ticket_list = list(tickets)
        for ticket in ticket_list:
            ticket.priority_score = calculate_priority(ticket)
        self.tickets.replace_all(ticket_list)
        self.parts.replace_all(parts)
        self.purchase_orders.replace_all(purchase_orders)
        self.movements.replace_all(movements)
        self.logbook.replace_all(logbook)
        self.inspections = dict(inspections)
        self._ticket_ids.reset(self.tickets.ids())
        self._movement_ids.reset(self.movements.ids())
        self._po_ids.reset(self.purchase_orders.ids())
        self._logbook_ids.reset(self.logbook.ids())
        if notify:
            self._notify(ALL_COLLECTIONS)

    def reset_demo_data(self, *, notify: bool = True) -> None:
        now = self.now()
        self.role = Role.MANAGEMENT
        self.replace_state(
            tickets=initial_tickets(now),
            parts=initial_parts(),
            purchase_orders=initial_purchase_orders(now),
            movements=(),
            logbook=(),
            inspections={},
            notify=notify,
        )
        logger.info("Ledger reset to demo data")

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a callback receiving the names of changed collections."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changed: Iterable[str]) -> None:
        names = frozenset(changed)
        for listener in list(self._listeners):
            try:
                listener(names)
            except Exception:
                # Persistence is outside the operation boundary; the change stands.
                logger.exception("Change listener failed for %s", sorted(names))

    def read_model(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "permissions": self.permissions,
            "tickets": self.tickets.list(),
            "parts": self.parts.list(),
            "pos": self.purchase_orders.list(),
            "movements": self.movements.list(),
            "logbook": self.logbook.list(),
            "inspections": dict(self.inspections),
        }

    def _reject(self, operation: str, kind: ErrorKind, message: str) -> OperationResult:
        logger.info("%s rejected (%s): %s", operation, kind.value, message)
        return OperationResult.failure(kind, message)

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------
    def _audit(self, action: str) -> AuditEvent:
        return AuditEvent(date=self.now(), action=action, user=self.role)

    @staticmethod
    def _coerce_ticket_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate and convert every value before anything is written."""

        unknown = set(updates) - _TICKET_FIELDS
        if unknown:
            raise ValueError(f"Unknown ticket fields: {sorted(unknown)}")
        coerced: Dict[str, Any] = {}
        for name, value in updates.items():
            if value is None and name in _REQUIRED_TICKET_FIELDS:
                raise ValueError(f"Ticket field {name!r} cannot be empty")
            enum_type = _ENUM_TICKET_FIELDS.get(name)
            if enum_type is not None:
                value = enum_type(value)
            elif name == "notes":
                value = list(value or [])
            coerced[name] = value
        return coerced

    def _apply_ticket_update(
        self, ticket: Ticket, updates: Mapping[str, Any], action: str
    ) -> Ticket:
        values = self._coerce_ticket_updates(updates)
        for name, value in values.items():
            setattr(ticket, name, value)
        if "asset" in values:
            ticket.maintenance_type = maintenance_type_for(ticket.asset)
        ticket.history.append(self._audit(action))
        ticket.priority_score = calculate_priority(ticket)
        return ticket

    def _build_ticket(
        self,
        *,
        room_number: str,
        is_occupied: bool,
        asset: str,
        issue_type: str,
        description: str,
        urgency: Urgency,
        impact: Impact,
        status: Optional[TicketStatus],
        origin: Optional[TicketOrigin],
        created_by: Role,
        action: str,
        **extra: Any,
    ) -> Ticket:
        ticket = Ticket(
            id=self._ticket_ids.next(),
            room_number=str(room_number),
            is_occupied=bool(is_occupied),
            asset=asset,
            issue_type=issue_type,
            description=description,
            urgency=Urgency(urgency),
            impact=Impact(impact),
            status=TicketStatus(status) if status else TicketStatus.OPEN,
            maintenance_type=maintenance_type_for(asset),
            origin=TicketOrigin(origin)
            if origin
            else (TicketOrigin.GUEST if created_by == Role.RECEPTION else TicketOrigin.STAFF),
            created_at=self.now(),
            created_by=created_by,
            history=[self._audit(action)],
            **extra,
        )
        ticket.priority_score = calculate_priority(ticket)
        return ticket

    def add_ticket(
        self,
        *,
        room_number: str,
        is_occupied: bool,
        asset: str,
        issue_type: str,
        description: str,
        urgency: Urgency,
        impact: Impact,
        status: Optional[TicketStatus] = None,
        origin: Optional[TicketOrigin] = None,
        created_by: Optional[Role] = None,
        notes: Optional[Iterable[str]] = None,
        assigned_to: Optional[str] = None,
        needs_part: bool = False,
        part_id: Optional[str] = None,
        part_name: Optional[str] = None,
        part_qty: Optional[int] = None,
        needs_vendor: bool = False,
        vendor_type: Optional[str] = None,
    ) -> Ticket:
        ticket = self._build_ticket(
            room_number=room_number,
            is_occupied=is_occupied,
            asset=asset,
            issue_type=issue_type,
            description=description,
            urgency=urgency,
            impact=impact,
            status=status,
            origin=origin,
            created_by=Role(created_by) if created_by else self.role,
            action="Ticket Created",
            notes=list(notes or []),
            assigned_to=assigned_to,
            needs_part=needs_part,
            part_id=part_id,
            part_name=part_name,
            part_qty=part_qty,
            needs_vendor=needs_vendor,
            vendor_type=vendor_type,
        )
        self.tickets.add(ticket, front=True)
        logger.info("Ticket %s created for room %s", ticket.id, ticket.room_number)
        self._notify({TICKETS})
        return ticket

    def update_ticket(
        self, ticket_id: str, updates: Mapping[str, Any], action_description: str
    ) -> Optional[Ticket]:
        """Merge ``updates`` into a ticket and record one audit event.

        Unknown ticket ids are ignored and ``None`` is returned. Derived
        fields, reservation fields while a hold is active, and the status of
        a verified ticket raise ``ValueError`` with the ticket left untouched.
        """

        ticket = self.tickets.find(ticket_id)
        if ticket is None:
            return None
        protected = set(updates) & _PROTECTED_TICKET_FIELDS
        if ticket.has_active_reservation:
            protected |= {
                name
                for name in set(updates) & _RESERVATION_TICKET_FIELDS
                if updates[name] != getattr(ticket, name)
            }
        if protected:
            raise ValueError(f"Ticket fields cannot be set directly: {sorted(protected)}")
        values = self._coerce_ticket_updates(updates)
        if (
            ticket.status == TicketStatus.VERIFIED
            and values.get("status", TicketStatus.VERIFIED) != TicketStatus.VERIFIED
        ):
            raise ValueError(f"Ticket {ticket.id} is verified; its status is final")
        self._apply_ticket_update(ticket, values, action_description)
        self._notify({TICKETS})
        return ticket

    def cannibalize_part(
        self, recipient_id: str, donor_room: str, part_name: str
    ) -> OperationResult:
        """Take a part from an empty room and file a ticket to replace it."""

        operation = "cannibalize_part"
        recipient = self.tickets.find(recipient_id)
        if recipient is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Ticket not found.")
        donor_room = (donor_room or "").strip()
        part_name = (part_name or "").strip()
        if not donor_room or not part_name:
            return self._reject(
                operation, ErrorKind.INVALID_INPUT, "Donor room and part name are required."
            )

        donor = self._build_ticket(
            room_number=donor_room,
            is_occupied=False,
            asset=recipient.asset,
            issue_type="Missing Part (Cannibalized)",
            description=(
                f"Part removed ({part_name}) to repair room {recipient.room_number}. "
                "Replace urgently."
            ),
            urgency=Urgency.HIGH,
            impact=Impact.BLOCKING,
            status=TicketStatus.WAITING_PART,
            origin=TicketOrigin.SYSTEM,
            created_by=Role.MAINTENANCE,
            action=f"Automatic ticket for part cannibalized to room {recipient.room_number}",
            notes=[f"Part taken for ticket {recipient.id}"],
            needs_part=True,
            part_id=find_part_id_by_name(self.parts, part_name),
            part_name=part_name,
            part_qty=1,
        )
        self.tickets.add(donor, front=True)
        self._apply_ticket_update(
            recipient,
            {
                "cannibalized_from_room": donor_room,
                "notes": [*recipient.notes, f"Part taken from room {donor_room}"],
            },
            f"Part cannibalized from room {donor_room}",
        )
        logger.info(
            "Part %r moved from room %s to ticket %s; replacement ticket %s",
            part_name,
            donor_room,
            recipient.id,
            donor.id,
        )
        self._notify({TICKETS})
        return OperationResult.success(
            f"Replacement ticket {donor.id} created.", ticket_id=donor.id
        )

    def _transition(
        self, operation: str, ticket_id: str, updates: Mapping[str, Any], action: str
    ) -> OperationResult:
        ticket = self.tickets.find(ticket_id)
        if ticket is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Ticket not found.")
        if ticket.status == TicketStatus.VERIFIED:
            return self._reject(
                operation, ErrorKind.ALREADY_FINALIZED, "Ticket is already verified."
            )
        self._apply_ticket_update(ticket, updates, action)
        self._notify({TICKETS})
        return OperationResult.success(action, ticket_id=ticket.id)

    def assign_ticket(self, ticket_id: str, technician: str) -> OperationResult:
        if not technician or not technician.strip():
            return self._reject(
                "assign_ticket", ErrorKind.INVALID_INPUT, "Technician is required."
            )
        technician = technician.strip()
        return self._transition(
            "assign_ticket",
            ticket_id,
            {"assigned_to": technician, "status": TicketStatus.IN_PROGRESS},
            f"Assigned to {technician}",
        )

    def add_note(self, ticket_id: str, note: str) -> OperationResult:
        if not note or not note.strip():
            return self._reject("add_note", ErrorKind.INVALID_INPUT, "Note is empty.")
        ticket = self.tickets.find(ticket_id)
        notes = [*ticket.notes, note.strip()] if ticket else []
        return self._transition("add_note", ticket_id, {"notes": notes}, "Note added")

    def escalate_to_vendor(self, ticket_id: str, vendor_type: str) -> OperationResult:
        return self._transition(
            "escalate_to_vendor",
            ticket_id,
            {"needs_vendor": True, "vendor_type": vendor_type, "status": TicketStatus.VENDOR},
            f"Escalated to vendor: {vendor_type}",
        )

    def resolve_ticket(
        self,
        ticket_id: str,
        *,
        time_spent_minutes: Optional[int] = None,
        evidence_photo_url: Optional[str] = None,
    ) -> OperationResult:
        if time_spent_minutes is not None and time_spent_minutes < 0:
            return self._reject(
                "resolve_ticket", ErrorKind.INVALID_INPUT, "Time spent cannot be negative."
            )
        updates: Dict[str, Any] = {"status": TicketStatus.RESOLVED}
        if time_spent_minutes is not None:
            updates["time_spent_minutes"] = int(time_spent_minutes)
        if evidence_photo_url:
            updates["evidence_photo_url"] = evidence_photo_url
        return self._transition("resolve_ticket", ticket_id, updates, "Resolved")

    def verify_ticket(self, ticket_id: str, verified_by: str) -> OperationResult:
        ticket = self.tickets.find(ticket_id)
        if ticket is not None and ticket.status not in (
            TicketStatus.RESOLVED,
            TicketStatus.VERIFIED,
        ):
            return self._reject(
                "verify_ticket",
                ErrorKind.INVALID_INPUT,
                "Only resolved tickets can be verified.",
            )
        return self._transition(
            "verify_ticket",
            ticket_id,
            {
                "status": TicketStatus.VERIFIED,
                "verified_by": verified_by,
                "closed_at": self.now(),
            },
            "Verified",
        )

    def report_inspection_finding(
        self,
        room_number: str,
        asset: str,
        issue_type: str,
        urgency: Urgency = Urgency.MEDIUM,
        *,
        description: str = "",
        part_id: Optional[str] = None,
    ) -> OperationResult:
        """File a ticket from a supervisor's room checklist.

        A named part is recorded as a request (no stock is held) and the
        ticket starts in Waiting Part so it surfaces in reorder suggestions.
        """

        part = None
        if part_id:
            part = self.parts.find(part_id)
            if part is None:
                return self._reject(
                    "report_inspection_finding", ErrorKind.NOT_FOUND, "Part not found."
                )
        ticket = self.add_ticket(
            room_number=room_number,
            is_occupied=False,
            asset=asset,
            issue_type=issue_type,
            description=description or f"Inspection report: {issue_type} in {asset}",
            urgency=urgency,
            impact=Impact.ANNOYING,
            status=TicketStatus.WAITING_PART if part else TicketStatus.OPEN,
            created_by=Role.SUPERVISOR,
            notes=[f"Requires part: {part.name}"] if part else ["Raised from supervisor checklist"],
            needs_part=part is not None,
            part_id=part.id if part else None,
            part_name=part.name if part else None,
            part_qty=1 if part else None,
        )
        return OperationResult.success("Inspection finding recorded.", ticket_id=ticket.id)

    def register_inspection(self, room_number: str) -> datetime:
        inspected_at = self.now()
        self.inspections[str(room_number)] = inspected_at
        self._notify({INSPECTIONS})
        return inspected_at

    def sorted_by_priority(self, *, include_closed: bool = True) -> List[Ticket]:
        tickets = [
            ticket
            for ticket in self.tickets
            if include_closed or not ticket.status.is_closed
        ]
        return sorted(tickets, key=lambda ticket: ticket.priority_score, reverse=True)

    # ------------------------------------------------------------------
    # Movement ledger
    # ------------------------------------------------------------------
    def _record_movement(
        self,
        part_id: str,
        movement_type: PartMovementType,
        qty: int,
        *,
        note: Optional[str] = None,
        ticket_id: Optional[str] = None,
        po_id: Optional[str] = None,
    ) -> PartMovement:
        movement = PartMovement(
            id=self._movement_ids.next(),
            part_id=part_id,
            type=movement_type,
            qty=abs(int(qty)),
            date=self.now(),
            user=self.role,
            note=note,
            ticket_id=ticket_id,
            po_id=po_id,
        )
        self.movements.add(movement, front=True)
        return movement

    def movements_for_part(self, part_id: str) -> List[PartMovement]:
        return [movement for movement in self.movements if movement.part_id == part_id]

    def movements_for_ticket(self, ticket_id: str) -> List[PartMovement]:
        return [movement for movement in self.movements if movement.ticket_id == ticket_id]

    # ------------------------------------------------------------------
    # Inventory and reservations
    # ------------------------------------------------------------------
    def reserve_part_for_ticket(
        self, ticket_id: str, part_id: str, qty: Union[int, float, None] = 1
    ) -> OperationResult:
        operation = "reserve_part_for_ticket"
        if not self.permissions.can_reserve:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        quantity = _normalize_qty(qty)
        if quantity is None:
            return self._reject(operation, ErrorKind.INVALID_INPUT, "Invalid quantity.")
        ticket = self.tickets.find(ticket_id)
        if ticket is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Ticket not found.")
        part = self.parts.find(part_id)
        if part is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Part not found.")
        if part.available < quantity:
            return self._reject(
                operation,
                ErrorKind.INSUFFICIENT_STOCK,
                f"Insufficient stock: {part.available} available, {quantity} requested.",
            )

        if ticket.has_active_reservation:
            previous = self.parts.find(ticket.part_id)
            if previous is not None:
                previous.stock_reserved = _clamp(previous.stock_reserved - ticket.reserved_qty)
                self._record_movement(
                    previous.id,
                    PartMovementType.RELEASE,
                    ticket.reserved_qty,
                    note="Replaced by new reservation",
                    ticket_id=ticket.id,
                )
        part.stock_reserved += quantity
        self._apply_ticket_update(
            ticket,
            {
                "needs_part": True,
                "status": TicketStatus.WAITING_PART,
                "part_id": part.id,
                "part_name": part.name,
                "part_qty": quantity,
                "reserved_qty": quantity,
            },
            f"Part reserved: {part.name} (x{quantity})",
        )
        self._record_movement(
            part.id,
            PartMovementType.RESERVE,
            quantity,
            note=f"Reservation for ticket {ticket.id}",
            ticket_id=ticket.id,
        )
        logger.info("Reserved %s x%d for ticket %s", part.id, quantity, ticket.id)
        self._notify({TICKETS, PARTS, MOVEMENTS})
        return OperationResult.success("Reserved successfully.")

    def release_reservation_for_ticket(
        self, ticket_id: str, note: Optional[str] = None
    ) -> OperationResult:
        operation = "release_reservation_for_ticket"
        if not self.permissions.can_reserve:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        ticket = self.tickets.find(ticket_id)
        if ticket is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Ticket not found.")
        if not ticket.has_active_reservation:
            return self._reject(operation, ErrorKind.INVALID_INPUT, "No active reservation.")

        quantity = ticket.reserved_qty
        part = self.parts.find(ticket.part_id)
        if part is not None:
            part.stock_reserved = _clamp(part.stock_reserved - quantity)
        self._record_movement(
            ticket.part_id,
            PartMovementType.RELEASE,
            quantity,
            note=note or "Release",
            ticket_id=ticket.id,
        )
        self._apply_ticket_update(
            ticket, {"needs_part": False, "reserved_qty": 0}, "Reservation released"
        )
        logger.info("Released %s x%d from ticket %s", ticket.part_id, quantity, ticket.id)
        self._notify({TICKETS, PARTS, MOVEMENTS})
        return OperationResult.success("Released successfully.")

    def issue_reserved_part_for_ticket(
        self, ticket_id: str, note: Optional[str] = None
    ) -> OperationResult:
        operation = "issue_reserved_part_for_ticket"
        if not self.permissions.can_reserve:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        ticket = self.tickets.find(ticket_id)
        if ticket is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Ticket not found.")
        if not ticket.has_active_reservation:
            return self._reject(operation, ErrorKind.INVALID_INPUT, "No active reservation.")
        part = self.parts.find(ticket.part_id)
        if part is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Part not found.")

        quantity = ticket.reserved_qty
        part.stock_reserved = _clamp(part.stock_reserved - quantity)
        part.stock_on_hand = _clamp(part.stock_on_hand - quantity)
        self._record_movement(
            part.id,
            PartMovementType.ISSUE,
            quantity,
            note=note or "Consumption",
            ticket_id=ticket.id,
        )
        self._apply_ticket_update(
            ticket,
            {"needs_part": False, "reserved_qty": 0},
            f"Part used: {part.name} (x{quantity})",
        )
        logger.info("Issued %s x%d to ticket %s", part.id, quantity, ticket.id)
        self._notify({TICKETS, PARTS, MOVEMENTS})
        return OperationResult.success("Consumed successfully.")

    def adjust_stock(
        self, part_id: str, delta: Union[int, float], note: Optional[str] = None
    ) -> OperationResult:
        """Apply a signed correction to on-hand stock, clamped at zero.

        Reserved stock is left alone, so on-hand may end up below reserved.
        """

        operation = "adjust_stock"
        if not self.permissions.can_adjust_stock:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        part = self.parts.find(part_id)
        if part is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Part not found.")
        number = float(delta or 0)
        if not math.isfinite(number) or math.trunc(number) == 0:
            return self._reject(operation, ErrorKind.INVALID_INPUT, "Invalid delta.")

        change = math.trunc(number)
        part.stock_on_hand = _clamp(part.stock_on_hand + change)
        self._record_movement(part.id, PartMovementType.ADJUST, abs(change), note=note)
        if part.stock_on_hand < part.stock_reserved:
            logger.warning(
                "Part %s now has %d on hand but %d reserved",
                part.id,
                part.stock_on_hand,
                part.stock_reserved,
            )
        logger.info("Adjusted %s by %+d", part.id, change)
        self._notify({PARTS, MOVEMENTS})
        return OperationResult.success("Stock adjusted.")

    def search_parts(self, term: str = "") -> List[InventoryPart]:
        needle = term.strip().lower()
        return [
            part
            for part in self.parts
            if needle in part.name.lower()
            or needle in part.sku.lower()
            or needle in part.category.value.lower()
        ]

    def reorder_suggestions(self) -> List[ReorderSuggestion]:
        """Parts at or below minimum stock, or awaited by open tickets."""

        waiting = [ticket for ticket in self.tickets if is_awaiting_part(ticket)]
        suggestions: List[ReorderSuggestion] = []
        for part in self.parts:
            part_tickets = [ticket for ticket in waiting if ticket.part_id == part.id]
            if not should_reorder(part) and not part_tickets:
                continue
            waiting_qty = awaited_quantity(part.id, part_tickets)
            suggestions.append(
                ReorderSuggestion(
                    part=part,
                    waiting_qty=waiting_qty,
                    suggested_qty=suggested_reorder_qty(
                        part,
                        waiting_qty,
                        target_factor=self.options.reorder_target_factor,
                    ),
                    tickets=part_tickets,
                )
            )
        return suggestions

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------
    def create_po_for_part(
        self,
        part_id: str,
        qty: Union[int, float, None],
        *,
        vendor: Optional[str] = None,
        eta_days: Optional[int] = None,
        ticket_id: Optional[str] = None,
    ) -> OperationResult:
        operation = "create_po_for_part"
        if not self.permissions.can_create_po:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        part = self.parts.find(part_id)
        if part is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Part not found.")
        if ticket_id is not None and ticket_id not in self.tickets:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Ticket not found.")
        quantity = _normalize_qty(qty)
        if quantity is None:
            return self._reject(operation, ErrorKind.INVALID_INPUT, "Invalid quantity.")

        if eta_days is None:
            eta_days = (
                part.lead_time_days
                if part.lead_time_days is not None
                else self.options.default_eta_days
            )
        now = self.now()
        order = PurchaseOrder(
            id=self._po_ids.next(),
            status=POStatus.ORDERED,
            created_at=now,
            created_by=self.role,
            vendor=vendor or part.preferred_vendor or self.options.placeholder_vendor,
            eta_date=now + timedelta(days=max(int(eta_days), 0)),
            items=[
                PurchaseOrderItem(
                    part_id=part.id, part_name=part.name, qty=quantity, unit=part.unit
                )
            ],
            notes="Purchase order generated in demo.",
        )
        self.purchase_orders.add(order, front=True)
        self._record_movement(
            part.id,
            PartMovementType.PO_CREATED,
            quantity,
            note=f"PO {order.id}",
            po_id=order.id,
            ticket_id=ticket_id,
        )
        changed = {PURCHASE_ORDERS, MOVEMENTS}
        if ticket_id is not None:
            self._apply_ticket_update(
                self.tickets.get(ticket_id), {"po_id": order.id}, f"PO linked: {order.id}"
            )
            changed.add(TICKETS)
        logger.info("Purchase order %s created for %s x%d", order.id, part.id, quantity)
        self._notify(changed)
        return OperationResult.success(f"PO {order.id} created.", po_id=order.id)

    def receive_po(self, po_id: str) -> OperationResult:
        """Book every line item into stock; a purchase order is received at most once."""

        operation = "receive_po"
        if not self.permissions.can_create_po:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        order = self.purchase_orders.find(po_id)
        if order is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Purchase order not found.")
        if order.status in (POStatus.RECEIVED, POStatus.CANCELED):
            return self._reject(
                operation,
                ErrorKind.ALREADY_FINALIZED,
                f"Purchase order {order.id} is already {order.status.value.lower()}.",
            )
        if not order.items:
            return self._reject(
                operation, ErrorKind.INVALID_INPUT, f"Purchase order {order.id} has no items."
            )
        missing = [item.part_id for item in order.items if item.part_id not in self.parts]
        if missing:
            return self._reject(
                operation, ErrorKind.NOT_FOUND, f"Parts not found: {', '.join(missing)}."
            )

        for item in order.items:
            part = self.parts.get(item.part_id)
            part.stock_on_hand += item.qty
            self._record_movement(
                part.id,
                PartMovementType.RECEIVE,
                item.qty,
                note=f"Receipt of PO {order.id}",
                po_id=order.id,
            )
        order.status = POStatus.RECEIVED
        self._record_movement(
            order.items[0].part_id,
            PartMovementType.PO_RECEIVED,
            order.total_qty,
            note=f"PO {order.id} received",
            po_id=order.id,
        )
        logger.info("Purchase order %s received (%d units)", order.id, order.total_qty)
        self._notify({PURCHASE_ORDERS, PARTS, MOVEMENTS})
        return OperationResult.success(f"PO {order.id} received.", po_id=order.id)

    def mark_po_sent(self, po_id: str) -> OperationResult:
        operation = "mark_po_sent"
        if not self.permissions.can_create_po:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        order = self.purchase_orders.find(po_id)
        if order is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Purchase order not found.")
        if order.status not in (POStatus.DRAFT, POStatus.ORDERED):
            return self._reject(
                operation,
                ErrorKind.ALREADY_FINALIZED,
                f"Purchase order {order.id} is already {order.status.value.lower()}.",
            )
        if not order.items:
            return self._reject(
                operation, ErrorKind.INVALID_INPUT, f"Purchase order {order.id} has no items."
            )
        order.status = POStatus.ORDERED
        self._record_movement(
            order.items[0].part_id,
            PartMovementType.PO_SENT,
            order.total_qty,
            note=f"PO {order.id} sent to {order.vendor}",
            po_id=order.id,
        )
        self._notify({PURCHASE_ORDERS, MOVEMENTS})
        return OperationResult.success(f"PO {order.id} sent.", po_id=order.id)

    def cancel_po(self, po_id: str) -> OperationResult:
        operation = "cancel_po"
        if not self.permissions.can_create_po:
            return self._reject(operation, ErrorKind.PERMISSION_DENIED, "Insufficient permission.")
        order = self.purchase_orders.find(po_id)
        if order is None:
            return self._reject(operation, ErrorKind.NOT_FOUND, "Purchase order not found.")
        if order.status in (POStatus.RECEIVED, POStatus.CANCELED):
            return self._reject(
                operation,
                ErrorKind.ALREADY_FINALIZED,
                f"Purchase order {order.id} is already {order.status.value.lower()}.",
            )
        order.status = POStatus.CANCELED
        logger.info("Purchase order %s canceled", order.id)
        self._notify({PURCHASE_ORDERS})
        return OperationResult.success(f"PO {order.id} canceled.", po_id=order.id)

    def open_purchase_orders(self) -> List[PurchaseOrder]:
        orders = [
            order
            for order in self.purchase_orders
            if order.status in (POStatus.DRAFT, POStatus.ORDERED)
        ]
        return sorted(orders, key=lambda order: order.eta_date or datetime.max)

    # ------------------------------------------------------------------
    # Logbook
    # ------------------------------------------------------------------
    def add_logbook_entry(
        self,
        logbook_type: LogbookType,
        readings: Mapping[str, Union[int, float, str]],
        notes: str = "",
    ) -> LogbookEntry:
        logbook_type = LogbookType(logbook_type)
        values = {key: float(value) for key, value in readings.items()}
        entry = LogbookEntry(
            id=self._logbook_ids.next(),
            date=self.now(),
            type=logbook_type,
            readings=values,
            user=self.role,
            status=evaluate_readings(values, LOGBOOK_FIELDS[logbook_type]),
            notes=notes,
        )
        self.logbook.add(entry, front=True)
        logger.info("Logbook %s reading %s: %s", logbook_type.value, entry.id, entry.status.value)
        self._notify({LOGBOOK})
        return entry

    def recent_logbook(self, logbook_type: LogbookType, limit: int = 10) -> List[LogbookEntry]:
        entries = [entry for entry in self.logbook if entry.type == LogbookType(logbook_type)]
        return entries[:limit] if limit else entries

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def export_csv(self) -> str:
        """Tickets as comma-joined rows; values are not escaped."""

        rows = [
            ",".join(
                [ticket.id, ticket.room_number, ticket.status.value, ticket.description]
            )
            for ticket in self.tickets
        ]
        return "\n".join([CSV_HEADER, *rows])


__all__ = [
    "OperationsLedger",
    "OperationResult",
    "ErrorKind",
    "LedgerOptions",
    "ReorderSuggestion",
    "IdSequence",
    "find_part_id_by_name",
    "CSV_HEADER",
    "ALL_COLLECTIONS",
]
