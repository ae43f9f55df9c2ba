"""SQLite-backed key/value persistence for the operations ledger.

Each collection is stored as one JSON document under its own namespaced key,
the way a browser keeps it in local storage. Reading never fails: a missing
or malformed document falls back to the bundled seed data.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, TypeVar, Union

from .domain import (
    AuditEvent,
    Impact,
    InventoryPart,
    LogbookEntry,
    LogbookType,
    MaintenanceType,
    PartCategory,
    PartMovement,
    PartMovementType,
    POStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    ReadingStatus,
    Role,
    Ticket,
    TicketOrigin,
    TicketStatus,
    Urgency,
)
from .scoring import maintenance_type_for
from .seed import initial_parts, initial_purchase_orders, initial_tickets
from .services import (
    ALL_COLLECTIONS,
    INSPECTIONS,
    LOGBOOK,
    MOVEMENTS,
    PARTS,
    PURCHASE_ORDERS,
    TICKETS,
    OperationsLedger,
    find_part_id_by_name,
)

logger = logging.getLogger(__name__)

NAMESPACE = "hotel_ops_demo_"

T = TypeVar("T")


class KeyValueStorage:
    """Local-storage style string store inside a single SQLite table."""

    def __init__(self, connection: sqlite3.Connection, table: str = "storage") -> None:
        self._connection = connection
        self._table = table
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
            "key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        self._connection.commit()

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        cursor = self._connection.execute(
            f"SELECT 1 FROM {self._table} WHERE key = ? LIMIT 1", (key,)
        )
        return cursor.fetchone() is not None

    def get_item(self, key: str) -> Optional[str]:
        cursor = self._connection.execute(
            f"SELECT value FROM {self._table} WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        return None if row is None else row[0]

    def set_item(self, key: str, value: str) -> None:
        self._connection.execute(
            f"INSERT INTO {self._table} (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        self._connection.commit()

    def remove_item(self, key: str) -> None:
        self._connection.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))
        self._connection.commit()

    def keys(self) -> List[str]:
        cursor = self._connection.execute(f"SELECT key FROM {self._table} ORDER BY key")
        return [row[0] for row in cursor.fetchall()]


# ----------------------------------------------------------------------
# JSON encoding
# ----------------------------------------------------------------------
def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON-ready values."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if hasattr(value, "__dataclass_fields__"):
        return to_jsonable(asdict(value))
    return value


def _datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _actor(value: str) -> Union[Role, str]:
    try:
        return Role(value)
    except ValueError:
        return value


def decode_ticket(data: Dict[str, Any]) -> Ticket:
    fields = dict(data)
    for name, enum_type in (
        ("urgency", Urgency),
        ("impact", Impact),
        ("status", TicketStatus),
        ("created_by", Role),
    ):
        fields[name] = enum_type(fields[name])
    if fields.get("maintenance_type"):
        fields["maintenance_type"] = MaintenanceType(fields["maintenance_type"])
    if fields.get("origin"):
        fields["origin"] = TicketOrigin(fields["origin"])
    fields["created_at"] = _datetime(fields["created_at"])
    fields["closed_at"] = _datetime(fields.get("closed_at"))
    fields["history"] = [
        AuditEvent(date=_datetime(event["date"]), action=event["action"], user=_actor(event["user"]))
        for event in fields.get("history", [])
    ]
    fields["notes"] = list(fields.get("notes", []))
    fields.setdefault("maintenance_type", None)
    fields.setdefault("origin", None)
    return Ticket(**fields)


def decode_part(data: Dict[str, Any]) -> InventoryPart:
    fields = dict(data)
    fields["category"] = PartCategory(fields["category"])
    return InventoryPart(**fields)


def decode_purchase_order(data: Dict[str, Any]) -> PurchaseOrder:
    fields = dict(data)
    fields["status"] = POStatus(fields["status"])
    fields["created_at"] = _datetime(fields["created_at"])
    fields["created_by"] = _actor(fields["created_by"])
    fields["eta_date"] = _datetime(fields.get("eta_date"))
    fields["items"] = [PurchaseOrderItem(**item) for item in fields.get("items", [])]
    return PurchaseOrder(**fields)


def decode_movement(data: Dict[str, Any]) -> PartMovement:
    fields = dict(data)
    fields["type"] = PartMovementType(fields["type"])
    fields["date"] = _datetime(fields["date"])
    fields["user"] = _actor(fields["user"])
    return PartMovement(**fields)


def decode_logbook_entry(data: Dict[str, Any]) -> LogbookEntry:
    fields = dict(data)
    fields["type"] = LogbookType(fields["type"])
    fields["status"] = ReadingStatus(fields["status"])
    fields["date"] = _datetime(fields["date"])
    fields["user"] = _actor(fields["user"])
    fields["readings"] = {key: float(value) for key, value in fields["readings"].items()}
    return LogbookEntry(**fields)


def decode_inspections(data: Dict[str, Any]) -> Dict[str, datetime]:
    return {str(room): datetime.fromisoformat(value) for room, value in data.items()}


def migrate_ticket(ticket: Ticket, parts: Iterable[InventoryPart]) -> Ticket:
    """Fill fields older payloads may lack; the ledger recomputes priority on load."""

    if ticket.needs_part and not ticket.part_id and ticket.part_name:
        ticket.part_id = find_part_id_by_name(parts, ticket.part_name)
    if ticket.maintenance_type is None:
        ticket.maintenance_type = maintenance_type_for(ticket.asset)
    if ticket.origin is None:
        ticket.origin = (
            TicketOrigin.GUEST if ticket.created_by == Role.RECEPTION else TicketOrigin.STAFF
        )
    return ticket


class LedgerStorage:
    """Serialization boundary between an ``OperationsLedger`` and storage."""

    def __init__(self, storage: KeyValueStorage, namespace: str = NAMESPACE) -> None:
        self.storage = storage
        self.namespace = namespace

    def key(self, collection: str) -> str:
        return f"{self.namespace}{collection}"

    def _read(self, collection: str, decode: Callable[[Any], T], fallback: T) -> T:
        raw = self.storage.get_item(self.key(collection))
        if raw is None:
            return fallback
        try:
            return decode(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning(
                "Stored %s is unreadable (%s); using seed data instead", collection, exc
            )
            return fallback

    def _read_list(
        self, collection: str, decode: Callable[[Dict[str, Any]], T], fallback: List[T]
    ) -> List[T]:
        return self._read(collection, lambda payload: [decode(item) for item in payload], fallback)

    def load(self, ledger: Optional[OperationsLedger] = None) -> OperationsLedger:
        """Hydrate a ledger from storage, falling back per collection."""

        ledger = ledger or OperationsLedger()
        now = ledger.now()
        parts = self._read_list(PARTS, decode_part, initial_parts())
        tickets = self._read_list(TICKETS, decode_ticket, initial_tickets(now))
        tickets = [migrate_ticket(ticket, parts) for ticket in tickets]
        ledger.replace_state(
            tickets=tickets,
            parts=parts,
            purchase_orders=self._read_list(
                PURCHASE_ORDERS, decode_purchase_order, initial_purchase_orders(now)
            ),
            movements=self._read_list(MOVEMENTS, decode_movement, []),
            logbook=self._read_list(LOGBOOK, decode_logbook_entry, []),
            inspections=self._read(INSPECTIONS, decode_inspections, {}),
            notify=False,
        )
        return ledger

    def save(self, ledger: OperationsLedger, collections: Iterable[str] = ALL_COLLECTIONS) -> None:
        snapshot = ledger.read_model()
        for collection in collections:
            self.storage.set_item(
                self.key(collection), json.dumps(to_jsonable(snapshot[collection]))
            )

    def attach(self, ledger: OperationsLedger) -> Callable[[], None]:
        """Save changed collections after every ledger operation."""

        def on_change(changed: FrozenSet[str]) -> None:
            self.save(ledger, sorted(changed))

        return ledger.subscribe(on_change)

    def clear(self) -> None:
        for collection in ALL_COLLECTIONS:
            self.storage.remove_item(self.key(collection))

    def reset(self, ledger: OperationsLedger) -> None:
        """Drop stored state and put the ledger back on seed data."""

        self.clear()
        ledger.reset_demo_data()


class LedgerDatabase:
    """Convenience facade owning the SQLite connection."""

    def __init__(self, path: str) -> None:
        connection = sqlite3.connect(path, check_same_thread=False)
        self._connection = connection
        self.storage = LedgerStorage(KeyValueStorage(connection))

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "LedgerDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = [
    "NAMESPACE",
    "KeyValueStorage",
    "LedgerStorage",
    "LedgerDatabase",
    "to_jsonable",
    "decode_ticket",
    "decode_part",
    "decode_purchase_order",
    "decode_movement",
    "decode_logbook_entry",
    "migrate_ticket",
]
