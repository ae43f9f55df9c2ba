"""Hotel operations ledger: maintenance tickets, spare parts and purchasing.

This package provides the data model, an in-memory ledger that is the only
write path into tickets, stock, purchase orders and the movement log, and a
JSON persistence boundary for the hotel maintenance demo.
"""

from .domain import (
    Impact,
    InventoryPart,
    PartMovement,
    PartMovementType,
    POStatus,
    PurchaseOrder,
    Role,
    Ticket,
    TicketStatus,
    Urgency,
)
from .services import ErrorKind, LedgerOptions, OperationResult, OperationsLedger

__all__ = [
    "Impact",
    "InventoryPart",
    "PartMovement",
    "PartMovementType",
    "POStatus",
    "PurchaseOrder",
    "Role",
    "Ticket",
    "TicketStatus",
    "Urgency",
    "ErrorKind",
    "LedgerOptions",
    "OperationResult",
    "OperationsLedger",
]
