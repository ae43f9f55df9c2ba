"""FastAPI-based collaborator surface for the operations ledger.

The UI talks to the ledger only through these routes: it reads the combined
read model and invokes ledger operations; it never edits collections itself.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ..domain import Impact, LogbookType, Role, TicketOrigin, TicketStatus, Urgency
from ..scoring import is_flame_tier, stock_badge
from ..seed import ASSETS, CHECKLIST_ROOM_EXIT, ISSUE_TYPES, LOGBOOK_FIELDS, ROOMS
from ..services import ErrorKind, LedgerOptions, OperationResult, OperationsLedger
from ..storage import LedgerDatabase, to_jsonable

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.ALREADY_FINALIZED: 409,
    ErrorKind.INVALID_INPUT: 422,
}


class RoleIn(BaseModel):
    role: Role


class TicketIn(BaseModel):
    room_number: str
    is_occupied: bool = False
    asset: str
    issue_type: str
    description: str = ""
    urgency: Urgency = Urgency.MEDIUM
    impact: Impact = Impact.ANNOYING
    status: Optional[TicketStatus] = None
    origin: Optional[TicketOrigin] = None
    notes: list[str] = Field(default_factory=list)
    needs_part: bool = False
    part_id: Optional[str] = None
    part_name: Optional[str] = None
    part_qty: Optional[int] = None


class TicketUpdateIn(BaseModel):
    updates: Dict[str, Any]
    action: str


class CannibalizeIn(BaseModel):
    donor_room: str
    part_name: str


class ReserveIn(BaseModel):
    part_id: str
    qty: float = 1


class NoteIn(BaseModel):
    note: Optional[str] = None


class AssignIn(BaseModel):
    technician: str


class EscalateIn(BaseModel):
    vendor_type: str


class ResolveIn(BaseModel):
    time_spent_minutes: Optional[int] = None
    evidence_photo_url: Optional[str] = None


class VerifyIn(BaseModel):
    verified_by: str


class AdjustIn(BaseModel):
    delta: float
    note: Optional[str] = None


class PurchaseOrderIn(BaseModel):
    qty: float = 1
    vendor: Optional[str] = None
    eta_days: Optional[int] = None
    ticket_id: Optional[str] = None


class LogbookIn(BaseModel):
    type: LogbookType
    readings: Dict[str, float]
    notes: str = ""


class FindingIn(BaseModel):
    asset: str
    issue_type: str
    urgency: Urgency = Urgency.MEDIUM
    description: str = ""
    part_id: Optional[str] = None


def _ledger(request: Request) -> OperationsLedger:
    return request.app.state.ledger


def _respond(result: OperationResult) -> Dict[str, Any]:
    if not result.ok:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(result.kind, 400),
            detail=result.as_dict(),
        )
    return result.as_dict()


def create_app(
    database_path: str = "hotel_ops.sqlite3",
    *,
    options: Optional[LedgerOptions] = None,
) -> FastAPI:
    database = LedgerDatabase(database_path)
    ledger = database.storage.load(OperationsLedger(options=options))
    database.storage.attach(ledger)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        database.close()

    app = FastAPI(title="Hotel Operations Ledger", lifespan=lifespan)
    app.state.ledger = ledger
    app.state.database = database

    @app.get("/state")
    async def state(request: Request):
        ledger = _ledger(request)
        model = to_jsonable(ledger.read_model())
        threshold = ledger.options.flame_threshold
        for ticket in model["tickets"]:
            ticket["flame"] = is_flame_tier(ticket["priority_score"], threshold)
        for part, raw in zip(model["parts"], ledger.parts):
            part["badge"] = stock_badge(raw)
        return model

    @app.get("/catalog")
    async def catalog():
        return {
            "rooms": to_jsonable(list(ROOMS)),
            "assets": list(ASSETS),
            "issue_types": list(ISSUE_TYPES),
            "checklist": [{"key": key, "label": label} for key, label in CHECKLIST_ROOM_EXIT],
            "logbook_fields": {
                logbook_type.value: to_jsonable(list(limits))
                for logbook_type, limits in LOGBOOK_FIELDS.items()
            },
        }

    @app.put("/role")
    async def set_role(payload: RoleIn, request: Request):
        ledger = _ledger(request)
        ledger.set_role(payload.role)
        return {"role": ledger.role.value, "permissions": to_jsonable(ledger.permissions)}

    @app.post("/tickets", status_code=201)
    async def create_ticket(payload: TicketIn, request: Request):
        ticket = _ledger(request).add_ticket(**payload.model_dump())
        return to_jsonable(ticket)

    @app.patch("/tickets/{ticket_id}")
    async def update_ticket(ticket_id: str, payload: TicketUpdateIn, request: Request):
        try:
            ticket = _ledger(request).update_ticket(ticket_id, payload.updates, payload.action)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if ticket is None:
            raise HTTPException(status_code=404, detail="Ticket not found.")
        return to_jsonable(ticket)

    @app.post("/tickets/{ticket_id}/cannibalize")
    async def cannibalize(ticket_id: str, payload: CannibalizeIn, request: Request):
        return _respond(
            _ledger(request).cannibalize_part(ticket_id, payload.donor_room, payload.part_name)
        )

    @app.post("/tickets/{ticket_id}/assign")
    async def assign(ticket_id: str, payload: AssignIn, request: Request):
        return _respond(_ledger(request).assign_ticket(ticket_id, payload.technician))

    @app.post("/tickets/{ticket_id}/notes")
    async def add_note(ticket_id: str, payload: NoteIn, request: Request):
        return _respond(_ledger(request).add_note(ticket_id, payload.note or ""))

    @app.post("/tickets/{ticket_id}/escalate")
    async def escalate(ticket_id: str, payload: EscalateIn, request: Request):
        return _respond(_ledger(request).escalate_to_vendor(ticket_id, payload.vendor_type))

    @app.post("/tickets/{ticket_id}/resolve")
    async def resolve(ticket_id: str, payload: ResolveIn, request: Request):
        return _respond(
            _ledger(request).resolve_ticket(
                ticket_id,
                time_spent_minutes=payload.time_spent_minutes,
                evidence_photo_url=payload.evidence_photo_url,
            )
        )

    @app.post("/tickets/{ticket_id}/verify")
    async def verify(ticket_id: str, payload: VerifyIn, request: Request):
        return _respond(_ledger(request).verify_ticket(ticket_id, payload.verified_by))

    @app.post("/tickets/{ticket_id}/reserve")
    async def reserve(ticket_id: str, payload: ReserveIn, request: Request):
        return _respond(
            _ledger(request).reserve_part_for_ticket(ticket_id, payload.part_id, payload.qty)
        )

    @app.post("/tickets/{ticket_id}/release")
    async def release(ticket_id: str, payload: NoteIn, request: Request):
        return _respond(_ledger(request).release_reservation_for_ticket(ticket_id, payload.note))

    @app.post("/tickets/{ticket_id}/issue")
    async def issue(ticket_id: str, payload: NoteIn, request: Request):
        return _respond(_ledger(request).issue_reserved_part_for_ticket(ticket_id, payload.note))

    @app.post("/parts/{part_id}/adjust")
    async def adjust(part_id: str, payload: AdjustIn, request: Request):
        return _respond(_ledger(request).adjust_stock(part_id, payload.delta, payload.note))

    @app.post("/parts/{part_id}/purchase-orders", status_code=201)
    async def create_purchase_order(part_id: str, payload: PurchaseOrderIn, request: Request):
        return _respond(
            _ledger(request).create_po_for_part(
                part_id,
                payload.qty,
                vendor=payload.vendor,
                eta_days=payload.eta_days,
                ticket_id=payload.ticket_id,
            )
        )

    @app.post("/purchase-orders/{po_id}/receive")
    async def receive_purchase_order(po_id: str, request: Request):
        ledger = _ledger(request)
        # Simulated warehouse latency; the receipt itself is synchronous.
        await asyncio.sleep(ledger.options.receive_delay_seconds)
        return _respond(ledger.receive_po(po_id))

    @app.post("/purchase-orders/{po_id}/send")
    async def send_purchase_order(po_id: str, request: Request):
        return _respond(_ledger(request).mark_po_sent(po_id))

    @app.post("/purchase-orders/{po_id}/cancel")
    async def cancel_purchase_order(po_id: str, request: Request):
        return _respond(_ledger(request).cancel_po(po_id))

    @app.get("/reorder-suggestions")
    async def reorder_suggestions(request: Request):
        return [
            {
                "part": to_jsonable(suggestion.part),
                "waiting_qty": suggestion.waiting_qty,
                "suggested_qty": suggestion.suggested_qty,
                "ticket_ids": [ticket.id for ticket in suggestion.tickets],
            }
            for suggestion in _ledger(request).reorder_suggestions()
        ]

    @app.post("/logbook", status_code=201)
    async def add_logbook_entry(payload: LogbookIn, request: Request):
        entry = _ledger(request).add_logbook_entry(payload.type, payload.readings, payload.notes)
        return to_jsonable(entry)

    @app.post("/inspections/{room_number}")
    async def register_inspection(room_number: str, request: Request):
        inspected_at = _ledger(request).register_inspection(room_number)
        return {"room_number": room_number, "inspected_at": inspected_at.isoformat()}

    @app.post("/inspections/{room_number}/findings", status_code=201)
    async def report_finding(room_number: str, payload: FindingIn, request: Request):
        return _respond(
            _ledger(request).report_inspection_finding(
                room_number,
                payload.asset,
                payload.issue_type,
                payload.urgency,
                description=payload.description,
                part_id=payload.part_id,
            )
        )

    @app.post("/reset")
    async def reset(request: Request):
        request.app.state.database.storage.reset(_ledger(request))
        return {"ok": True, "message": "Demo data restored."}

    @app.get("/export.csv")
    async def export_csv(request: Request):
        return PlainTextResponse(
            _ledger(request).export_csv(),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=report.csv"},
        )

    logger.info("Hotel operations app ready (database %s)", database_path)
    return app


__all__ = ["create_app", "ERROR_STATUS_CODES"]
