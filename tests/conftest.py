"""Shared fixtures: small, isolated ledgers with a frozen clock."""

from datetime import datetime

import pytest

from hotel_ops.domain import Impact, InventoryPart, PartCategory, Role, Urgency
from hotel_ops.services import LedgerOptions, OperationsLedger

FIXED_NOW = datetime(2024, 5, 1, 9, 30)


def build_parts():
    return [
        InventoryPart(
            id="P-001",
            name="Universal Outlet",
            category=PartCategory.ELECTRICAL,
            unit="pc",
            stock_on_hand=1,
            stock_reserved=0,
            min_stock=10,
            preferred_vendor="Local Hardware",
            lead_time_days=2,
            sku="ELE-OUT-UNI",
        ),
        InventoryPart(
            id="P-002",
            name="Sink Gasket Kit",
            category=PartCategory.PLUMBING,
            unit="kit",
            stock_on_hand=5,
            stock_reserved=0,
            min_stock=2,
            sku="PLO-EMP-KIT",
        ),
    ]


@pytest.fixture
def ledger():
    """Ledger with two parts, no tickets, acting as Management."""
    return OperationsLedger(
        parts=build_parts(),
        role=Role.MANAGEMENT,
        options=LedgerOptions(receive_delay_seconds=0),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def make_ticket(ledger):
    """Create tickets through the ledger with sensible defaults."""

    def factory(**overrides):
        fields = dict(
            room_number="101",
            is_occupied=True,
            asset="Electrical",
            issue_type="Broken / Physically Damaged",
            description="Nightstand outlet sparks",
            urgency=Urgency.HIGH,
            impact=Impact.BLOCKING,
        )
        fields.update(overrides)
        return ledger.add_ticket(**fields)

    return factory
