"""Pydantic schemas for RAB items."""

from decimal import Decimal

from pydantic import BaseModel, Field

from rab_ledger.models.rab_item import FulfilmentStatus
from rab_ledger.services.rab_service import CategoryView, RabSummary


class RabItemPayload(BaseModel):
    """Payload for POST /api/programs/{program_id}/rab-items."""

    name: str = Field(..., min_length=1, max_length=255)
    category: str | None = Field(None, max_length=100)
    unit: str | None = Field(None, max_length=50)
    volume: Decimal
    unit_price: Decimal
    notes: str | None = None


class RabItemUpdatePayload(BaseModel):
    """Payload for PUT /api/rab-items/{item_id}. Omitted fields are unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    category: str | None = Field(None, max_length=100)
    unit: str | None = Field(None, max_length=50)
    volume: Decimal | None = None
    unit_price: Decimal | None = None
    notes: str | None = None


class RabItemResponse(BaseModel):
    """RAB item with allocated/spent/remaining figures."""

    id: int
    program_id: int
    name: str
    category: str | None = None
    unit: str | None = None
    volume: Decimal
    unit_price: Decimal
    total_budget: Decimal
    realized_amount: Decimal
    remaining_budget: Decimal
    status: FulfilmentStatus
    utilization_percentage: float
    notes: str | None = None

    @classmethod
    def from_view(cls, view: CategoryView) -> "RabItemResponse":
        item = view.item
        return cls(
            id=item.id,
            program_id=item.program_id,
            name=item.name,
            category=item.category,
            unit=item.unit,
            volume=item.volume,
            unit_price=item.unit_price,
            total_budget=view.allocated,
            realized_amount=view.spent,
            remaining_budget=view.remaining,
            status=view.status,
            utilization_percentage=view.utilization,
            notes=item.notes,
        )


class RabSummaryResponse(BaseModel):
    """Totals over a program's RAB."""

    program_id: int
    item_count: int
    total_budget: Decimal
    total_realized: Decimal
    total_remaining: Decimal
    utilization_percentage: float

    @classmethod
    def from_summary(cls, summary: RabSummary) -> "RabSummaryResponse":
        return cls(
            program_id=summary.program_id,
            item_count=summary.item_count,
            total_budget=summary.total_budget,
            total_realized=summary.total_realized,
            total_remaining=summary.total_remaining,
            utilization_percentage=summary.utilization,
        )
