"""Pydantic schemas for transactions."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from rab_ledger.models.transaction import TransactionType
from rab_ledger.schemas.receipt import ReceiptResponse


class AllocationPayload(BaseModel):
    """One RAB allocation of an expense transaction."""

    rab_item_id: int
    amount: Decimal


class TransactionCreatePayload(BaseModel):
    """Payload for POST /api/programs/{program_id}/transactions."""

    type: TransactionType
    amount: Decimal
    transaction_date: date
    description: str | None = Field(None, max_length=2000)
    rab_allocations: list[AllocationPayload] = Field(default_factory=list)


class AllocationResponse(BaseModel):
    rab_item_id: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    """Recorded transaction."""

    id: int
    program_id: int
    type: TransactionType
    amount: Decimal
    transaction_date: date
    description: str | None = None
    created_by_id: int | None = None
    rab_allocations: list[AllocationResponse] = Field(
        default_factory=list, validation_alias="allocations"
    )
    receipts: list[ReceiptResponse] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
