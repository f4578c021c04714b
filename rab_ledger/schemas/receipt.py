"""Pydantic schemas for receipts."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ReceiptResponse(BaseModel):
    """Stored receipt metadata."""

    id: int
    expense_id: int | None = None
    transaction_id: int | None = None
    original_filename: str
    content_type: str
    size_bytes: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
