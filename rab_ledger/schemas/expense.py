"""Pydantic schemas for expense claims."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from rab_ledger.models.expense import Expense, ExpenseStatus
from rab_ledger.schemas.receipt import ReceiptResponse


class RejectPayload(BaseModel):
    """Payload for PUT /api/expenses/{expense_id}/reject."""

    rejection_note: str | None = Field(None, description="Reason shown to the submitter")


class ExpenseResponse(BaseModel):
    """Expense claim."""

    id: int
    program_id: int
    rab_item_id: int
    rab_item_name: str | None = None
    submitted_by_id: int
    submitter_name: str | None = None
    amount: Decimal
    description: str
    transaction_date: date
    status: ExpenseStatus
    rejection_note: str | None = None
    decided_by_id: int | None = None
    decided_at: datetime | None = None
    receipts: list[ReceiptResponse] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_expense(cls, expense: Expense) -> "ExpenseResponse":
        response = cls.model_validate(expense)
        response.rab_item_name = expense.rab_item.name if expense.rab_item else None
        response.submitter_name = expense.submitter.name if expense.submitter else None
        return response


class ExpenseListResponse(BaseModel):
    """Filtered claim list."""

    expenses: list[ExpenseResponse]
    total: int
