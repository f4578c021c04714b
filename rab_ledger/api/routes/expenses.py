"""Expense claim routes: submission, listing and the approval decision."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from rab_ledger.api.deps import get_request_context
from rab_ledger.api.routes.receipts import to_uploaded_file
from rab_ledger.models.expense import ExpenseStatus
from rab_ledger.schemas.common import MessageResponse
from rab_ledger.schemas.expense import ExpenseListResponse, ExpenseResponse, RejectPayload
from rab_ledger.services import get_db
from rab_ledger.services.approval_service import ApprovalService
from rab_ledger.services.auth_service import RequestContext
from rab_ledger.services.ledger_service import ClaimFilter, LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["expenses"])


@router.get("/programs/{program_id}/expenses", response_model=ExpenseListResponse)
def list_expenses(
    program_id: int,
    status_filter: ExpenseStatus | None = Query(None, alias="status"),
    search: str | None = None,
    rab_item_id: int | None = None,
    submitted_by: int | None = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ExpenseListResponse:
    """List claims of a program, newest submission first."""
    listing = LedgerService(db).list_claims(
        ctx,
        program_id,
        ClaimFilter(
            status=status_filter,
            search_term=search,
            rab_item_id=rab_item_id,
            submitted_by_id=submitted_by,
        ),
    )
    expenses = [ExpenseResponse.from_expense(expense) for expense in listing]
    return ExpenseListResponse(expenses=expenses, total=len(expenses))


@router.post(
    "/programs/{program_id}/expenses",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_expense(
    program_id: int,
    rab_item_id: int = Form(...),
    amount: Decimal = Form(...),
    description: str = Form(...),
    transaction_date: date = Form(...),
    receipts: list[UploadFile] = File(..., description="One or more receipt files"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ExpenseResponse:
    """
    Submit a pending expense claim with its receipts (multipart form).

    Returns:
        201: ExpenseResponse in pending status
        403: Caller is not on the program roster
        409: Program is not active
        422: Invalid amount, missing description or bad receipt
    """
    expense = LedgerService(db).submit_expense_claim(
        ctx,
        program_id,
        rab_item_id=rab_item_id,
        amount=amount,
        description=description,
        transaction_date=transaction_date,
        receipts=[to_uploaded_file(upload) for upload in receipts],
    )
    return ExpenseResponse.from_expense(expense)


@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ExpenseResponse:
    return ExpenseResponse.from_expense(LedgerService(db).get_claim(ctx, expense_id))


@router.delete("/expenses/{expense_id}", response_model=MessageResponse)
def delete_expense(
    expense_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MessageResponse:
    LedgerService(db).delete_claim(ctx, expense_id)
    return MessageResponse(message=f"Expense {expense_id} deleted")


@router.put("/expenses/{expense_id}/approve", response_model=ExpenseResponse)
def approve_expense(
    expense_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ExpenseResponse:
    """
    Approve a pending claim (administrators only).

    Returns:
        200: ExpenseResponse in approved status
        409: budget_exceeded, or invalid_state if already decided
        503: Database busy; safe to retry
    """
    expense = ApprovalService(db).approve(ctx, expense_id)
    return ExpenseResponse.from_expense(expense)


@router.put("/expenses/{expense_id}/reject", response_model=ExpenseResponse)
def reject_expense(
    expense_id: int,
    payload: RejectPayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ExpenseResponse:
    """
    Reject a pending claim with a note (administrators only).

    Returns:
        200: ExpenseResponse in rejected status
        409: Already decided
        422: Missing rejection note
    """
    expense = ApprovalService(db).reject(ctx, expense_id, payload.rejection_note)
    return ExpenseResponse.from_expense(expense)
