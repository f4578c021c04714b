"""Ledger transaction routes."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rab_ledger.api.deps import get_request_context
from rab_ledger.models.transaction import TransactionType
from rab_ledger.schemas.common import MessageResponse
from rab_ledger.schemas.transaction import TransactionCreatePayload, TransactionResponse
from rab_ledger.services import get_db
from rab_ledger.services.auth_service import RequestContext
from rab_ledger.services.ledger_service import AllocationInput, LedgerService

router = APIRouter(tags=["transactions"])


@router.get("/programs/{program_id}/transactions", response_model=list[TransactionResponse])
def list_transactions(
    program_id: int,
    type_filter: TransactionType | None = Query(None, alias="type"),
    search: str | None = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[TransactionResponse]:
    transactions = LedgerService(db).list_transactions(
        ctx, program_id, type=type_filter, search=search
    )
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.post(
    "/programs/{program_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_transaction(
    program_id: int,
    payload: TransactionCreatePayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> TransactionResponse:
    """
    Record a settled income or expense.

    Returns:
        201: TransactionResponse
        409: Program is closed or cancelled
        422: Non-positive amount or allocations not matching the amount
    """
    transaction = LedgerService(db).record_transaction(
        ctx,
        program_id,
        type=payload.type,
        amount=payload.amount,
        transaction_date=payload.transaction_date,
        description=payload.description,
        allocations=[
            AllocationInput(rab_item_id=a.rab_item_id, amount=a.amount)
            for a in payload.rab_allocations
        ],
    )
    return TransactionResponse.model_validate(transaction)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> TransactionResponse:
    return TransactionResponse.model_validate(LedgerService(db).get_transaction(ctx, transaction_id))


@router.delete("/transactions/{transaction_id}", response_model=MessageResponse)
def delete_transaction(
    transaction_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MessageResponse:
    LedgerService(db).delete_transaction(ctx, transaction_id)
    return MessageResponse(message=f"Transaction {transaction_id} deleted")
