"""Budget allocation (RAB) routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rab_ledger.api.deps import get_request_context
from rab_ledger.schemas.common import MessageResponse
from rab_ledger.schemas.rab_item import (
    RabItemPayload,
    RabItemResponse,
    RabItemUpdatePayload,
    RabSummaryResponse,
)
from rab_ledger.services import get_db
from rab_ledger.services.auth_service import RequestContext, require_program_access
from rab_ledger.services.rab_service import RabService

router = APIRouter(tags=["rab"])


@router.get("/programs/{program_id}/rab-items", response_model=list[RabItemResponse])
def list_rab_items(
    program_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[RabItemResponse]:
    views = RabService(db).list_categories(ctx, program_id)
    return [RabItemResponse.from_view(view) for view in views]


@router.post(
    "/programs/{program_id}/rab-items",
    response_model=RabItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_rab_item(
    program_id: int,
    payload: RabItemPayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> RabItemResponse:
    """
    Add a budget category to a draft program.

    Returns:
        201: RabItemResponse
        409: Program is no longer a draft
        422: Invalid name, volume or unit price
    """
    service = RabService(db)
    item = service.create_category(
        ctx,
        program_id,
        name=payload.name,
        volume=payload.volume,
        unit_price=payload.unit_price,
        category=payload.category,
        unit=payload.unit,
        notes=payload.notes,
    )
    return RabItemResponse.from_view(service.view(item))


@router.get("/programs/{program_id}/rab-summary", response_model=RabSummaryResponse)
def get_rab_summary(
    program_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> RabSummaryResponse:
    return RabSummaryResponse.from_summary(RabService(db).get_summary(ctx, program_id))


@router.get("/rab-items/{item_id}", response_model=RabItemResponse)
def get_rab_item(
    item_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> RabItemResponse:
    service = RabService(db)
    item = service.get_by_id(item_id)
    require_program_access(db, ctx, item.program)
    return RabItemResponse.from_view(service.view(item))


@router.put("/rab-items/{item_id}", response_model=RabItemResponse)
def update_rab_item(
    item_id: int,
    payload: RabItemUpdatePayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> RabItemResponse:
    service = RabService(db)
    item = service.update_category(
        ctx,
        item_id,
        name=payload.name,
        volume=payload.volume,
        unit_price=payload.unit_price,
        category=payload.category,
        unit=payload.unit,
        notes=payload.notes,
    )
    return RabItemResponse.from_view(service.view(item))


@router.delete("/rab-items/{item_id}", response_model=MessageResponse)
def delete_rab_item(
    item_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MessageResponse:
    RabService(db).delete_category(ctx, item_id)
    return MessageResponse(message=f"RAB item {item_id} deleted")
