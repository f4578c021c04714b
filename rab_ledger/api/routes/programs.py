"""Program registry routes: programs, roster, status, dashboard and audit log."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rab_ledger.api.deps import get_request_context
from rab_ledger.models.program import Program, ProgramStatus
from rab_ledger.schemas.audit import AuditLogResponse
from rab_ledger.schemas.common import MessageResponse
from rab_ledger.schemas.dashboard import DashboardResponse
from rab_ledger.schemas.program import (
    MemberPayload,
    MemberResponse,
    ProgramCreatePayload,
    ProgramResponse,
    ProgramStatusPayload,
    ProgramUpdatePayload,
)
from rab_ledger.services import get_db
from rab_ledger.services.audit_service import AuditService
from rab_ledger.services.auth_service import RequestContext, require_program_manager
from rab_ledger.services.dashboard_service import DashboardService
from rab_ledger.services.program_service import ProgramService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/programs", tags=["programs"])


def _program_response(program: Program) -> ProgramResponse:
    response = ProgramResponse.model_validate(program)
    response.member_count = len(program.members)
    return response


@router.get("", response_model=list[ProgramResponse])
def list_programs(
    status_filter: ProgramStatus | None = Query(None, alias="status"),
    search: str | None = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[ProgramResponse]:
    """List programs visible to the caller."""
    listings = ProgramService(db).list_programs(ctx, status=status_filter, search=search)
    return [ProgramResponse.from_listing(listing) for listing in listings]


@router.post("", response_model=ProgramResponse, status_code=status.HTTP_201_CREATED)
def create_program(
    payload: ProgramCreatePayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ProgramResponse:
    """
    Create a program in draft status (administrators only).

    Returns:
        201: ProgramResponse
        403: Caller is not an administrator
        422: Invalid name or period
    """
    program = ProgramService(db).create_program(
        ctx,
        name=payload.name,
        period_start=payload.period_start,
        period_end=payload.period_end,
        description=payload.description,
    )
    return _program_response(program)


@router.get("/{program_id}", response_model=ProgramResponse)
def get_program(
    program_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ProgramResponse:
    return _program_response(ProgramService(db).get_for(ctx, program_id))


@router.put("/{program_id}", response_model=ProgramResponse)
def update_program(
    program_id: int,
    payload: ProgramUpdatePayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ProgramResponse:
    program = ProgramService(db).update_program(
        ctx,
        program_id,
        name=payload.name,
        period_start=payload.period_start,
        period_end=payload.period_end,
        description=payload.description,
    )
    return _program_response(program)


@router.put("/{program_id}/status", response_model=ProgramResponse)
def change_status(
    program_id: int,
    payload: ProgramStatusPayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ProgramResponse:
    """
    Move a program along its lifecycle.

    Returns:
        200: ProgramResponse
        409: Transition not allowed from the current status
    """
    program = ProgramService(db).change_status(ctx, program_id, payload.status)
    return _program_response(program)


@router.delete("/{program_id}", response_model=MessageResponse)
def delete_program(
    program_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MessageResponse:
    ProgramService(db).delete_program(ctx, program_id)
    return MessageResponse(message=f"Program {program_id} deleted")


@router.get("/{program_id}/members", response_model=list[MemberResponse])
def list_members(
    program_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[MemberResponse]:
    members = ProgramService(db).list_members(ctx, program_id)
    return [MemberResponse.from_member(member) for member in members]


@router.post(
    "/{program_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED
)
def add_member(
    program_id: int,
    payload: MemberPayload,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MemberResponse:
    """
    Add a user to the roster.

    Returns:
        201: MemberResponse
        409: Already a member, or the roster is full
    """
    member = ProgramService(db).add_member(ctx, program_id, payload.user_id, payload.role)
    return MemberResponse.from_member(member)


@router.delete("/{program_id}/members/{user_id}", response_model=MessageResponse)
def remove_member(
    program_id: int,
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MessageResponse:
    ProgramService(db).remove_member(ctx, program_id, user_id)
    return MessageResponse(message=f"User {user_id} removed from program {program_id}")


@router.get("/{program_id}/dashboard", response_model=DashboardResponse)
def get_dashboard(
    program_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    """Program totals, per-category breakdown and per-member approved spend."""
    return DashboardResponse.from_dashboard(DashboardService(db).get_dashboard(ctx, program_id))


@router.get("/{program_id}/audit-logs", response_model=list[AuditLogResponse])
def list_audit_logs(
    program_id: int,
    entity_type: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[AuditLogResponse]:
    """Audit trail of a program (program managers only)."""
    program = ProgramService(db).get_by_id(program_id)
    require_program_manager(db, ctx, program)
    entries = AuditService.list_for_program(db, program.id, entity_type=entity_type, limit=limit)
    return [AuditLogResponse.model_validate(entry) for entry in entries]
