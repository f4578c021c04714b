"""Pydantic schemas for programs and rosters."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from rab_ledger.models.program import MemberRole, ProgramMember, ProgramStatus
from rab_ledger.services.program_service import ProgramListing


class ProgramCreatePayload(BaseModel):
    """Payload for POST /api/programs."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    period_start: date
    period_end: date | None = None


class ProgramUpdatePayload(BaseModel):
    """Payload for PUT /api/programs/{program_id}. Omitted fields are unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    period_start: date | None = None
    period_end: date | None = None


class ProgramStatusPayload(BaseModel):
    """Payload for PUT /api/programs/{program_id}/status."""

    status: ProgramStatus


class ProgramResponse(BaseModel):
    """Program with roster size."""

    id: int
    name: str
    description: str | None = None
    status: ProgramStatus
    period_start: date
    period_end: date | None = None
    created_by_id: int | None = None
    member_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_listing(cls, listing: ProgramListing) -> "ProgramResponse":
        response = cls.model_validate(listing.program)
        response.member_count = listing.member_count
        return response


class MemberPayload(BaseModel):
    """Payload for POST /api/programs/{program_id}/members."""

    user_id: int
    role: MemberRole = MemberRole.ANGGOTA


class MemberResponse(BaseModel):
    """Roster entry."""

    user_id: int
    name: str
    email: str
    role: MemberRole
    joined_at: datetime

    @classmethod
    def from_member(cls, member: ProgramMember) -> "MemberResponse":
        return cls(
            user_id=member.user_id,
            name=member.user.name,
            email=member.user.email,
            role=member.role,
            joined_at=member.created_at,
        )
