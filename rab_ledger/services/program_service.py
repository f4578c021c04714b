"""Program registry: programs, lifecycle transitions and member rosters."""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rab_ledger.config import settings
from rab_ledger.errors import Conflict, InvalidState, NotFound, ValidationError
from rab_ledger.models.program import MemberRole, Program, ProgramMember, ProgramStatus
from rab_ledger.models.user import User
from rab_ledger.services import commit_or_rollback
from rab_ledger.services.audit_service import AuditService
from rab_ledger.services.auth_service import (
    RequestContext,
    require_admin,
    require_program_access,
    require_program_manager,
)
from rab_ledger.services.receipt_service import ReceiptStorage

logger = logging.getLogger(__name__)


@dataclass
class ProgramListing:
    """Program with its roster size, for list views."""

    program: Program
    member_count: int


class ProgramService:
    """Service for program database operations.

    Encapsulates Program and ProgramMember CRUD plus the status state
    machine. Budget lines live in RabService; this service only decides
    whether the program is still a draft.
    """

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def get_by_id(self, program_id: int) -> Program:
        """Get program by ID.

        Raises:
            NotFound: If the program does not exist
        """
        program = self.db.get(Program, program_id)
        if program is None:
            raise NotFound(f"Program {program_id} not found")
        return program

    def get_for(self, ctx: RequestContext, program_id: int) -> Program:
        """Get a program the caller is allowed to see."""
        program = self.get_by_id(program_id)
        require_program_access(self.db, ctx, program)
        return program

    def list_programs(
        self,
        ctx: RequestContext,
        status: ProgramStatus | None = None,
        search: str | None = None,
    ) -> list[ProgramListing]:
        """List programs visible to the caller, newest period first.

        Admins see every program; members see the programs they belong to.
        """
        member_count = (
            self.db.query(ProgramMember.program_id, func.count(ProgramMember.id).label("n"))
            .group_by(ProgramMember.program_id)
            .subquery()
        )
        query = self.db.query(Program, func.coalesce(member_count.c.n, 0)).outerjoin(
            member_count, member_count.c.program_id == Program.id
        )
        if not ctx.is_admin:
            query = query.join(ProgramMember, ProgramMember.program_id == Program.id).filter(
                ProgramMember.user_id == ctx.user_id
            )
        if status is not None:
            query = query.filter(Program.status == status)
        if search:
            query = query.filter(Program.name.ilike(f"%{search.strip()}%"))

        rows = query.order_by(Program.period_start.desc(), Program.id.desc()).all()
        return [ProgramListing(program=program, member_count=count) for program, count in rows]

    def create_program(
        self,
        ctx: RequestContext,
        name: str,
        period_start: date,
        period_end: date | None = None,
        description: str | None = None,
    ) -> Program:
        """Create a new program in DRAFT status.

        Raises:
            Forbidden: Caller is not an administrator
            ValidationError: Empty name or period ends before it starts
        """
        require_admin(ctx)
        self._validate_fields(name, period_start, period_end)

        program = Program(
            name=name.strip(),
            description=description,
            period_start=period_start,
            period_end=period_end,
            status=ProgramStatus.DRAFT,
            created_by_id=ctx.user_id,
        )
        self.db.add(program)
        self.db.flush()
        AuditService.log(
            self.db, "program", program.id, "create", ctx.user_id, program_id=program.id
        )
        commit_or_rollback(self.db)
        self.db.refresh(program)

        logger.info(
            "Created program: id=%d, name=%s, period=%s to %s",
            program.id,
            program.name,
            period_start,
            period_end,
        )
        return program

    def update_program(
        self,
        ctx: RequestContext,
        program_id: int,
        name: str | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        description: str | None = None,
    ) -> Program:
        """Update descriptive fields of a non-terminal program."""
        program = self.get_by_id(program_id)
        require_program_manager(self.db, ctx, program)
        if program.is_terminal:
            raise InvalidState(f"Program {program_id} is {program.status.value} and cannot be edited")

        new_name = program.name if name is None else name
        new_start = program.period_start if period_start is None else period_start
        new_end = program.period_end if period_end is None else period_end
        self._validate_fields(new_name, new_start, new_end)

        changes = {}
        if new_name.strip() != program.name:
            changes["name"] = new_name.strip()
        if new_start != program.period_start:
            changes["period_start"] = new_start.isoformat()
        if new_end != program.period_end:
            changes["period_end"] = new_end.isoformat() if new_end else None
        if description is not None and description != program.description:
            changes["description"] = description

        program.name = new_name.strip()
        program.period_start = new_start
        program.period_end = new_end
        if description is not None:
            program.description = description

        if changes:
            AuditService.log(
                self.db, "program", program.id, "update", ctx.user_id, changes, program.id
            )
        commit_or_rollback(self.db)
        self.db.refresh(program)
        logger.info("Updated program %d: %s", program.id, sorted(changes))
        return program

    def change_status(
        self, ctx: RequestContext, program_id: int, new_status: ProgramStatus
    ) -> Program:
        """Move a program along its lifecycle.

        DRAFT -> ACTIVE freezes the RAB. CLOSED and CANCELLED are terminal.

        Raises:
            InvalidState: Transition not allowed from the current status
        """
        require_admin(ctx)
        program = self.get_by_id(program_id)
        if not program.can_transition_to(new_status):
            raise InvalidState(
                f"Cannot change program {program_id} from {program.status.value} "
                f"to {new_status.value}",
                {"from": program.status.value, "to": new_status.value},
            )

        old_status = program.status
        program.status = new_status
        AuditService.log(
            self.db,
            "program",
            program.id,
            "status_change",
            ctx.user_id,
            {"from": old_status.value, "to": new_status.value},
            program.id,
        )
        commit_or_rollback(self.db)
        self.db.refresh(program)
        logger.info(
            "Program %d status %s -> %s by user %d",
            program.id,
            old_status.value,
            new_status.value,
            ctx.user_id,
        )
        return program

    def delete_program(self, ctx: RequestContext, program_id: int) -> None:
        """Delete a DRAFT program with everything it owns."""
        require_admin(ctx)
        program = self.get_by_id(program_id)
        if not program.is_draft:
            raise InvalidState(f"Only draft programs can be deleted (status: {program.status.value})")

        paths = [r.file_path for t in program.transactions for r in t.receipts]
        self.db.delete(program)
        commit_or_rollback(self.db)
        storage = ReceiptStorage()
        for path in paths:
            storage.remove(path)
        logger.info("Deleted program %d by user %d", program_id, ctx.user_id)

    # Members

    def list_members(self, ctx: RequestContext, program_id: int) -> list[ProgramMember]:
        program = self.get_for(ctx, program_id)
        return (
            self.db.query(ProgramMember)
            .filter(ProgramMember.program_id == program.id)
            .order_by(ProgramMember.created_at, ProgramMember.id)
            .all()
        )

    def add_member(
        self,
        ctx: RequestContext,
        program_id: int,
        user_id: int,
        role: MemberRole = MemberRole.ANGGOTA,
    ) -> ProgramMember:
        """Add a user to a program roster.

        Raises:
            NotFound: Program or user does not exist
            InvalidState: Program is closed or cancelled
            Conflict: User already on the roster, or roster is full
        """
        program = self.get_by_id(program_id)
        require_program_manager(self.db, ctx, program)
        if program.is_terminal:
            raise InvalidState(f"Program {program_id} is {program.status.value}")

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")

        members = self.db.query(ProgramMember).filter(ProgramMember.program_id == program_id)
        if members.filter(ProgramMember.user_id == user_id).first():
            raise Conflict(f"User {user_id} is already a member of program {program_id}")
        if members.count() >= settings.max_program_members:
            raise Conflict(
                f"Program {program_id} already has {settings.max_program_members} members"
            )

        member = ProgramMember(program_id=program_id, user_id=user_id, role=role)
        self.db.add(member)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict(f"User {user_id} is already a member of program {program_id}") from e

        AuditService.log(
            self.db,
            "program_member",
            member.id,
            "add",
            ctx.user_id,
            {"user_id": user_id, "role": role.value},
            program_id,
        )
        commit_or_rollback(self.db)
        self.db.refresh(member)
        logger.info("Added user %d to program %d as %s", user_id, program_id, role.value)
        return member

    def remove_member(self, ctx: RequestContext, program_id: int, user_id: int) -> None:
        program = self.get_by_id(program_id)
        require_program_manager(self.db, ctx, program)

        member = (
            self.db.query(ProgramMember)
            .filter(ProgramMember.program_id == program_id, ProgramMember.user_id == user_id)
            .first()
        )
        if member is None:
            raise NotFound(f"User {user_id} is not a member of program {program_id}")

        self.db.delete(member)
        AuditService.log(
            self.db,
            "program_member",
            member.id,
            "remove",
            ctx.user_id,
            {"user_id": user_id},
            program_id,
        )
        commit_or_rollback(self.db)
        logger.info("Removed user %d from program %d", user_id, program_id)

    @staticmethod
    def _validate_fields(name: str, period_start: date, period_end: date | None) -> None:
        if not name or not name.strip():
            raise ValidationError("Program name is required")
        if period_end is not None and period_end < period_start:
            raise ValidationError("Program period_end must not be before period_start")


__all__ = ["ProgramService", "ProgramListing"]
