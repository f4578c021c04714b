"""Program model - budgeting period/project (DRAFT/ACTIVE/CLOSED/CANCELLED state machine)."""

from datetime import date
from enum import Enum

from sqlalchemy import Date, Enum as SQLEnum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rab_ledger.models import Base, BaseModel


class ProgramStatus(str, Enum):
    """Program status enumeration."""

    DRAFT = "draft"  # RAB editable
    ACTIVE = "active"  # RAB frozen, claims accepted
    CLOSED = "closed"  # terminal
    CANCELLED = "cancelled"  # terminal


# Legal status transitions; anything not listed is refused
PROGRAM_TRANSITIONS: dict[ProgramStatus, frozenset[ProgramStatus]] = {
    ProgramStatus.DRAFT: frozenset({ProgramStatus.ACTIVE, ProgramStatus.CANCELLED}),
    ProgramStatus.ACTIVE: frozenset({ProgramStatus.CLOSED, ProgramStatus.CANCELLED}),
    ProgramStatus.CLOSED: frozenset(),
    ProgramStatus.CANCELLED: frozenset(),
}


class MemberRole(str, Enum):
    """Role of a user inside one program's roster."""

    ADMIN = "admin"
    KETUA = "ketua"  # chair
    BENDAHARA = "bendahara"  # treasurer
    ANGGOTA = "anggota"  # regular member


class Program(Base, BaseModel):
    """Budgeting period or project.

    Attributes:
        name: Program name
        description: Optional notes
        status: Lifecycle state, see PROGRAM_TRANSITIONS
        period_start: First day of the program
        period_end: Last day of the program (optional)
        created_by_id: Admin who created the program
    """

    __tablename__ = "programs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    status: Mapped[ProgramStatus] = mapped_column(
        SQLEnum(ProgramStatus), nullable=False, default=ProgramStatus.DRAFT
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    # Relationships
    members: Mapped[list["ProgramMember"]] = relationship(
        "ProgramMember",
        back_populates="program",
        cascade="all, delete-orphan",
    )
    rab_items: Mapped[list["RabItem"]] = relationship(
        "RabItem",
        back_populates="program",
        cascade="all, delete-orphan",
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction",
        cascade="all, delete-orphan",
    )
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense",
        cascade="all, delete-orphan",
    )

    @property
    def is_draft(self) -> bool:
        return self.status == ProgramStatus.DRAFT

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProgramStatus.CLOSED, ProgramStatus.CANCELLED)

    def can_transition_to(self, new_status: ProgramStatus) -> bool:
        return new_status in PROGRAM_TRANSITIONS[self.status]

    def __repr__(self) -> str:
        return f"<Program(id={self.id}, name='{self.name}', status={self.status.value})>"


class ProgramMember(Base, BaseModel):
    """Membership of a user in a program roster."""

    __tablename__ = "program_members"

    program_id: Mapped[int] = mapped_column(ForeignKey("programs.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[MemberRole] = mapped_column(
        SQLEnum(MemberRole), nullable=False, default=MemberRole.ANGGOTA
    )

    program: Mapped["Program"] = relationship("Program", back_populates="members")
    user: Mapped["User"] = relationship("User")

    __table_args__ = (UniqueConstraint("program_id", "user_id", name="uq_program_member"),)

    def __repr__(self) -> str:
        return (
            f"<ProgramMember(program_id={self.program_id}, user_id={self.user_id}, "
            f"role={self.role.value})>"
        )
