"""Expense claim model - member spending requests awaiting an admin decision."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SQLEnum, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rab_ledger.models import Base, BaseModel


class ExpenseStatus(str, Enum):
    """Expense claim status (PENDING -> APPROVED | REJECTED, both terminal)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Expense(Base, BaseModel):
    """Expense claim against one RAB item.

    Attributes:
        program_id: Program the claim belongs to
        rab_item_id: Budget category the claim spends from
        submitted_by_id: Member who submitted the claim
        amount: Claimed amount
        description: What the money was spent on
        transaction_date: Date of the purchase
        status: PENDING until an admin decides
        rejection_note: Reason given on rejection (required when REJECTED)
        decided_by_id: Admin who decided the claim
        decided_at: When the decision was committed
    """

    __tablename__ = "expenses"

    program_id: Mapped[int] = mapped_column(ForeignKey("programs.id"), nullable=False, index=True)
    rab_item_id: Mapped[int] = mapped_column(ForeignKey("rab_items.id"), nullable=False, index=True)
    submitted_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text(), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ExpenseStatus] = mapped_column(
        SQLEnum(ExpenseStatus), nullable=False, default=ExpenseStatus.PENDING, index=True
    )
    rejection_note: Mapped[str | None] = mapped_column(Text(), nullable=True)
    decided_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    rab_item: Mapped["RabItem"] = relationship("RabItem", back_populates="expenses")
    submitter: Mapped["User"] = relationship("User", foreign_keys=[submitted_by_id])
    decided_by: Mapped["User | None"] = relationship("User", foreign_keys=[decided_by_id])
    receipts: Mapped[list["Receipt"]] = relationship(
        "Receipt",
        back_populates="expense",
        cascade="all, delete-orphan",
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ExpenseStatus.PENDING

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, amount={self.amount}, status={self.status.value})>"
