"""Transaction ORM model - settled cash movements of a program."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, Enum as SQLEnum, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rab_ledger.models import Base, BaseModel


class TransactionType(str, Enum):
    """Direction of a cash movement."""

    INCOME = "income"
    EXPENSE = "expense"


class Transaction(Base, BaseModel):
    """Settled income or expense of a program.

    Transactions are recorded directly and never go through approval.
    Expense transactions may be split across RAB items through allocations.
    """

    __tablename__ = "transactions"

    program_id: Mapped[int] = mapped_column(
        ForeignKey("programs.id"),
        nullable=False,
        index=True,
    )
    type: Mapped[TransactionType] = mapped_column(SQLEnum(TransactionType), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    allocations: Mapped[list["TransactionAllocation"]] = relationship(
        "TransactionAllocation",
        back_populates="transaction",
        cascade="all, delete-orphan",
    )
    receipts: Mapped[list["Receipt"]] = relationship(
        "Receipt",
        back_populates="transaction",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, type={self.type.value}, amount={self.amount})>"


class TransactionAllocation(Base, BaseModel):
    """Portion of an expense transaction charged to one RAB item."""

    __tablename__ = "transaction_allocations"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, index=True
    )
    rab_item_id: Mapped[int] = mapped_column(ForeignKey("rab_items.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)

    transaction: Mapped["Transaction"] = relationship("Transaction", back_populates="allocations")
    rab_item: Mapped["RabItem"] = relationship("RabItem")
