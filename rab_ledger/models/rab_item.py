"""RAB item model - one budget allocation line of a program's plan."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rab_ledger.models import Base, BaseModel


class FulfilmentStatus(str, Enum):
    """How much of an allocation has been realized."""

    BELUM_TERPENUHI = "belum_terpenuhi"  # nothing realized yet
    SEBAGIAN_TERPENUHI = "sebagian_terpenuhi"  # partially realized
    TERPENUHI = "terpenuhi"  # fully realized


class RabItem(Base, BaseModel):
    """Budget allocation category.

    Attributes:
        program_id: Owning program
        name: Line item name
        category: Free-form category tag used for grouping
        unit: Unit of measure (e.g. "pcs", "orang")
        volume: Planned quantity
        unit_price: Price per unit
        total_budget: volume x unit_price, fixed when the budget fields are written
        realized_amount: Sum of approved claim amounts; written only by approvals
        notes: Optional notes
    """

    __tablename__ = "rab_items"

    program_id: Mapped[int] = mapped_column(ForeignKey("programs.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    volume: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    realized_amount: Mapped[Decimal] = mapped_column(
        Numeric(16, 2), nullable=False, default=Decimal("0")
    )
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)

    # Relationships
    program: Mapped["Program"] = relationship("Program", back_populates="rab_items")
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense",
        back_populates="rab_item",
        cascade="all, delete-orphan",
    )

    @property
    def remaining_budget(self) -> Decimal:
        return Decimal(self.total_budget) - Decimal(self.realized_amount)

    @property
    def fulfilment_status(self) -> FulfilmentStatus:
        realized = Decimal(self.realized_amount)
        if realized <= 0:
            return FulfilmentStatus.BELUM_TERPENUHI
        if realized >= Decimal(self.total_budget):
            return FulfilmentStatus.TERPENUHI
        return FulfilmentStatus.SEBAGIAN_TERPENUHI

    def __repr__(self) -> str:
        return (
            f"<RabItem(id={self.id}, name='{self.name}', total={self.total_budget}, "
            f"realized={self.realized_amount})>"
        )
