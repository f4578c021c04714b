"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from rab_ledger.models.user import User, UserRole  # noqa: E402
from rab_ledger.models.program import MemberRole, Program, ProgramMember, ProgramStatus  # noqa: E402
from rab_ledger.models.rab_item import FulfilmentStatus, RabItem  # noqa: E402
from rab_ledger.models.transaction import (  # noqa: E402
    Transaction,
    TransactionAllocation,
    TransactionType,
)
from rab_ledger.models.expense import Expense, ExpenseStatus  # noqa: E402
from rab_ledger.models.receipt import Receipt  # noqa: E402
from rab_ledger.models.audit_log import AuditLog  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "utcnow",
    "User",
    "UserRole",
    "Program",
    "ProgramMember",
    "ProgramStatus",
    "MemberRole",
    "RabItem",
    "FulfilmentStatus",
    "Transaction",
    "TransactionAllocation",
    "TransactionType",
    "Expense",
    "ExpenseStatus",
    "Receipt",
    "AuditLog",
]
