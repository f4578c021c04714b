"""Audit log model for tracking program lifecycle events and claim decisions."""

from typing import Any

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from rab_ledger.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry.

    Records who (actor_id) did what (action) to which entity (entity_type,
    entity_id) within which program, plus an optional snapshot of changed
    fields.
    """

    __tablename__ = "audit_logs"

    program_id: Mapped[int | None] = mapped_column(
        ForeignKey("programs.id", ondelete="SET NULL"), nullable=True, index=True
    )
    """Program the event belongs to. None for user-level events."""

    entity_type: Mapped[str] = mapped_column(String(50))
    """Entity type being audited: "program", "rab_item", "expense", etc."""

    entity_id: Mapped[int] = mapped_column()
    """Primary key of the entity being audited."""

    action: Mapped[str] = mapped_column(String(50))
    """Action performed: "create", "approve", "reject", etc."""

    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    """User who performed the action. None for system actions."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Optional JSON snapshot of changed fields: {"status": "approved", "amount": "500000"}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor_id={self.actor_id}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
