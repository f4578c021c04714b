"""Audit service for logging program lifecycle events and claim decisions."""

from sqlalchemy.orm import Session

from rab_ledger.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Entries are added to the caller's session and committed together with
    the change they describe.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        changes: dict | None = None,
        program_id: int | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            db: Database session
            entity_type: Type of entity ("program", "expense", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("create", "approve", etc.)
            actor_id: User who performed the action (optional)
            changes: Optional JSON snapshot of changed fields
            program_id: Program the event belongs to (optional)

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            program_id=program_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(audit)
        return audit

    @staticmethod
    def list_for_program(
        db: Session,
        program_id: int,
        entity_type: str | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        """List a program's audit entries, newest first."""
        query = db.query(AuditLog).filter(AuditLog.program_id == program_id)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()


__all__ = ["AuditService"]
