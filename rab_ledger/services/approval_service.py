"""Approval state machine for expense claims.

PENDING -> APPROVED or PENDING -> REJECTED; both are terminal. A decided
claim is never reopened; reversing spend means recording a new
compensating transaction.

This is the only module that writes ``RabItem.realized_amount``. Approval
runs its read-check-mutate sequence in one database transaction:

1. the RAB item row is locked (``SELECT ... FOR UPDATE`` where supported),
2. remaining budget is recomputed from approved claims,
3. ``realized_amount`` is increased by a conditional UPDATE that only
   matches while the new total stays within ``total_budget``,
4. the claim moves to APPROVED by a conditional UPDATE that only matches
   while it is still PENDING.

If either conditional UPDATE matches no row, another decision committed
first and the whole transaction is rolled back. Decisions on claims of the
same RAB item are therefore linearized, while different items proceed in
parallel.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from rab_ledger.errors import (
    AppError,
    BudgetExceeded,
    InvalidState,
    NotFound,
    Unavailable,
    ValidationError,
)
from rab_ledger.models.expense import Expense, ExpenseStatus
from rab_ledger.models.rab_item import RabItem
from rab_ledger.services import commit_or_rollback
from rab_ledger.services.audit_service import AuditService
from rab_ledger.services.auth_service import RequestContext, require_admin
from rab_ledger.services.rab_service import approved_total, to_money

logger = logging.getLogger(__name__)

HALF_CENT = Decimal("0.005")


class ApprovalService:
    """Decides pending expense claims."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def approve(self, ctx: RequestContext, claim_id: int) -> Expense:
        """Approve a pending claim and realize its amount against the RAB item.

        Args:
            ctx: Deciding administrator
            claim_id: Expense claim to approve

        Returns:
            The claim in APPROVED status

        Raises:
            Forbidden: Caller is not an administrator
            NotFound: Claim does not exist
            InvalidState: Claim was already decided
            BudgetExceeded: Amount exceeds the item's remaining budget
        """
        require_admin(ctx)
        try:
            expense = self._load_pending(claim_id)
            amount = to_money(expense.amount)

            item = self.db.execute(
                select(RabItem).where(RabItem.id == expense.rab_item_id).with_for_update()
            ).scalar_one()
            remaining = to_money(item.total_budget) - approved_total(self.db, item.id)
            if amount > remaining:
                raise self._exceeded(expense, amount, remaining)

            # SQLite keeps NUMERIC as REAL, so the guard compares against a
            # ceiling computed here in Decimal with half a cent of slack.
            ceiling = to_money(item.total_budget) - amount + HALF_CENT
            realized = self.db.execute(
                update(RabItem)
                .where(RabItem.id == item.id, RabItem.realized_amount <= ceiling)
                .values(realized_amount=RabItem.realized_amount + amount)
                .execution_options(synchronize_session=False)
            )
            if realized.rowcount != 1:
                raise self._exceeded(expense, amount, remaining)

            decided_at = datetime.now(timezone.utc)
            decided = self.db.execute(
                update(Expense)
                .where(Expense.id == expense.id, Expense.status == ExpenseStatus.PENDING)
                .values(
                    status=ExpenseStatus.APPROVED,
                    decided_by_id=ctx.user_id,
                    decided_at=decided_at,
                )
                .execution_options(synchronize_session=False)
            )
            if decided.rowcount != 1:
                raise InvalidState(f"Expense {claim_id} was decided concurrently")

            AuditService.log(
                self.db,
                "expense",
                expense.id,
                "approve",
                ctx.user_id,
                {
                    "status": ExpenseStatus.APPROVED.value,
                    "amount": str(amount),
                    "rab_item_id": item.id,
                    "remaining_before": str(remaining),
                    "remaining_after": str(remaining - amount),
                },
                expense.program_id,
            )
            commit_or_rollback(self.db)
        except AppError:
            self.db.rollback()
            raise
        except OperationalError as e:
            self.db.rollback()
            logger.error("Decision on expense %d failed: %s", claim_id, e)
            raise Unavailable("Database busy, please retry the decision") from e

        self.db.refresh(expense)
        self.db.refresh(item)
        logger.info(
            "Expense %d approved by admin %d: item=%d amount=%s remaining=%s",
            expense.id,
            ctx.user_id,
            item.id,
            amount,
            item.remaining_budget,
        )
        return expense

    def reject(self, ctx: RequestContext, claim_id: int, rejection_note: str | None) -> Expense:
        """Reject a pending claim with a mandatory note.

        Raises:
            Forbidden: Caller is not an administrator
            ValidationError: Note is missing or blank
            NotFound: Claim does not exist
            InvalidState: Claim was already decided
        """
        require_admin(ctx)
        note = (rejection_note or "").strip()
        if not note:
            raise ValidationError("A rejection note is required")

        try:
            expense = self._load_pending(claim_id)
            decided = self.db.execute(
                update(Expense)
                .where(Expense.id == expense.id, Expense.status == ExpenseStatus.PENDING)
                .values(
                    status=ExpenseStatus.REJECTED,
                    rejection_note=note,
                    decided_by_id=ctx.user_id,
                    decided_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if decided.rowcount != 1:
                raise InvalidState(f"Expense {claim_id} was decided concurrently")

            AuditService.log(
                self.db,
                "expense",
                expense.id,
                "reject",
                ctx.user_id,
                {"status": ExpenseStatus.REJECTED.value, "rejection_note": note},
                expense.program_id,
            )
            commit_or_rollback(self.db)
        except AppError:
            self.db.rollback()
            raise
        except OperationalError as e:
            self.db.rollback()
            logger.error("Decision on expense %d failed: %s", claim_id, e)
            raise Unavailable("Database busy, please retry the decision") from e

        self.db.refresh(expense)
        logger.info("Expense %d rejected by admin %d", expense.id, ctx.user_id)
        return expense

    def _load_pending(self, claim_id: int) -> Expense:
        expense = self.db.get(Expense, claim_id, populate_existing=True)
        if expense is None:
            raise NotFound(f"Expense {claim_id} not found")
        if expense.status != ExpenseStatus.PENDING:
            logger.warning(
                "Refused decision on expense %d: already %s", claim_id, expense.status.value
            )
            raise InvalidState(
                f"Expense {claim_id} is already {expense.status.value}",
                {"status": expense.status.value},
            )
        return expense

    @staticmethod
    def _exceeded(expense: Expense, amount, remaining) -> BudgetExceeded:
        logger.warning(
            "Refused approval of expense %d: amount %s exceeds remaining %s on item %d",
            expense.id,
            amount,
            remaining,
            expense.rab_item_id,
        )
        return BudgetExceeded(
            f"Amount {amount} exceeds remaining budget {remaining}",
            {
                "amount": str(amount),
                "remaining_budget": str(remaining),
                "rab_item_id": expense.rab_item_id,
            },
        )


__all__ = ["ApprovalService"]
