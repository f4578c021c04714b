"""Dashboard aggregator: read-only projections over the ledger and RAB.

Only committed decisions count. Pending and rejected claims never appear in
totals, category spend or member spending.

Totals:
- total_budget: sum of RAB item allocations
- total_income: sum of income transactions
- total_expense: approved claims + expense transactions
- balance: total_income - total_expense
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from rab_ledger.errors import NotFound
from rab_ledger.models.expense import Expense, ExpenseStatus
from rab_ledger.models.program import Program, ProgramMember
from rab_ledger.models.transaction import Transaction, TransactionType
from rab_ledger.models.user import User
from rab_ledger.services.auth_service import RequestContext, require_program_access
from rab_ledger.services.rab_service import CategoryView, RabService, to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class ProgramSummary:
    """Headline figures for a program."""

    program: Program
    total_budget: Decimal
    total_income: Decimal
    total_expense: Decimal
    total_realized: Decimal
    total_members: int
    pending_claims: int

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def remaining_budget(self) -> Decimal:
        return self.total_budget - self.total_realized


@dataclass
class MemberSpending:
    """Approved spend of one submitter."""

    user_id: int
    name: str
    amount: Decimal
    claim_count: int


@dataclass
class Dashboard:
    """Everything the dashboard page renders for one program."""

    summary: ProgramSummary
    category_breakdown: list[CategoryView] = field(default_factory=list)
    member_spending: list[MemberSpending] = field(default_factory=list)


class DashboardService:
    """Pure read-side queries; never writes."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session
        self.rab = RabService(db_session)

    def get_dashboard(self, ctx: RequestContext, program_id: int) -> Dashboard:
        program = self._get_program(ctx, program_id)
        breakdown = self.rab.category_views(program.id)
        dashboard = Dashboard(
            summary=self._summary(program, breakdown),
            category_breakdown=breakdown,
            member_spending=self._member_spending(program.id),
        )
        logger.debug(
            "dashboard: program=%d categories=%d members=%d",
            program.id,
            len(dashboard.category_breakdown),
            len(dashboard.member_spending),
        )
        return dashboard

    def get_program_summary(self, ctx: RequestContext, program_id: int) -> ProgramSummary:
        program = self._get_program(ctx, program_id)
        return self._summary(program, self.rab.category_views(program.id))

    def get_category_breakdown(self, ctx: RequestContext, program_id: int) -> list[CategoryView]:
        program = self._get_program(ctx, program_id)
        return self.rab.category_views(program.id)

    def get_member_spending(self, ctx: RequestContext, program_id: int) -> list[MemberSpending]:
        program = self._get_program(ctx, program_id)
        return self._member_spending(program.id)

    def _summary(self, program: Program, breakdown: list[CategoryView]) -> ProgramSummary:
        totals = dict(
            self.db.query(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
            .filter(Transaction.program_id == program.id)
            .group_by(Transaction.type)
            .all()
        )
        approved_claims = to_money(
            self.db.query(func.coalesce(func.sum(Expense.amount), 0))
            .filter(Expense.program_id == program.id, Expense.status == ExpenseStatus.APPROVED)
            .scalar()
        )
        pending = (
            self.db.query(func.count(Expense.id))
            .filter(Expense.program_id == program.id, Expense.status == ExpenseStatus.PENDING)
            .scalar()
        )
        members = (
            self.db.query(func.count(ProgramMember.id))
            .filter(ProgramMember.program_id == program.id)
            .scalar()
        )

        return ProgramSummary(
            program=program,
            total_budget=sum((view.allocated for view in breakdown), ZERO),
            total_income=to_money(totals.get(TransactionType.INCOME, 0)),
            total_expense=to_money(totals.get(TransactionType.EXPENSE, 0)) + approved_claims,
            total_realized=sum((view.spent for view in breakdown), ZERO),
            total_members=members,
            pending_claims=pending,
        )

    def _member_spending(self, program_id: int) -> list[MemberSpending]:
        rows = (
            self.db.query(
                User.id,
                User.name,
                func.sum(Expense.amount).label("amount"),
                func.count(Expense.id).label("claims"),
            )
            .join(Expense, Expense.submitted_by_id == User.id)
            .filter(Expense.program_id == program_id, Expense.status == ExpenseStatus.APPROVED)
            .group_by(User.id, User.name)
            .order_by(func.sum(Expense.amount).desc(), User.id)
            .all()
        )
        return [
            MemberSpending(user_id=user_id, name=name, amount=to_money(amount), claim_count=claims)
            for user_id, name, amount, claims in rows
        ]

    def _get_program(self, ctx: RequestContext, program_id: int) -> Program:
        program = self.db.get(Program, program_id)
        if program is None:
            raise NotFound(f"Program {program_id} not found")
        require_program_access(self.db, ctx, program)
        return program


__all__ = ["DashboardService", "Dashboard", "ProgramSummary", "MemberSpending"]
