"""Pydantic schemas for the dashboard projection."""

from decimal import Decimal

from pydantic import BaseModel

from rab_ledger.models.program import ProgramStatus
from rab_ledger.services.dashboard_service import Dashboard, MemberSpending, ProgramSummary
from rab_ledger.services.rab_service import CategoryView


class ProgramSummaryResponse(BaseModel):
    id: int
    name: str
    status: ProgramStatus
    total_budget: Decimal
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal
    remaining_budget: Decimal
    total_members: int
    pending_claims: int

    @classmethod
    def from_summary(cls, summary: ProgramSummary) -> "ProgramSummaryResponse":
        return cls(
            id=summary.program.id,
            name=summary.program.name,
            status=summary.program.status,
            total_budget=summary.total_budget,
            total_income=summary.total_income,
            total_expense=summary.total_expense,
            balance=summary.balance,
            remaining_budget=summary.remaining_budget,
            total_members=summary.total_members,
            pending_claims=summary.pending_claims,
        )


class CategoryBreakdownItem(BaseModel):
    id: int
    name: str
    category: str | None = None
    allocated: Decimal
    spent: Decimal
    remaining: Decimal

    @classmethod
    def from_view(cls, view: CategoryView) -> "CategoryBreakdownItem":
        return cls(
            id=view.item.id,
            name=view.item.name,
            category=view.item.category,
            allocated=view.allocated,
            spent=view.spent,
            remaining=view.remaining,
        )


class MemberSpendingItem(BaseModel):
    user_id: int
    name: str
    amount: Decimal
    claim_count: int

    @classmethod
    def from_spending(cls, spending: MemberSpending) -> "MemberSpendingItem":
        return cls(
            user_id=spending.user_id,
            name=spending.name,
            amount=spending.amount,
            claim_count=spending.claim_count,
        )


class DashboardResponse(BaseModel):
    """Response for GET /api/programs/{program_id}/dashboard."""

    program: ProgramSummaryResponse
    category_breakdown: list[CategoryBreakdownItem]
    member_spending: list[MemberSpendingItem]

    @classmethod
    def from_dashboard(cls, dashboard: Dashboard) -> "DashboardResponse":
        return cls(
            program=ProgramSummaryResponse.from_summary(dashboard.summary),
            category_breakdown=[
                CategoryBreakdownItem.from_view(view) for view in dashboard.category_breakdown
            ],
            member_spending=[
                MemberSpendingItem.from_spending(item) for item in dashboard.member_spending
            ],
        )
