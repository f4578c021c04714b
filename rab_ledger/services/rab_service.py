"""Budget allocation store: RAB items of a program.

Budget fields (volume, unit price, total) can only be written while the
program is a draft. ``realized_amount`` is owned by the approval service and
is never written here.

Remaining budget is always recomputed from approved claims rather than read
from a cached column, so reads never observe a stale figure.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import func
from sqlalchemy.orm import Session

from rab_ledger.errors import Conflict, InvalidState, NotFound, ValidationError
from rab_ledger.models.expense import Expense, ExpenseStatus
from rab_ledger.models.program import Program
from rab_ledger.models.rab_item import FulfilmentStatus, RabItem
from rab_ledger.models.transaction import TransactionAllocation
from rab_ledger.services import commit_or_rollback
from rab_ledger.services.audit_service import AuditService
from rab_ledger.services.auth_service import (
    RequestContext,
    require_program_access,
    require_program_manager,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Convert to a Decimal rounded to cents.

    Raises:
        ValidationError: If the value is not a number
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def utilization_percentage(realized: Decimal, total: Decimal) -> float:
    """Return realized / total x 100 rounded to 2 places, or 0.0 if total is zero."""
    if total == 0:
        return 0.0
    return round(float(realized / total * 100), 2)


@dataclass
class CategoryView:
    """Allocated/spent/remaining figures for one RAB item."""

    item: RabItem
    allocated: Decimal
    spent: Decimal
    remaining: Decimal

    @property
    def status(self) -> FulfilmentStatus:
        if self.spent <= 0:
            return FulfilmentStatus.BELUM_TERPENUHI
        if self.spent >= self.allocated:
            return FulfilmentStatus.TERPENUHI
        return FulfilmentStatus.SEBAGIAN_TERPENUHI

    @property
    def utilization(self) -> float:
        return utilization_percentage(self.spent, self.allocated)


@dataclass
class RabSummary:
    """Totals over all RAB items of a program."""

    program_id: int
    item_count: int
    total_budget: Decimal
    total_realized: Decimal
    total_remaining: Decimal

    @property
    def utilization(self) -> float:
        return utilization_percentage(self.total_realized, self.total_budget)


def approved_total(db: Session, rab_item_id: int) -> Decimal:
    """Sum of approved claim amounts for one RAB item, read from the ledger."""
    total = (
        db.query(func.coalesce(func.sum(Expense.amount), 0))
        .filter(Expense.rab_item_id == rab_item_id, Expense.status == ExpenseStatus.APPROVED)
        .scalar()
    )
    return to_money(total)


def approved_totals_by_item(db: Session, program_id: int) -> dict[int, Decimal]:
    rows = (
        db.query(Expense.rab_item_id, func.sum(Expense.amount))
        .filter(Expense.program_id == program_id, Expense.status == ExpenseStatus.APPROVED)
        .group_by(Expense.rab_item_id)
        .all()
    )
    return {item_id: to_money(total) for item_id, total in rows}


class RabService:
    """CRUD for RAB items with the draft-only guard."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def get_by_id(self, item_id: int) -> RabItem:
        item = self.db.get(RabItem, item_id)
        if item is None:
            raise NotFound(f"RAB item {item_id} not found")
        return item

    def get_remaining_budget(self, item: RabItem) -> Decimal:
        """Recompute remaining budget from approved claims."""
        return to_money(item.total_budget) - approved_total(self.db, item.id)

    def view(self, item: RabItem) -> CategoryView:
        spent = approved_total(self.db, item.id)
        allocated = to_money(item.total_budget)
        return CategoryView(item=item, allocated=allocated, spent=spent, remaining=allocated - spent)

    def list_categories(self, ctx: RequestContext, program_id: int) -> list[CategoryView]:
        """List a program's RAB items with their allocated/spent/remaining figures."""
        program = self._get_program(program_id)
        require_program_access(self.db, ctx, program)
        return self.category_views(program_id)

    def category_views(self, program_id: int) -> list[CategoryView]:
        items = (
            self.db.query(RabItem)
            .filter(RabItem.program_id == program_id)
            .order_by(RabItem.category, RabItem.id)
            .all()
        )
        spent_by_item = approved_totals_by_item(self.db, program_id)
        views = []
        for item in items:
            allocated = to_money(item.total_budget)
            spent = spent_by_item.get(item.id, Decimal("0.00"))
            views.append(
                CategoryView(item=item, allocated=allocated, spent=spent, remaining=allocated - spent)
            )
        return views

    def get_summary(self, ctx: RequestContext, program_id: int) -> RabSummary:
        views = self.list_categories(ctx, program_id)
        total_budget = sum((v.allocated for v in views), Decimal("0.00"))
        total_realized = sum((v.spent for v in views), Decimal("0.00"))
        return RabSummary(
            program_id=program_id,
            item_count=len(views),
            total_budget=total_budget,
            total_realized=total_realized,
            total_remaining=total_budget - total_realized,
        )

    def create_category(
        self,
        ctx: RequestContext,
        program_id: int,
        name: str,
        volume,
        unit_price,
        category: str | None = None,
        unit: str | None = None,
        notes: str | None = None,
    ) -> RabItem:
        """Create a RAB item in a draft program.

        Raises:
            NotFound: Program does not exist
            InvalidState: Program is not a draft
            ValidationError: Empty name, volume <= 0 or unit_price <= 0
        """
        program = self._get_program(program_id)
        require_program_manager(self.db, ctx, program)
        self._require_draft(program)

        volume, unit_price = self._validate_budget_fields(name, volume, unit_price)
        item = RabItem(
            program_id=program.id,
            name=name.strip(),
            category=category,
            unit=unit,
            volume=volume,
            unit_price=unit_price,
            total_budget=to_money(volume * unit_price),
            realized_amount=Decimal("0.00"),
            notes=notes,
        )
        self.db.add(item)
        self.db.flush()
        AuditService.log(
            self.db,
            "rab_item",
            item.id,
            "create",
            ctx.user_id,
            {"name": item.name, "total_budget": str(item.total_budget)},
            program.id,
        )
        commit_or_rollback(self.db)
        self.db.refresh(item)

        logger.info(
            "Created RAB item %d in program %d: %s total=%s",
            item.id,
            program.id,
            item.name,
            item.total_budget,
        )
        return item

    def update_category(
        self,
        ctx: RequestContext,
        item_id: int,
        name: str | None = None,
        volume=None,
        unit_price=None,
        category: str | None = None,
        unit: str | None = None,
        notes: str | None = None,
    ) -> RabItem:
        """Update a RAB item of a draft program."""
        item = self.get_by_id(item_id)
        program = self._get_program(item.program_id)
        require_program_manager(self.db, ctx, program)
        self._require_draft(program)

        new_volume, new_price = self._validate_budget_fields(
            item.name if name is None else name,
            item.volume if volume is None else volume,
            item.unit_price if unit_price is None else unit_price,
        )
        if name is not None:
            item.name = name.strip()
        if category is not None:
            item.category = category
        if unit is not None:
            item.unit = unit
        if notes is not None:
            item.notes = notes
        item.volume = new_volume
        item.unit_price = new_price
        item.total_budget = to_money(new_volume * new_price)

        AuditService.log(
            self.db,
            "rab_item",
            item.id,
            "update",
            ctx.user_id,
            {"total_budget": str(item.total_budget)},
            program.id,
        )
        commit_or_rollback(self.db)
        self.db.refresh(item)
        logger.info("Updated RAB item %d: total=%s", item.id, item.total_budget)
        return item

    def delete_category(self, ctx: RequestContext, item_id: int) -> None:
        """Delete a RAB item of a draft program.

        Raises:
            Conflict: The item is referenced by approved claims or transactions
            InvalidState: Program is no longer a draft
        """
        item = self.get_by_id(item_id)
        program = self._get_program(item.program_id)
        require_program_manager(self.db, ctx, program)

        approved = (
            self.db.query(func.count(Expense.id))
            .filter(Expense.rab_item_id == item.id, Expense.status == ExpenseStatus.APPROVED)
            .scalar()
        )
        if approved:
            raise Conflict(
                f"RAB item {item_id} has {approved} approved claim(s) and cannot be deleted"
            )
        allocations = (
            self.db.query(func.count(TransactionAllocation.id))
            .filter(TransactionAllocation.rab_item_id == item.id)
            .scalar()
        )
        if allocations:
            raise Conflict(
                f"RAB item {item_id} is allocated in {allocations} transaction(s) "
                "and cannot be deleted"
            )
        self._require_draft(program)

        self.db.delete(item)
        AuditService.log(
            self.db, "rab_item", item_id, "delete", ctx.user_id, {"name": item.name}, program.id
        )
        commit_or_rollback(self.db)
        logger.info("Deleted RAB item %d from program %d", item_id, program.id)

    def _get_program(self, program_id: int) -> Program:
        program = self.db.get(Program, program_id)
        if program is None:
            raise NotFound(f"Program {program_id} not found")
        return program

    @staticmethod
    def _require_draft(program: Program) -> None:
        if not program.is_draft:
            raise InvalidState(
                f"RAB of program {program.id} is frozen (status: {program.status.value})"
            )

    @staticmethod
    def _validate_budget_fields(name: str, volume, unit_price) -> tuple[Decimal, Decimal]:
        if not name or not name.strip():
            raise ValidationError("RAB item name is required")
        volume = to_money(volume)
        unit_price = to_money(unit_price)
        if volume <= 0:
            raise ValidationError("Volume must be greater than zero")
        if unit_price <= 0:
            raise ValidationError("Unit price must be greater than zero")
        return volume, unit_price


__all__ = [
    "RabService",
    "CategoryView",
    "RabSummary",
    "to_money",
    "utilization_percentage",
    "approved_total",
    "approved_totals_by_item",
]
