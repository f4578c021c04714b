"""Ledger: settled transactions and expense claims of a program.

Transactions are already-settled cash movements and are recorded directly.
Expense claims are requests to spend against a RAB item; they enter the
ledger as PENDING and do not touch the budget until an admin decides them
(see approval_service).
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterator, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from rab_ledger.errors import Forbidden, InvalidState, NotFound, ValidationError
from rab_ledger.models.expense import Expense, ExpenseStatus
from rab_ledger.models.program import Program, ProgramStatus
from rab_ledger.models.rab_item import RabItem
from rab_ledger.models.transaction import Transaction, TransactionAllocation, TransactionType
from rab_ledger.services import commit_or_rollback
from rab_ledger.services.audit_service import AuditService
from rab_ledger.services.auth_service import (
    RequestContext,
    get_membership,
    require_program_access,
    require_program_manager,
)
from rab_ledger.services.rab_service import to_money
from rab_ledger.services.receipt_service import ReceiptService, UploadedFile

logger = logging.getLogger(__name__)


@dataclass
class AllocationInput:
    """Requested split of an expense transaction onto one RAB item."""

    rab_item_id: int
    amount: Decimal


@dataclass
class ClaimFilter:
    """Filter for listing expense claims. Empty fields do not restrict."""

    status: ExpenseStatus | None = None
    search_term: str | None = None
    rab_item_id: int | None = None
    submitted_by_id: int | None = None


class ClaimListing:
    """Lazy, restartable view over the claims matching a filter.

    Nothing is read until iteration; every iteration re-runs the query, so
    the sequence is finite and reflects committed state at that moment.
    Ordered newest submission first.
    """

    def __init__(self, query: Query, batch_size: int = 100):
        self._query = query
        self._batch_size = batch_size

    def __iter__(self) -> Iterator[Expense]:
        return iter(self._query.yield_per(self._batch_size))

    def count(self) -> int:
        return self._query.order_by(None).count()

    def all(self) -> list[Expense]:
        return list(self)


class LedgerService:
    """Append-style ledger operations."""

    def __init__(self, db_session: Session, receipts: ReceiptService | None = None):
        """Initialize with database session."""
        self.db = db_session
        self.receipts = receipts or ReceiptService(db_session)

    # Transactions

    def record_transaction(
        self,
        ctx: RequestContext,
        program_id: int,
        type: TransactionType,
        amount,
        transaction_date: date,
        description: str | None = None,
        allocations: Sequence[AllocationInput] = (),
    ) -> Transaction:
        """Record a settled income or expense.

        Expense allocations must reference RAB items of the same program and
        add up exactly to the transaction amount. Income carries no
        allocations.

        Raises:
            NotFound: Program or RAB item does not exist
            InvalidState: Program is closed or cancelled
            ValidationError: Non-positive amount or allocation mismatch
        """
        program = self._get_program(program_id)
        require_program_manager(self.db, ctx, program)
        if program.is_terminal:
            raise InvalidState(f"Program {program_id} is {program.status.value}")

        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Transaction amount must be greater than zero")

        rows = self._build_allocations(program, type, amount, allocations)
        transaction = Transaction(
            program_id=program.id,
            type=type,
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            created_by_id=ctx.user_id,
            allocations=rows,
        )
        self.db.add(transaction)
        self.db.flush()
        AuditService.log(
            self.db,
            "transaction",
            transaction.id,
            "create",
            ctx.user_id,
            {"type": type.value, "amount": str(amount), "allocations": len(rows)},
            program.id,
        )
        commit_or_rollback(self.db)
        self.db.refresh(transaction)

        logger.info(
            "Recorded %s transaction %d in program %d: amount=%s",
            type.value,
            transaction.id,
            program.id,
            amount,
        )
        return transaction

    def get_transaction(self, ctx: RequestContext, transaction_id: int) -> Transaction:
        transaction = self.db.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        require_program_access(self.db, ctx, self._get_program(transaction.program_id))
        return transaction

    def list_transactions(
        self,
        ctx: RequestContext,
        program_id: int,
        type: TransactionType | None = None,
        search: str | None = None,
    ) -> list[Transaction]:
        """List a program's transactions, most recent date first."""
        program = self._get_program(program_id)
        require_program_access(self.db, ctx, program)

        query = self.db.query(Transaction).filter(Transaction.program_id == program_id)
        if type is not None:
            query = query.filter(Transaction.type == type)
        if search:
            query = query.filter(Transaction.description.ilike(f"%{search.strip()}%"))
        return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()

    def delete_transaction(self, ctx: RequestContext, transaction_id: int) -> None:
        """Delete a transaction and its receipts from a non-terminal program."""
        transaction = self.get_transaction(ctx, transaction_id)
        program = self._get_program(transaction.program_id)
        require_program_manager(self.db, ctx, program)
        if program.is_terminal:
            raise InvalidState(f"Program {program.id} is {program.status.value}")

        paths = [receipt.file_path for receipt in transaction.receipts]
        self.db.delete(transaction)
        AuditService.log(
            self.db,
            "transaction",
            transaction_id,
            "delete",
            ctx.user_id,
            {"type": transaction.type.value, "amount": str(transaction.amount)},
            program.id,
        )
        commit_or_rollback(self.db)
        for path in paths:
            self.receipts.storage.remove(path)
        logger.info("Deleted transaction %d from program %d", transaction_id, program.id)

    # Expense claims

    def submit_expense_claim(
        self,
        ctx: RequestContext,
        program_id: int,
        rab_item_id: int,
        amount,
        description: str,
        transaction_date: date,
        receipts: Sequence[UploadedFile],
    ) -> Expense:
        """Create a PENDING claim against a RAB item.

        The budget is not touched here; only approval realizes spend.

        Raises:
            NotFound: Program or RAB item does not exist in this program
            InvalidState: Program is not active
            Forbidden: Submitter is not on the program roster
            ValidationError: Non-positive amount, empty description or no receipt
        """
        program = self._get_program(program_id)
        if get_membership(self.db, program.id, ctx.user_id) is None:
            raise Forbidden("Only program members can submit expense claims")
        if program.status != ProgramStatus.ACTIVE:
            raise InvalidState(
                f"Program {program_id} is {program.status.value}; claims need an active program"
            )

        item = self.db.get(RabItem, rab_item_id)
        if item is None or item.program_id != program.id:
            raise NotFound(f"RAB item {rab_item_id} not found in program {program_id}")

        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Claim amount must be greater than zero")
        if not description or not description.strip():
            raise ValidationError("Claim description is required")
        if not receipts:
            raise ValidationError("At least one receipt is required")

        for upload in receipts:
            self.receipts.storage.validate(upload)
        stored = []
        try:
            for upload in receipts:
                stored.append(self.receipts.build(upload, ctx.user_id))
            expense = Expense(
                program_id=program.id,
                rab_item_id=item.id,
                submitted_by_id=ctx.user_id,
                amount=amount,
                description=description.strip(),
                transaction_date=transaction_date,
                status=ExpenseStatus.PENDING,
                receipts=stored,
            )
            self.db.add(expense)
            self.db.flush()
            AuditService.log(
                self.db,
                "expense",
                expense.id,
                "submit",
                ctx.user_id,
                {"amount": str(amount), "rab_item_id": item.id},
                program.id,
            )
            commit_or_rollback(self.db)
        except Exception:
            for receipt in stored:
                self.receipts.storage.remove(receipt.file_path)
            raise
        self.db.refresh(expense)

        logger.info(
            "Expense claim %d submitted by user %d: program=%d item=%d amount=%s",
            expense.id,
            ctx.user_id,
            program.id,
            item.id,
            amount,
        )
        return expense

    def get_claim(self, ctx: RequestContext, claim_id: int) -> Expense:
        expense = self.db.get(Expense, claim_id)
        if expense is None:
            raise NotFound(f"Expense {claim_id} not found")
        if expense.submitted_by_id != ctx.user_id:
            require_program_access(self.db, ctx, self._get_program(expense.program_id))
        return expense

    def list_claims(
        self,
        ctx: RequestContext,
        program_id: int,
        claim_filter: ClaimFilter | None = None,
    ) -> ClaimListing:
        """List claims of a program matching a filter, newest submission first."""
        program = self._get_program(program_id)
        require_program_access(self.db, ctx, program)
        claim_filter = claim_filter or ClaimFilter()

        query = self.db.query(Expense).filter(Expense.program_id == program_id)
        if claim_filter.status is not None:
            query = query.filter(Expense.status == claim_filter.status)
        if claim_filter.rab_item_id is not None:
            query = query.filter(Expense.rab_item_id == claim_filter.rab_item_id)
        if claim_filter.submitted_by_id is not None:
            query = query.filter(Expense.submitted_by_id == claim_filter.submitted_by_id)
        if claim_filter.search_term:
            query = query.filter(
                func.lower(Expense.description).contains(claim_filter.search_term.strip().lower())
            )
        return ClaimListing(query.order_by(Expense.created_at.desc(), Expense.id.desc()))

    def delete_claim(self, ctx: RequestContext, claim_id: int) -> None:
        """Withdraw a pending claim (submitter or admin)."""
        expense = self.get_claim(ctx, claim_id)
        if not (ctx.is_admin or expense.submitted_by_id == ctx.user_id):
            raise Forbidden("Only the submitter or an administrator can delete a claim")
        if not expense.is_pending:
            raise InvalidState(
                f"Expense {claim_id} is {expense.status.value}; decided claims are permanent"
            )

        paths = [receipt.file_path for receipt in expense.receipts]
        program_id = expense.program_id
        self.db.delete(expense)
        AuditService.log(
            self.db,
            "expense",
            claim_id,
            "delete",
            ctx.user_id,
            {"amount": str(expense.amount)},
            program_id,
        )
        commit_or_rollback(self.db)
        for path in paths:
            self.receipts.storage.remove(path)
        logger.info("Deleted pending expense claim %d", claim_id)

    def _build_allocations(
        self,
        program: Program,
        type: TransactionType,
        amount: Decimal,
        allocations: Sequence[AllocationInput],
    ) -> list[TransactionAllocation]:
        if not allocations:
            return []
        if type == TransactionType.INCOME:
            raise ValidationError("Income transactions cannot carry RAB allocations")

        rows = []
        total = Decimal("0.00")
        for allocation in allocations:
            item = self.db.get(RabItem, allocation.rab_item_id)
            if item is None or item.program_id != program.id:
                raise NotFound(
                    f"RAB item {allocation.rab_item_id} not found in program {program.id}"
                )
            allocated = to_money(allocation.amount)
            if allocated <= 0:
                raise ValidationError("Allocation amounts must be greater than zero")
            total += allocated
            rows.append(TransactionAllocation(rab_item_id=item.id, amount=allocated))

        if total != amount:
            raise ValidationError(
                f"Allocations total {total} but transaction amount is {amount}",
                {"allocated": str(total), "amount": str(amount)},
            )
        return rows

    def _get_program(self, program_id: int) -> Program:
        program = self.db.get(Program, program_id)
        if program is None:
            raise NotFound(f"Program {program_id} not found")
        return program


__all__ = ["LedgerService", "AllocationInput", "ClaimFilter", "ClaimListing"]
