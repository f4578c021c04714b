"""Unit tests for the ledger: transactions and expense claims."""

from datetime import date
from decimal import Decimal

import pytest

from rab_ledger.errors import Forbidden, InvalidState, NotFound, ValidationError
from rab_ledger.models.expense import ExpenseStatus
from rab_ledger.models.program import ProgramStatus
from rab_ledger.models.transaction import TransactionType
from rab_ledger.services.approval_service import ApprovalService
from rab_ledger.services.ledger_service import AllocationInput, ClaimFilter, LedgerService
from rab_ledger.services.program_service import ProgramService
from rab_ledger.services.rab_service import RabService
from rab_ledger.services.receipt_service import ReceiptStorage


class TestRecordTransaction:
    """Settled income and expense."""

    def test_income_without_allocations(self, db_session, admin_ctx, draft_program):
        transaction = LedgerService(db_session).record_transaction(
            admin_ctx,
            draft_program.id,
            TransactionType.INCOME,
            Decimal("2500000"),
            date(2026, 1, 2),
            description="Iuran anggota",
        )
        assert transaction.amount == Decimal("2500000.00")
        assert transaction.allocations == []

    def test_expense_with_exact_allocations(self, db_session, admin_ctx, draft_program, rab_item):
        transaction = LedgerService(db_session).record_transaction(
            admin_ctx,
            draft_program.id,
            TransactionType.EXPENSE,
            Decimal("150000"),
            date(2026, 1, 3),
            allocations=[
                AllocationInput(rab_item.id, Decimal("100000")),
                AllocationInput(rab_item.id, Decimal("50000")),
            ],
        )
        assert len(transaction.allocations) == 2

    def test_allocation_mismatch_rejected(self, db_session, admin_ctx, draft_program, rab_item):
        with pytest.raises(ValidationError) as exc_info:
            LedgerService(db_session).record_transaction(
                admin_ctx,
                draft_program.id,
                TransactionType.EXPENSE,
                Decimal("150000"),
                date(2026, 1, 3),
                allocations=[AllocationInput(rab_item.id, Decimal("100000"))],
            )
        assert exc_info.value.details["allocated"] == "100000.00"

    def test_income_allocations_rejected(self, db_session, admin_ctx, draft_program, rab_item):
        with pytest.raises(ValidationError):
            LedgerService(db_session).record_transaction(
                admin_ctx,
                draft_program.id,
                TransactionType.INCOME,
                Decimal("1000"),
                date(2026, 1, 3),
                allocations=[AllocationInput(rab_item.id, Decimal("1000"))],
            )

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount_rejected(self, db_session, admin_ctx, draft_program, amount):
        with pytest.raises(ValidationError):
            LedgerService(db_session).record_transaction(
                admin_ctx, draft_program.id, TransactionType.INCOME, Decimal(amount),
                date(2026, 1, 3)
            )

    def test_refused_on_closed_program(self, db_session, admin_ctx, active_program):
        ProgramService(db_session).change_status(admin_ctx, active_program.id, ProgramStatus.CLOSED)
        with pytest.raises(InvalidState):
            LedgerService(db_session).record_transaction(
                admin_ctx, active_program.id, TransactionType.INCOME, Decimal("10"),
                date(2026, 1, 3)
            )

    def test_plain_member_cannot_record(self, db_session, member_ctx, draft_program):
        with pytest.raises(Forbidden):
            LedgerService(db_session).record_transaction(
                member_ctx, draft_program.id, TransactionType.INCOME, Decimal("10"),
                date(2026, 1, 3)
            )

    def test_list_filters_by_type(self, db_session, admin_ctx, draft_program):
        ledger = LedgerService(db_session)
        ledger.record_transaction(
            admin_ctx, draft_program.id, TransactionType.INCOME, Decimal("10"),
            date(2026, 1, 3)
        )
        ledger.record_transaction(
            admin_ctx, draft_program.id, TransactionType.EXPENSE, Decimal("4"), date(2026, 1, 4)
        )
        expenses = ledger.list_transactions(
            admin_ctx, draft_program.id, type=TransactionType.EXPENSE
        )
        assert [t.amount for t in expenses] == [Decimal("4.00")]


class TestSubmitClaim:
    """Claims enter the ledger as pending."""

    def test_submit_creates_pending_claim(
        self, db_session, member_ctx, active_program, rab_item, make_receipt
    ):
        claim = LedgerService(db_session).submit_expense_claim(
            member_ctx,
            active_program.id,
            rab_item.id,
            Decimal("75000"),
            "Snack rapat",
            date(2026, 2, 3),
            [make_receipt()],
        )
        assert claim.status == ExpenseStatus.PENDING
        assert len(claim.receipts) == 1
        assert RabService(db_session).get_remaining_budget(rab_item) == Decimal("1000000.00")

    def test_amount_above_remaining_is_accepted_as_pending(
        self, db_session, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1500000")
        assert claim.is_pending

    def test_receipt_required(self, db_session, member_ctx, active_program, rab_item):
        with pytest.raises(ValidationError):
            LedgerService(db_session).submit_expense_claim(
                member_ctx, active_program.id, rab_item.id, Decimal("1"), "x", date(2026, 2, 3), []
            )

    def test_description_required(
        self, db_session, member_ctx, active_program, rab_item, make_receipt
    ):
        with pytest.raises(ValidationError):
            LedgerService(db_session).submit_expense_claim(
                member_ctx,
                active_program.id,
                rab_item.id,
                Decimal("1"),
                "  ",
                date(2026, 2, 3),
                [make_receipt()],
            )

    def test_draft_program_refuses_claims(
        self, db_session, member_ctx, draft_program, rab_item, make_receipt
    ):
        with pytest.raises(InvalidState):
            LedgerService(db_session).submit_expense_claim(
                member_ctx,
                draft_program.id,
                rab_item.id,
                Decimal("1"),
                "x",
                date(2026, 2, 3),
                [make_receipt()],
            )

    def test_outsider_cannot_submit(
        self, db_session, outsider_user, active_program, rab_item, make_receipt
    ):
        from rab_ledger.services.auth_service import RequestContext

        with pytest.raises(Forbidden):
            LedgerService(db_session).submit_expense_claim(
                RequestContext.for_user(outsider_user),
                active_program.id,
                rab_item.id,
                Decimal("1"),
                "x",
                date(2026, 2, 3),
                [make_receipt()],
            )

    def test_unknown_item(self, db_session, member_ctx, active_program, make_receipt):
        with pytest.raises(NotFound):
            LedgerService(db_session).submit_expense_claim(
                member_ctx,
                active_program.id,
                999,
                Decimal("1"),
                "x",
                date(2026, 2, 3),
                [make_receipt()],
            )

    def test_failed_submission_leaves_no_files(
        self, db_session, member_ctx, active_program, rab_item, make_receipt, receipts_dir
    ):
        bad = make_receipt(filename="virus.exe", content_type="application/x-msdownload")
        with pytest.raises(ValidationError):
            LedgerService(db_session).submit_expense_claim(
                member_ctx,
                active_program.id,
                rab_item.id,
                Decimal("1"),
                "x",
                date(2026, 2, 3),
                [make_receipt(), bad],
            )
        assert not receipts_dir.exists() or not any(p.is_file() for p in receipts_dir.rglob("*"))

    def test_failed_save_removes_earlier_files(
        self,
        db_session,
        member_ctx,
        active_program,
        rab_item,
        make_receipt,
        receipts_dir,
        monkeypatch,
    ):
        real_save = ReceiptStorage.save
        calls = []

        def save_then_fail(storage, upload):
            calls.append(upload.filename)
            if len(calls) > 1:
                raise OSError("disk full")
            return real_save(storage, upload)

        monkeypatch.setattr(ReceiptStorage, "save", save_then_fail)
        with pytest.raises(OSError):
            LedgerService(db_session).submit_expense_claim(
                member_ctx,
                active_program.id,
                rab_item.id,
                Decimal("1"),
                "x",
                date(2026, 2, 3),
                [make_receipt(), make_receipt(filename="kedua.png")],
            )
        assert calls == ["nota.png", "kedua.png"]
        assert not any(p.is_file() for p in receipts_dir.rglob("*"))


class TestListClaims:
    """Filtered, restartable claim listings."""

    def test_filters(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        submit_claim(member_ctx, active_program, rab_item, "1000", "Air mineral")
        second = submit_claim(member_ctx, active_program, rab_item, "2000", "Sewa tenda")
        ApprovalService(db_session).approve(admin_ctx, second.id)

        ledger = LedgerService(db_session)
        approved = ledger.list_claims(
            admin_ctx, active_program.id, ClaimFilter(status=ExpenseStatus.APPROVED)
        )
        assert [c.id for c in approved] == [second.id]

        searched = ledger.list_claims(admin_ctx, active_program.id, ClaimFilter(search_term="AIR"))
        assert [c.description for c in searched] == ["Air mineral"]

    def test_newest_first_and_restartable(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        first = submit_claim(member_ctx, active_program, rab_item, "1000")
        second = submit_claim(member_ctx, active_program, rab_item, "2000")

        listing = LedgerService(db_session).list_claims(admin_ctx, active_program.id)
        assert [c.id for c in listing] == [second.id, first.id]
        assert [c.id for c in listing] == [second.id, first.id]
        assert listing.count() == 2

    def test_empty_listing(self, db_session, admin_ctx, active_program):
        listing = LedgerService(db_session).list_claims(
            admin_ctx, active_program.id, ClaimFilter(status=ExpenseStatus.REJECTED)
        )
        assert listing.all() == []


class TestDeleteClaim:
    """Only pending claims can be withdrawn."""

    def test_delete_pending(self, db_session, member_ctx, active_program, rab_item, submit_claim):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        ledger = LedgerService(db_session)
        ledger.delete_claim(member_ctx, claim.id)
        with pytest.raises(NotFound):
            ledger.get_claim(member_ctx, claim.id)

    def test_delete_approved_refused(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        ApprovalService(db_session).approve(admin_ctx, claim.id)
        with pytest.raises(InvalidState):
            LedgerService(db_session).delete_claim(admin_ctx, claim.id)
