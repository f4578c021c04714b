"""Unit tests for the approval state machine."""

from decimal import Decimal

import pytest

from rab_ledger.errors import BudgetExceeded, Forbidden, InvalidState, NotFound, ValidationError
from rab_ledger.models.audit_log import AuditLog
from rab_ledger.models.expense import ExpenseStatus
from rab_ledger.models.program import ProgramStatus
from rab_ledger.services.approval_service import ApprovalService
from rab_ledger.services.ledger_service import LedgerService
from rab_ledger.services.program_service import ProgramService
from rab_ledger.services.rab_service import RabService


class TestApprove:
    """Approval realizes spend against the RAB item."""

    def test_budget_scenario(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        """1,000,000 budget: approve 600,000, then 500,000 is refused."""
        approvals = ApprovalService(db_session)
        rab = RabService(db_session)

        first = submit_claim(member_ctx, active_program, rab_item, "600000")
        approved = approvals.approve(admin_ctx, first.id)
        assert approved.status == ExpenseStatus.APPROVED
        assert rab.get_remaining_budget(rab_item) == Decimal("400000.00")

        second = submit_claim(member_ctx, active_program, rab_item, "500000")
        assert second.status == ExpenseStatus.PENDING

        with pytest.raises(BudgetExceeded) as exc_info:
            approvals.approve(admin_ctx, second.id)
        assert exc_info.value.details["remaining_budget"] == "400000.00"

        db_session.expire_all()
        claim = LedgerService(db_session).get_claim(admin_ctx, second.id)
        assert claim.status == ExpenseStatus.PENDING
        assert rab.get_remaining_budget(rab_item) == Decimal("400000.00")
        assert rab.get_by_id(rab_item.id).realized_amount == Decimal("600000.00")

    def test_exact_remaining_is_approved(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000000")
        ApprovalService(db_session).approve(admin_ctx, claim.id)
        view = RabService(db_session).view(rab_item)
        assert view.remaining == Decimal("0.00")

    def test_approve_records_decision(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        approved = ApprovalService(db_session).approve(admin_ctx, claim.id)
        assert approved.decided_by_id == admin_ctx.user_id
        assert approved.decided_at is not None

        entry = (
            db_session.query(AuditLog)
            .filter(AuditLog.entity_type == "expense", AuditLog.action == "approve")
            .one()
        )
        assert entry.entity_id == claim.id
        assert entry.changes["remaining_after"] == "999000.00"

    def test_member_cannot_approve(
        self, db_session, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        with pytest.raises(Forbidden):
            ApprovalService(db_session).approve(member_ctx, claim.id)

    def test_unknown_claim(self, db_session, admin_ctx):
        with pytest.raises(NotFound):
            ApprovalService(db_session).approve(admin_ctx, 4242)


class TestTerminalStates:
    """Decided claims never change again."""

    def test_second_approve_is_invalid_state(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        approvals = ApprovalService(db_session)
        approvals.approve(admin_ctx, claim.id)

        with pytest.raises(InvalidState):
            approvals.approve(admin_ctx, claim.id)
        assert RabService(db_session).get_remaining_budget(rab_item) == Decimal("999000.00")

    def test_reject_after_approve_is_invalid_state(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        approvals = ApprovalService(db_session)
        approvals.approve(admin_ctx, claim.id)

        with pytest.raises(InvalidState):
            approvals.reject(admin_ctx, claim.id, "Too late")

    def test_approve_after_reject_is_invalid_state(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "1000")
        approvals = ApprovalService(db_session)
        approvals.reject(admin_ctx, claim.id, "Nota tidak jelas")

        with pytest.raises(InvalidState):
            approvals.approve(admin_ctx, claim.id)


class TestReject:
    """Rejection requires a note and never touches the budget."""

    def test_reject_with_note(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "2500")
        rejected = ApprovalService(db_session).reject(admin_ctx, claim.id, "  Nota tidak jelas ")

        assert rejected.status == ExpenseStatus.REJECTED
        assert rejected.rejection_note == "Nota tidak jelas"
        assert RabService(db_session).get_remaining_budget(rab_item) == Decimal("1000000.00")

    @pytest.mark.parametrize("note", [None, "", "   "])
    def test_reject_requires_note(
        self, db_session, admin_ctx, member_ctx, active_program, rab_item, submit_claim, note
    ):
        claim = submit_claim(member_ctx, active_program, rab_item, "2500")
        with pytest.raises(ValidationError):
            ApprovalService(db_session).reject(admin_ctx, claim.id, note)

        db_session.expire_all()
        assert LedgerService(db_session).get_claim(admin_ctx, claim.id).is_pending


class TestCentAmounts:
    """Approvals stay exact when amounts carry cents."""

    @pytest.fixture
    def small_item(self, db_session, admin_ctx, draft_program):
        return RabService(db_session).create_category(
            admin_ctx, draft_program.id, name="Materai", volume=1, unit_price=Decimal("0.30")
        )

    @pytest.fixture
    def cent_program(self, db_session, admin_ctx, draft_program, small_item):
        return ProgramService(db_session).change_status(
            admin_ctx, draft_program.id, ProgramStatus.ACTIVE
        )

    def test_exact_remaining_with_cents(
        self, db_session, admin_ctx, member_ctx, cent_program, small_item, submit_claim
    ):
        """0.10 then 0.20 fills a 0.30 budget exactly."""
        approvals = ApprovalService(db_session)
        first = submit_claim(member_ctx, cent_program, small_item, "0.10")
        second = submit_claim(member_ctx, cent_program, small_item, "0.20")

        approvals.approve(admin_ctx, first.id)
        approved = approvals.approve(admin_ctx, second.id)

        assert approved.status == ExpenseStatus.APPROVED
        rab = RabService(db_session)
        assert rab.get_remaining_budget(small_item) == Decimal("0.00")
        assert rab.get_by_id(small_item.id).realized_amount == Decimal("0.30")

    def test_one_cent_over_is_refused(
        self, db_session, admin_ctx, member_ctx, cent_program, small_item, submit_claim
    ):
        approvals = ApprovalService(db_session)
        first = submit_claim(member_ctx, cent_program, small_item, "0.10")
        over = submit_claim(member_ctx, cent_program, small_item, "0.21")
        approvals.approve(admin_ctx, first.id)

        with pytest.raises(BudgetExceeded) as exc_info:
            approvals.approve(admin_ctx, over.id)
        assert exc_info.value.details["remaining_budget"] == "0.20"

        db_session.expire_all()
        exact = submit_claim(member_ctx, cent_program, small_item, "0.20")
        assert approvals.approve(admin_ctx, exact.id).status == ExpenseStatus.APPROVED

    def test_many_small_claims_fill_budget(
        self, db_session, admin_ctx, member_ctx, cent_program, small_item, submit_claim
    ):
        approvals = ApprovalService(db_session)
        for _ in range(3):
            claim = submit_claim(member_ctx, cent_program, small_item, "0.10")
            approvals.approve(admin_ctx, claim.id)

        extra = submit_claim(member_ctx, cent_program, small_item, "0.01")
        with pytest.raises(BudgetExceeded):
            approvals.approve(admin_ctx, extra.id)
        assert RabService(db_session).get_remaining_budget(small_item) == Decimal("0.00")
