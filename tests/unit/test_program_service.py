"""Unit tests for the program registry."""

from datetime import date
from decimal import Decimal

import pytest

from rab_ledger.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from rab_ledger.models.program import MemberRole, ProgramStatus
from rab_ledger.models.transaction import TransactionType
from rab_ledger.models.user import UserRole
from rab_ledger.services.auth_service import create_user
from rab_ledger.services.ledger_service import LedgerService
from rab_ledger.services.program_service import ProgramService
from rab_ledger.services.receipt_service import ReceiptService


class TestCreateProgram:
    def test_created_as_draft(self, draft_program):
        assert draft_program.status == ProgramStatus.DRAFT

    def test_member_cannot_create(self, db_session, member_ctx):
        with pytest.raises(Forbidden):
            ProgramService(db_session).create_program(member_ctx, "Program", date(2026, 1, 1))

    def test_period_end_before_start(self, db_session, admin_ctx):
        with pytest.raises(ValidationError):
            ProgramService(db_session).create_program(
                admin_ctx, "Program", date(2026, 5, 1), date(2026, 1, 1)
            )


class TestStatusTransitions:
    """draft -> active -> closed, with cancellation from draft or active."""

    @pytest.mark.parametrize(
        "path",
        [
            [ProgramStatus.ACTIVE, ProgramStatus.CLOSED],
            [ProgramStatus.ACTIVE, ProgramStatus.CANCELLED],
            [ProgramStatus.CANCELLED],
        ],
    )
    def test_allowed_paths(self, db_session, admin_ctx, draft_program, path):
        service = ProgramService(db_session)
        for status in path:
            program = service.change_status(admin_ctx, draft_program.id, status)
        assert program.status == path[-1]

    @pytest.mark.parametrize(
        "setup,target",
        [
            ([], ProgramStatus.CLOSED),
            ([ProgramStatus.ACTIVE], ProgramStatus.DRAFT),
            ([ProgramStatus.ACTIVE, ProgramStatus.CLOSED], ProgramStatus.ACTIVE),
            ([ProgramStatus.CANCELLED], ProgramStatus.DRAFT),
        ],
    )
    def test_refused_paths(self, db_session, admin_ctx, draft_program, setup, target):
        service = ProgramService(db_session)
        for status in setup:
            service.change_status(admin_ctx, draft_program.id, status)
        with pytest.raises(InvalidState) as exc_info:
            service.change_status(admin_ctx, draft_program.id, target)
        assert exc_info.value.details["to"] == target.value

    def test_member_cannot_change_status(self, db_session, member_ctx, draft_program):
        with pytest.raises(Forbidden):
            ProgramService(db_session).change_status(
                member_ctx, draft_program.id, ProgramStatus.ACTIVE
            )


class TestDeleteProgram:
    def test_delete_draft(self, db_session, admin_ctx, draft_program):
        service = ProgramService(db_session)
        service.delete_program(admin_ctx, draft_program.id)
        with pytest.raises(NotFound):
            service.get_by_id(draft_program.id)

    def test_delete_active_refused(self, db_session, admin_ctx, active_program):
        with pytest.raises(InvalidState):
            ProgramService(db_session).delete_program(admin_ctx, active_program.id)

    def test_delete_removes_transaction_receipts(
        self, db_session, admin_ctx, draft_program, receipts_dir, make_receipt
    ):
        transaction = LedgerService(db_session).record_transaction(
            admin_ctx, draft_program.id, TransactionType.INCOME, Decimal("250000"), date(2026, 1, 5)
        )
        receipt = ReceiptService(db_session).upload_for_transaction(
            admin_ctx, transaction.id, make_receipt()
        )
        stored = receipts_dir / receipt.file_path
        assert stored.exists()

        ProgramService(db_session).delete_program(admin_ctx, draft_program.id)

        assert not stored.exists()


class TestRoster:
    """Member roster of up to five users."""

    def test_duplicate_member(self, db_session, admin_ctx, draft_program, member_user):
        with pytest.raises(Conflict):
            ProgramService(db_session).add_member(admin_ctx, draft_program.id, member_user.id)

    def test_roster_limit(self, db_session, admin_ctx, draft_program):
        service = ProgramService(db_session)
        for i in range(4):
            user = create_user(
                db_session, f"Anggota {i}", f"anggota{i}@example.org", "password-123"
            )
            service.add_member(admin_ctx, draft_program.id, user.id)

        extra = create_user(db_session, "Keenam", "keenam@example.org", "password-123")
        with pytest.raises(Conflict):
            service.add_member(admin_ctx, draft_program.id, extra.id)

    def test_unknown_user(self, db_session, admin_ctx, draft_program):
        with pytest.raises(NotFound):
            ProgramService(db_session).add_member(admin_ctx, draft_program.id, 999)

    def test_treasurer_can_manage_roster(self, db_session, admin_ctx, draft_program):
        from rab_ledger.services.auth_service import RequestContext

        service = ProgramService(db_session)
        treasurer = create_user(db_session, "Bendahara", "bendahara@example.org", "password-123")
        service.add_member(admin_ctx, draft_program.id, treasurer.id, MemberRole.BENDAHARA)
        newcomer = create_user(db_session, "Baru", "baru@example.org", "password-123")

        member = service.add_member(
            RequestContext.for_user(treasurer), draft_program.id, newcomer.id
        )
        assert member.role == MemberRole.ANGGOTA

    def test_remove_member(self, db_session, admin_ctx, draft_program, member_user):
        service = ProgramService(db_session)
        service.remove_member(admin_ctx, draft_program.id, member_user.id)
        assert service.list_members(admin_ctx, draft_program.id) == []


class TestListPrograms:
    def test_admin_sees_all_member_sees_own(
        self, db_session, admin_ctx, member_ctx, draft_program
    ):
        service = ProgramService(db_session)
        service.create_program(admin_ctx, "Program Lain", date(2026, 3, 1))

        assert len(service.list_programs(admin_ctx)) == 2
        own = service.list_programs(member_ctx)
        assert [listing.program.id for listing in own] == [draft_program.id]
        assert own[0].member_count == 1

    def test_status_filter(self, db_session, admin_ctx, draft_program):
        listings = ProgramService(db_session).list_programs(admin_ctx, status=ProgramStatus.ACTIVE)
        assert listings == []

    def test_admin_role_user(self, db_session):
        admin = create_user(db_session, "Root", "root@example.org", "password-123", UserRole.ADMIN)
        assert admin.is_admin
