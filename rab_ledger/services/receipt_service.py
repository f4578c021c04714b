"""Receipt storage: files attached to expense claims and transactions.

Files live under ``settings.receipts_dir`` in date-partitioned folders::

    receipts_dir/{year}/{month:02d}/{uuid4}_{sanitized_filename}

The database stores the path relative to ``receipts_dir``.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy.orm import Session

from rab_ledger.config import settings
from rab_ledger.errors import Forbidden, InvalidState, NotFound, ValidationError
from rab_ledger.models.expense import Expense
from rab_ledger.models.program import Program
from rab_ledger.models.receipt import Receipt
from rab_ledger.models.transaction import Transaction
from rab_ledger.services import commit_or_rollback
from rab_ledger.services.audit_service import AuditService
from rab_ledger.services.auth_service import (
    RequestContext,
    require_program_access,
    require_program_manager,
)

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """A receipt file as received from the transport layer."""

    filename: str
    content_type: str
    content: bytes


def _sanitize_filename(filename: str) -> str:
    """Return filename with spaces replaced by underscores and special chars removed."""
    name = Path(filename).name.replace(" ", "_")
    name = re.sub(r"[^\w.\-]", "", name)
    return name or "receipt"


class ReceiptStorage:
    """Filesystem side of receipt handling."""

    def __init__(self, root: Path | None = None):
        self.root = Path(root or settings.receipts_dir)

    def validate(self, upload: UploadedFile) -> None:
        """Check size and content type.

        Raises:
            ValidationError: Empty, too large, or not an image/PDF
        """
        if not upload.content:
            raise ValidationError("Receipt file is empty")
        if len(upload.content) > settings.max_receipt_bytes:
            raise ValidationError(
                f"Receipt exceeds maximum size of {settings.max_receipt_bytes // (1024 * 1024)}MB",
                {"size": len(upload.content), "max": settings.max_receipt_bytes},
            )
        if upload.content_type not in settings.allowed_receipt_types:
            raise ValidationError(
                f"Unsupported receipt type {upload.content_type!r}; images or PDF only",
                {"allowed": list(settings.allowed_receipt_types)},
            )

    def save(self, upload: UploadedFile) -> str:
        """Write bytes to disk and return the path relative to the root."""
        now = datetime.now()
        dest_dir = self.root / str(now.year) / f"{now.month:02d}"
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest_path = dest_dir / f"{uuid.uuid4()}_{_sanitize_filename(upload.filename)}"
        dest_path.write_bytes(upload.content)
        return dest_path.relative_to(self.root).as_posix()

    def path_for(self, relative_path: str) -> Path:
        path = (self.root / relative_path).resolve()
        if self.root.resolve() not in path.parents:
            raise NotFound("Receipt file not found")
        return path

    def remove(self, relative_path: str) -> None:
        try:
            self.path_for(relative_path).unlink(missing_ok=True)
        except NotFound:
            logger.warning("Refusing to remove receipt outside storage root: %s", relative_path)
        except OSError as e:
            logger.error("Failed to remove receipt file %s: %s", relative_path, e)


class ReceiptService:
    """Receipt records plus their stored files."""

    def __init__(self, db_session: Session, storage: ReceiptStorage | None = None):
        self.db = db_session
        self.storage = storage or ReceiptStorage()

    def build(self, upload: UploadedFile, uploaded_by_id: int) -> Receipt:
        """Validate and store a file; return an unsaved Receipt row.

        The caller attaches the row to its owner and commits.
        """
        self.storage.validate(upload)
        relative_path = self.storage.save(upload)
        return Receipt(
            file_path=relative_path,
            original_filename=Path(upload.filename).name or "receipt",
            content_type=upload.content_type,
            size_bytes=len(upload.content),
            uploaded_by_id=uploaded_by_id,
        )

    def get_by_id(self, receipt_id: int) -> Receipt:
        receipt = self.db.get(Receipt, receipt_id)
        if receipt is None:
            raise NotFound(f"Receipt {receipt_id} not found")
        return receipt

    def list_for_transaction(self, ctx: RequestContext, transaction_id: int) -> list[Receipt]:
        transaction = self._get_transaction(transaction_id)
        require_program_access(self.db, ctx, self._program(transaction.program_id))
        return list(transaction.receipts)

    def list_for_expense(self, ctx: RequestContext, expense_id: int) -> list[Receipt]:
        expense = self._get_expense(expense_id)
        self._require_expense_viewer(ctx, expense)
        return list(expense.receipts)

    def upload_for_transaction(
        self, ctx: RequestContext, transaction_id: int, upload: UploadedFile
    ) -> Receipt:
        transaction = self._get_transaction(transaction_id)
        program = self._program(transaction.program_id)
        require_program_manager(self.db, ctx, program)

        receipt = self.build(upload, ctx.user_id)
        transaction.receipts.append(receipt)
        return self._commit_new(ctx, receipt, program.id)

    def upload_for_expense(self, ctx: RequestContext, expense_id: int, upload: UploadedFile) -> Receipt:
        """Attach another receipt to a pending claim (submitter or admin only)."""
        expense = self._get_expense(expense_id)
        if not (ctx.is_admin or expense.submitted_by_id == ctx.user_id):
            raise Forbidden("Only the submitter or an administrator can add receipts")
        if not expense.is_pending:
            raise InvalidState(f"Expense {expense_id} is {expense.status.value}; receipts are final")

        receipt = self.build(upload, ctx.user_id)
        expense.receipts.append(receipt)
        return self._commit_new(ctx, receipt, expense.program_id)

    def open_for_download(self, ctx: RequestContext, receipt_id: int) -> tuple[Receipt, Path]:
        receipt = self.get_by_id(receipt_id)
        if receipt.expense_id is not None:
            self._require_expense_viewer(ctx, self._get_expense(receipt.expense_id))
        else:
            transaction = self._get_transaction(receipt.transaction_id)
            require_program_access(self.db, ctx, self._program(transaction.program_id))

        path = self.storage.path_for(receipt.file_path)
        if not path.exists():
            logger.error("Receipt %d missing on disk at %s", receipt.id, path)
            raise NotFound(f"Receipt file for {receipt_id} is missing")
        return receipt, path

    def delete(self, ctx: RequestContext, receipt_id: int) -> None:
        """Delete one receipt.

        Receipts of decided claims are immutable, and a pending claim keeps
        at least one receipt.
        """
        receipt = self.get_by_id(receipt_id)
        if receipt.expense_id is not None:
            expense = self._get_expense(receipt.expense_id)
            if not (ctx.is_admin or expense.submitted_by_id == ctx.user_id):
                raise Forbidden("Only the submitter or an administrator can delete receipts")
            if not expense.is_pending:
                raise InvalidState(
                    f"Expense {expense.id} is {expense.status.value}; receipts are final"
                )
            if len(expense.receipts) <= 1:
                raise ValidationError("An expense claim must keep at least one receipt")
            program_id = expense.program_id
        else:
            transaction = self._get_transaction(receipt.transaction_id)
            program_id = transaction.program_id
            require_program_manager(self.db, ctx, self._program(program_id))

        relative_path = receipt.file_path
        self.db.delete(receipt)
        AuditService.log(
            self.db,
            "receipt",
            receipt_id,
            "delete",
            ctx.user_id,
            {"filename": receipt.original_filename},
            program_id,
        )
        commit_or_rollback(self.db)
        self.storage.remove(relative_path)
        logger.info("Deleted receipt %d", receipt_id)

    def _commit_new(self, ctx: RequestContext, receipt: Receipt, program_id: int) -> Receipt:
        try:
            self.db.flush()
            AuditService.log(
                self.db,
                "receipt",
                receipt.id,
                "upload",
                ctx.user_id,
                {"filename": receipt.original_filename},
                program_id,
            )
            commit_or_rollback(self.db)
        except Exception:
            self.storage.remove(receipt.file_path)
            raise
        self.db.refresh(receipt)
        logger.info("Stored receipt %d (%s, %d bytes)", receipt.id, receipt.content_type, receipt.size_bytes)
        return receipt

    def _require_expense_viewer(self, ctx: RequestContext, expense: Expense) -> None:
        if expense.submitted_by_id == ctx.user_id:
            return
        require_program_access(self.db, ctx, self._program(expense.program_id))

    def _get_transaction(self, transaction_id: int) -> Transaction:
        transaction = self.db.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        return transaction

    def _get_expense(self, expense_id: int) -> Expense:
        expense = self.db.get(Expense, expense_id)
        if expense is None:
            raise NotFound(f"Expense {expense_id} not found")
        return expense

    def _program(self, program_id: int) -> Program:
        return self.db.get(Program, program_id)


__all__ = ["ReceiptService", "ReceiptStorage", "UploadedFile"]
