"""Receipt model - stored proof-of-purchase files."""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rab_ledger.models import Base, BaseModel


class Receipt(Base, BaseModel):
    """Receipt file owned by exactly one expense claim or transaction.

    Attributes:
        expense_id: Owning expense claim (mutually exclusive with transaction_id)
        transaction_id: Owning transaction
        file_path: Path relative to the receipts directory
        original_filename: Name the file was uploaded with
        content_type: MIME type (image or PDF)
        size_bytes: File size
        uploaded_by_id: Uploader
    """

    __tablename__ = "receipts"

    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"), nullable=True, index=True
    )
    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True, index=True
    )
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    expense: Mapped["Expense | None"] = relationship("Expense", back_populates="receipts")
    transaction: Mapped["Transaction | None"] = relationship(
        "Transaction", back_populates="receipts"
    )

    __table_args__ = (
        CheckConstraint(
            "(expense_id IS NULL) <> (transaction_id IS NULL)",
            name="ck_receipt_single_owner",
        ),
    )

    def __repr__(self) -> str:
        return f"<Receipt(id={self.id}, file={self.original_filename})>"
