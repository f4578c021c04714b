"""Receipt upload, download and deletion routes."""

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from rab_ledger.api.deps import get_request_context
from rab_ledger.schemas.common import MessageResponse
from rab_ledger.schemas.receipt import ReceiptResponse
from rab_ledger.services import get_db
from rab_ledger.services.auth_service import RequestContext
from rab_ledger.services.receipt_service import ReceiptService, UploadedFile

router = APIRouter(tags=["receipts"])


def to_uploaded_file(upload: UploadFile) -> UploadedFile:
    """Read a multipart upload into memory."""
    return UploadedFile(
        filename=upload.filename or "receipt",
        content_type=upload.content_type or "application/octet-stream",
        content=upload.file.read(),
    )


@router.get("/transactions/{transaction_id}/receipts", response_model=list[ReceiptResponse])
def list_transaction_receipts(
    transaction_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[ReceiptResponse]:
    receipts = ReceiptService(db).list_for_transaction(ctx, transaction_id)
    return [ReceiptResponse.model_validate(receipt) for receipt in receipts]


@router.post(
    "/transactions/{transaction_id}/receipts",
    response_model=ReceiptResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_transaction_receipt(
    transaction_id: int,
    file: UploadFile = File(...),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ReceiptResponse:
    receipt = ReceiptService(db).upload_for_transaction(ctx, transaction_id, to_uploaded_file(file))
    return ReceiptResponse.model_validate(receipt)


@router.get("/expenses/{expense_id}/receipts", response_model=list[ReceiptResponse])
def list_expense_receipts(
    expense_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> list[ReceiptResponse]:
    receipts = ReceiptService(db).list_for_expense(ctx, expense_id)
    return [ReceiptResponse.model_validate(receipt) for receipt in receipts]


@router.post(
    "/expenses/{expense_id}/receipts",
    response_model=ReceiptResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_expense_receipt(
    expense_id: int,
    file: UploadFile = File(...),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> ReceiptResponse:
    """Attach another receipt to a pending claim."""
    receipt = ReceiptService(db).upload_for_expense(ctx, expense_id, to_uploaded_file(file))
    return ReceiptResponse.model_validate(receipt)


@router.get("/receipts/{receipt_id}/download", response_class=FileResponse)
def download_receipt(
    receipt_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> FileResponse:
    receipt, path = ReceiptService(db).open_for_download(ctx, receipt_id)
    return FileResponse(path, media_type=receipt.content_type, filename=receipt.original_filename)


@router.delete("/receipts/{receipt_id}", response_model=MessageResponse)
def delete_receipt(
    receipt_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MessageResponse:
    ReceiptService(db).delete(ctx, receipt_id)
    return MessageResponse(message=f"Receipt {receipt_id} deleted")
