"""API error handling and response helpers."""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from rab_ledger.errors import AppError, Unavailable, ValidationError

logger = logging.getLogger(__name__)


def error_response(error: AppError) -> Dict[str, Any]:
    """Create a standardized error response."""
    body: Dict[str, Any] = {
        "code": error.code,
        "message": error.message,
        "retryable": error.retryable,
    }
    if error.details:
        body["details"] = error.details
    return {"error": body}


def render_error(error: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status, content=jsonable_encoder(error_response(error))
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s refused: %s (%s)", request.method, request.url.path, exc.code, exc.message
        )
    return render_error(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]
    return render_error(ValidationError(message, {"errors": details}))


async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return render_error(Unavailable("Database temporarily unavailable, please retry"))


def register_error_handlers(app: FastAPI) -> None:
    """Render domain errors with the standard error envelope."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)
