"""
API Error Handling

Every failure leaves the API as a single ``{"error": "..."}`` object:
- ValidationError / request validation -> 400
- Database errors -> 500 with a generic message, details logged
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)

INTERNAL_ERROR = "Internal server error"


class ValidationError(Exception):
    """Missing or malformed request parameters"""
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected request", path=request.url.path, reason=exc.message)
    return error_response(exc.message, 400)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ())[1:])}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.info("Rejected request", path=request.url.path, reason=details)
    return error_response(f"Invalid request parameters: {details}", 400)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return error_response(INTERNAL_ERROR, 500)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the API's exception handlers to ``app``."""
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)


def require_dates(start_date, end_date) -> None:
    """Raise ValidationError unless both range boundaries were supplied."""
    if start_date is None or end_date is None:
        raise ValidationError("Start date and end date are required")
    if start_date > end_date:
        raise ValidationError("Start date must not be after end date")
