"""
Mapping of economy errors to HTTP responses
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from economy.core.errors import (
    AlreadyActiveError,
    ConcurrencyConflict,
    DuplicateRequest,
    EconomyError,
    GiftNotFound,
    GrantNotFound,
    IdempotencyKeyConflict,
    InsufficientFunds,
    OperationTimeout,
    SelfGiftError,
    StorageUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SelfGiftError: status.HTTP_400_BAD_REQUEST,
    InsufficientFunds: status.HTTP_402_PAYMENT_REQUIRED,
    GiftNotFound: status.HTTP_404_NOT_FOUND,
    GrantNotFound: status.HTTP_404_NOT_FOUND,
    AlreadyActiveError: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
    IdempotencyKeyConflict: status.HTTP_409_CONFLICT,
    OperationTimeout: status.HTTP_504_GATEWAY_TIMEOUT,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: EconomyError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            return STATUS_CODES[error_type]
    return status.HTTP_400_BAD_REQUEST


async def economy_error_handler(request: Request, exc: EconomyError) -> JSONResponse:
    if isinstance(exc, DuplicateRequest):
        # Idempotent replay: the original result, not an error
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={**exc.result.model_dump(mode="json"), "replayed": True},
        )
    code = status_code_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}")
    return JSONResponse(status_code=code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EconomyError, economy_error_handler)
