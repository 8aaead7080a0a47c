# corgi_buddy/core/errors.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    FATAL = "fatal"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.FATAL: 500,
}

HTTP_ERROR_CODES: Dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    503: "SERVICE_UNAVAILABLE",
}


class ServiceError(Exception):
    """
    Base of every domain error.

    `kind` is the discriminant callers match on; `code` is the stable
    machine-readable value returned to API clients.
    """

    kind: ErrorKind = ErrorKind.FATAL
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


# ─────────────────────────────────────────────
# Kinds
# ─────────────────────────────────────────────

class ValidationError(ServiceError):
    kind = ErrorKind.VALIDATION
    code = "VALIDATION_ERROR"


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"


class ForbiddenError(ServiceError):
    kind = ErrorKind.FORBIDDEN
    code = "FORBIDDEN"


class ConflictError(ServiceError):
    kind = ErrorKind.CONFLICT
    code = "CONFLICT"


class TransientError(ServiceError):
    kind = ErrorKind.TRANSIENT
    code = "SERVICE_UNAVAILABLE"


class FatalError(ServiceError):
    kind = ErrorKind.FATAL
    code = "INTERNAL_ERROR"


# ─────────────────────────────────────────────
# Concrete domain errors
# ─────────────────────────────────────────────

class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")


class SightingNotFoundError(NotFoundError):
    code = "SIGHTING_NOT_FOUND"

    def __init__(self, sighting_id: int):
        super().__init__(f"Sighting {sighting_id} not found")


class WishNotFoundError(NotFoundError):
    code = "WISH_NOT_FOUND"

    def __init__(self, wish_id: int):
        super().__init__(f"Wish {wish_id} not found")


class TransactionNotFoundError(NotFoundError):
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: int):
        super().__init__(f"Transaction {transaction_id} not found")


class BuddyPairNotFoundError(NotFoundError):
    code = "BUDDY_PAIR_NOT_FOUND"


class BankWalletNotFoundError(NotFoundError):
    code = "BANK_WALLET_NOT_FOUND"

    def __init__(self):
        super().__init__("Bank wallet has not been initialized")


class NoActiveBuddyError(ValidationError):
    code = "NO_ACTIVE_BUDDY"


class WalletNotConnectedError(ValidationError):
    code = "WALLET_NOT_CONNECTED"


class InvalidStateError(ConflictError):
    code = "INVALID_STATE"


class AlreadyRespondedError(ConflictError):
    code = "ALREADY_RESPONDED"


class InsufficientBankFundsError(ConflictError):
    code = "INSUFFICIENT_BANK_FUNDS"


class ChainError(TransientError):
    """
    Failure talking to the chain relay. `retryable` overrides the
    kind-based default for the retry classifier.
    """

    code = "BLOCKCHAIN_ERROR"
    retryable = True

    def __init__(self, message: str, *, retryable: Optional[bool] = None, status: Optional[int] = None):
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable
        self.status = status


class ChainTimeoutError(ChainError):
    code = "BLOCKCHAIN_TIMEOUT"


class ChainRejectedError(ChainError):
    code = "BLOCKCHAIN_REJECTED"
    retryable = False


class ChainConfigurationError(ChainError):
    kind = ErrorKind.FATAL
    code = "BLOCKCHAIN_NOT_CONFIGURED"
    retryable = False


class SettlementFailedError(TransientError):
    """
    Raised after a broadcast exhausted its attempts; the transaction row
    has already been marked failed.
    """

    code = "BLOCKCHAIN_ERROR"

    def __init__(self, message: str, *, transaction_id: int, attempts: int, retryable: bool):
        super().__init__(message, details={"transactionId": transaction_id, "attempts": attempts})
        self.transaction_id = transaction_id
        self.attempts = attempts
        self.retryable = retryable


# ─────────────────────────────────────────────
# HTTP translation
# ─────────────────────────────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def _service_error(request: Request, exc: ServiceError):
        rid = getattr(request.state, "request_id", None)
        if exc.kind in (ErrorKind.FATAL, ErrorKind.TRANSIENT):
            logger.error("[%s %s] %s: %s", request.method, request.url.path, exc.code, exc.message, extra={"request_id": rid})
        else:
            logger.info("[%s %s] %s: %s", request.method, request.url.path, exc.code, exc.message, extra={"request_id": rid})

        body = exc.to_dict()
        if exc.kind == ErrorKind.FATAL:
            body = {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": code, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": "VALIDATION_ERROR", "message": message})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None)
        logger.exception("[%s %s] unhandled error", request.method, request.url.path, extra={"request_id": rid})
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"},
        )
