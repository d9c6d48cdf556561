"""
Domain errors raised by the economy services
"""

from typing import Any, Optional


class EconomyError(Exception):
    """Base class for every error surfaced by the economy core"""

    code = "economy_error"
    retryable = False

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "retryable": self.retryable}


class ValidationError(EconomyError):
    """Invalid request"""
    code = "validation_error"


class SelfGiftError(EconomyError):
    """Cannot send a gift to yourself"""
    code = "self_gift"


class GiftNotFound(EconomyError):
    """Gift not found or inactive"""
    code = "gift_not_found"


class GrantNotFound(EconomyError):
    """Grant not found"""
    code = "grant_not_found"


class InsufficientFunds(EconomyError):
    """Insufficient balance"""
    code = "insufficient_funds"

    def __init__(self, available: int, required: int):
        super().__init__(f"Insufficient balance: available {available}, required {required}")
        self.available = available
        self.required = required

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"available": self.available, "required": self.required})
        return data


class AlreadyActiveError(EconomyError):
    """Grant is already active"""
    code = "already_active"


class IdempotencyKeyConflict(EconomyError):
    """Idempotency key already used by another user"""
    code = "idempotency_key_conflict"


class ConcurrencyConflict(EconomyError):
    """Wallet was modified concurrently, please retry"""
    code = "concurrency_conflict"
    retryable = True


class StorageUnavailable(EconomyError):
    """Storage is temporarily unavailable"""
    code = "storage_unavailable"
    retryable = True


class OperationTimeout(EconomyError):
    """Operation timed out"""
    code = "operation_timeout"
    retryable = True


class DuplicateRequest(EconomyError):
    """
    Idempotent replay of an already completed request.

    Not a failure: ``result`` holds the outcome of the original call and
    callers return it unchanged.
    """
    code = "duplicate_request"

    def __init__(self, result: Any):
        super().__init__("Request already processed")
        self.result = result
