# Overview: Structured error kinds raised by the shift engine.

from __future__ import annotations


class ShiftError(Exception):
    """
    Base error for shift operations.

    Carries enough context (shift id, attempted operation, reason) for a caller
    to show an actionable message. `retryable` marks failures the caller may
    retry as a whole operation.
    """
    kind = "ShiftError"
    retryable = False

    def __init__(self, message: str, *, shift_id: str | None = None, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.shift_id = shift_id
        self.operation = operation

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "shift_id": self.shift_id,
            "operation": self.operation,
            "retryable": self.retryable,
        }


class InvalidAmount(ShiftError, ValueError):
    kind = "InvalidAmount"


class InvalidMovement(ShiftError, ValueError):
    kind = "InvalidMovement"


class InvalidPaymentMethod(ShiftError, ValueError):
    kind = "InvalidPaymentMethod"


class InvalidRequest(ShiftError, ValueError):
    """Malformed argument or request body (wrong type, too long)."""
    kind = "InvalidRequest"


class ShiftNotActive(ShiftError):
    """Operation targets a missing or CLOSED shift."""
    kind = "ShiftNotActive"


class ShiftNotFound(ShiftNotActive):
    kind = "ShiftNotFound"


class ShiftAlreadyClosed(ShiftNotActive):
    kind = "ShiftAlreadyClosed"


class ShiftAlreadyOpen(ShiftError):
    kind = "ShiftAlreadyOpen"


class MissingActor(ShiftError):
    kind = "MissingActor"


class PostingConflict(ShiftError):
    """Idempotency key reused with a different payment payload."""
    kind = "PostingConflict"


class PersistenceFailure(ShiftError):
    kind = "PersistenceFailure"
    retryable = True


class LockTimeout(ShiftError):
    kind = "LockTimeout"
    retryable = True