# Overview: Append-only pay-in / pay-out ledger for one shift.

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator

from ..errors import InvalidAmount, InvalidMovement
from ..money import Money

if TYPE_CHECKING:
    from .shift_state import CashMovement

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
VALID_MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)
MAX_REASON_LENGTH = 255


def validate_movement(type_: str, amount: Money, reason: str | None, *,
                      shift_id: str | None = None, operation: str | None = None) -> str:
    """Check a movement's fields; returns the stripped reason."""
    if type_ not in VALID_MOVEMENT_TYPES:
        raise InvalidMovement(f"Movement type must be one of {', '.join(VALID_MOVEMENT_TYPES)}",
                              shift_id=shift_id, operation=operation)
    if not isinstance(amount, Money) or not amount.is_positive:
        raise InvalidAmount("Movement amount must be positive", shift_id=shift_id, operation=operation)
    if reason is not None and not isinstance(reason, str):
        raise InvalidMovement("Movement reason must be text", shift_id=shift_id, operation=operation)
    reason = (reason or "").strip()
    if not reason:
        raise InvalidMovement("Movement reason is required", shift_id=shift_id, operation=operation)
    if len(reason) > MAX_REASON_LENGTH:
        raise InvalidMovement(f"Movement reason is limited to {MAX_REASON_LENGTH} characters",
                              shift_id=shift_id, operation=operation)
    return reason


class CashLedger:
    """
    Ordered, append-only collection of cash movements.

    append() returns a new ledger; existing entries are never edited or
    removed. Corrections are recorded as offsetting movements.
    """

    def __init__(self, movements: Iterable[CashMovement] = ()):
        self._movements = tuple(movements)

    @property
    def movements(self) -> tuple[CashMovement, ...]:
        return self._movements

    def append(self, movement: CashMovement) -> "CashLedger":
        validate_movement(movement.type, movement.amount, movement.reason)
        return CashLedger(self._movements + (movement,))

    def total_in(self) -> Money:
        return sum((m.amount for m in self._movements if m.type == MOVEMENT_IN), Money.zero())

    def total_out(self) -> Money:
        return sum((m.amount for m in self._movements if m.type == MOVEMENT_OUT), Money.zero())

    def __len__(self) -> int:
        return len(self._movements)

    def __iter__(self) -> Iterator[CashMovement]:
        return iter(self._movements)
