# Overview: Shift entity snapshots, cash movements and sale postings.

"""
Shift state

WHY: A register shift is the unit of cash accountability. The state objects
here are immutable snapshots; every operation builds a new snapshot with
dataclasses.replace, so a failed write never leaves a half-mutated shift
behind in memory.

INVARIANTS:
- Identity, opener, start time and opening float never change after open.
- cash_movements and postings only ever grow, in insertion order.
- Closing fields (end_time, counted_cash, expected_cash, difference) are set
  exactly once, by close.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import uuid4

from ..money import Money
from ..time_utils import to_utc_z
from .cash_ledger import MOVEMENT_IN, MOVEMENT_OUT, VALID_MOVEMENT_TYPES, CashLedger  # noqa: F401


# =============================================================================
# CONSTANTS
# =============================================================================

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_DIGITAL = "digital"
VALID_PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_DIGITAL)

TRANSACTION_SALE = "sale"
TRANSACTION_RETURN = "return"
VALID_TRANSACTION_TYPES = (TRANSACTION_SALE, TRANSACTION_RETURN)

DEFAULT_CONTEXT = "default"
MAX_CONTEXT_LENGTH = 64
MAX_IDEMPOTENCY_KEY_LENGTH = 128


def new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class CashMovement:
    """Manual pay-in / pay-out recorded against the drawer."""
    id: str
    type: str
    amount: Money
    reason: str
    timestamp: datetime
    user_id: str
    user_name: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "amount_cents": self.amount.cents,
            "reason": self.reason,
            "timestamp": to_utc_z(self.timestamp),
            "user_id": self.user_id,
            "user_name": self.user_name,
        }


@dataclass(frozen=True)
class SalePosting:
    """One payment leg posted from the sale/return event source."""
    id: str
    payment_method: str
    amount: Money
    transaction_type: str
    timestamp: datetime
    user_id: str
    user_name: str
    idempotency_key: str | None = None

    def same_payload(self, payment_method: str, amount: Money, transaction_type: str) -> bool:
        return (
            self.payment_method == payment_method
            and self.amount == amount
            and self.transaction_type == transaction_type
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_method": self.payment_method,
            "amount_cents": self.amount.cents,
            "transaction_type": self.transaction_type,
            "idempotency_key": self.idempotency_key,
            "timestamp": to_utc_z(self.timestamp),
            "user_id": self.user_id,
            "user_name": self.user_name,
        }


@dataclass(frozen=True)
class ShiftState:
    id: str
    user_id: str
    user_name: str
    start_time: datetime
    starting_cash: Money
    context: str = DEFAULT_CONTEXT
    cash_sales: Money = Money.zero()
    card_sales: Money = Money.zero()
    digital_sales: Money = Money.zero()
    cash_movements: tuple[CashMovement, ...] = ()
    postings: tuple[SalePosting, ...] = ()
    status: str = STATUS_OPEN
    end_time: datetime | None = None
    counted_cash: Money | None = None
    expected_cash: Money | None = None
    difference: Money | None = None
    closed_by_id: str | None = None
    closed_by_name: str | None = None
    version: int = field(default=0, compare=False)

    @classmethod
    def opened(cls, *, user_id: str, user_name: str, starting_cash: Money, start_time: datetime,
               context: str = DEFAULT_CONTEXT) -> "ShiftState":
        return cls(
            id=new_id(),
            user_id=user_id,
            user_name=user_name,
            start_time=start_time,
            starting_cash=starting_cash,
            context=context,
        )

    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == STATUS_CLOSED

    @property
    def ledger(self) -> CashLedger:
        return CashLedger(self.cash_movements)

    @property
    def total_sales(self) -> Money:
        return self.cash_sales + self.card_sales + self.digital_sales

    def find_posting(self, idempotency_key: str) -> SalePosting | None:
        for posting in self.postings:
            if posting.idempotency_key == idempotency_key:
                return posting
        return None

    def with_posting(self, posting: SalePosting) -> "ShiftState":
        """Apply a posting to the matching accumulator and journal it."""
        accumulator = f"{posting.payment_method}_sales"
        current = getattr(self, accumulator)
        return replace(
            self,
            postings=self.postings + (posting,),
            **{accumulator: current + posting.amount},
        )

    def with_movement(self, movement: CashMovement) -> "ShiftState":
        return replace(self, cash_movements=self.ledger.append(movement).movements)

    def closed(self, *, end_time: datetime, counted_cash: Money, expected_cash: Money,
               difference: Money, closed_by_id: str, closed_by_name: str) -> "ShiftState":
        return replace(
            self,
            status=STATUS_CLOSED,
            end_time=end_time,
            counted_cash=counted_cash,
            expected_cash=expected_cash,
            difference=difference,
            closed_by_id=closed_by_id,
            closed_by_name=closed_by_name,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "context": self.context,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "starting_cash_cents": self.starting_cash.cents,
            "cash_sales_cents": self.cash_sales.cents,
            "card_sales_cents": self.card_sales.cents,
            "digital_sales_cents": self.digital_sales.cents,
            "total_sales_cents": self.total_sales.cents,
            "counted_cash_cents": self.counted_cash.cents if self.counted_cash is not None else None,
            "expected_cash_cents": self.expected_cash.cents if self.expected_cash is not None else None,
            "difference_cents": self.difference.cents if self.difference is not None else None,
            "closed_by_id": self.closed_by_id,
            "closed_by_name": self.closed_by_name,
            "cash_movements": [m.to_dict() for m in self.cash_movements],
            "postings": [p.to_dict() for p in self.postings],
            "version": self.version,
        }
