# Overview: Shift state machine; validates, serializes and persists every shift operation.

"""
Shift Manager

WHY: All shift mutation is funneled through four invariant-checked entry
points (open, post_sale_payment, add_cash_movement, close) so no caller can
bypass the lifecycle or the cash-accountability rules.

STATE MACHINE:
    (none) --open--> OPEN --post_sale_payment*, add_cash_movement*--> OPEN --close--> CLOSED

DESIGN PRINCIPLES:
- One OPEN shift per context
- Argument validation before any lock or persistence call
- Each mutation holds the per-shift lock for load -> validate -> compute -> save
- Closed shifts are immutable; a new shift must be opened to resume
- Reads take no lock and use a single loaded snapshot
"""

from __future__ import annotations

import logging

from ..errors import (
    InvalidAmount,
    InvalidPaymentMethod,
    InvalidRequest,
    PostingConflict,
    ShiftAlreadyClosed,
    ShiftAlreadyOpen,
    ShiftNotActive,
    ShiftNotFound,
)
from ..money import MAX_AMOUNT_CENTS, Money
from ..time_utils import Clock, utcnow
from .audit import (
    OP_ADD_CASH_MOVEMENT,
    OP_CLOSE,
    OP_OPEN,
    OP_POST_SALE_PAYMENT,
    Actor,
    AuditEntry,
    AuditTrail,
)
from .cash_ledger import validate_movement
from .concurrency import ShiftLockRegistry
from .gateway import ShiftGateway
from .reconciliation import ShiftReport, ShiftSummary, build_report, difference, expected_cash, summarize
from .shift_state import (
    DEFAULT_CONTEXT,
    MAX_CONTEXT_LENGTH,
    MAX_IDEMPOTENCY_KEY_LENGTH,
    TRANSACTION_RETURN,
    TRANSACTION_SALE,
    VALID_PAYMENT_METHODS,
    VALID_TRANSACTION_TYPES,
    CashMovement,
    SalePosting,
    ShiftState,
    new_id,
)

logger = logging.getLogger(__name__)


def _require_money(value, *, shift_id: str | None, operation: str) -> Money:
    try:
        amount = Money.parse(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAmount(f"Invalid amount: {value!r}", shift_id=shift_id, operation=operation) from exc
    if not amount.in_range:
        raise InvalidAmount(f"Amount exceeds the limit of {Money(MAX_AMOUNT_CENTS)}",
                            shift_id=shift_id, operation=operation)
    return amount


def _optional_text(value, name: str, limit: int, *, shift_id: str | None, operation: str) -> str | None:
    """Stripped string or None; non-strings and over-long values are rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{name} must be a string", shift_id=shift_id, operation=operation)
    value = value.strip()
    if len(value) > limit:
        raise InvalidRequest(f"{name} is limited to {limit} characters", shift_id=shift_id, operation=operation)
    return value or None


class ShiftManager:
    def __init__(self, gateway: ShiftGateway, *, locks: ShiftLockRegistry | None = None,
                 clock: Clock = utcnow):
        self.gateway = gateway
        self.locks = locks if locks is not None else ShiftLockRegistry()
        self.audit = AuditTrail(clock)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def open(self, user_id: str, user_name: str, starting_cash, context: str = DEFAULT_CONTEXT) -> ShiftState:
        """
        Open a new shift for a context.

        Raises:
            MissingActor: blank operator id or name
            InvalidAmount: negative or out-of-range opening float
            InvalidRequest: context is not a string or too long
            ShiftAlreadyOpen: the context already has an OPEN shift
        """
        actor = Actor.require((user_id, user_name), operation=OP_OPEN)
        starting_cash = _require_money(starting_cash, shift_id=None, operation=OP_OPEN)
        if starting_cash.is_negative:
            raise InvalidAmount("Starting cash cannot be negative", operation=OP_OPEN)
        context = _optional_text(context, "context", MAX_CONTEXT_LENGTH, shift_id=None, operation=OP_OPEN) \
            or DEFAULT_CONTEXT

        with self.locks.hold(self.locks.context_key(context), operation=OP_OPEN):
            existing = self.gateway.load_active_shift(context)
            if existing is not None:
                raise ShiftAlreadyOpen(
                    f"Context '{context}' already has open shift {existing.id}",
                    shift_id=existing.id,
                    operation=OP_OPEN,
                )

            now = self.audit.now()
            state = ShiftState.opened(
                user_id=actor.user_id,
                user_name=actor.user_name,
                starting_cash=starting_cash,
                start_time=now,
                context=context,
            )
            entry = self.audit.record(state.id, OP_OPEN, actor, f"starting_cash_cents={starting_cash.cents}",
                                      occurred_at=now)
            return self._save(state, entry)

    def post_sale_payment(self, shift_id: str, payment_method: str, amount, actor,
                          transaction_type: str = TRANSACTION_SALE,
                          idempotency_key: str | None = None) -> ShiftState:
        """
        Post one payment leg of a completed transaction to the shift.

        Sales must be positive. Returns accept a signed, non-zero amount and
        apply it as given; the caller decides the sign.

        A repeated idempotency_key with the same payload returns the current
        state without writing; with a different payload it raises
        PostingConflict.
        """
        op = OP_POST_SALE_PAYMENT
        actor = Actor.require(actor, shift_id=shift_id, operation=op)
        if payment_method not in VALID_PAYMENT_METHODS:
            raise InvalidPaymentMethod(
                f"Payment method must be one of {', '.join(VALID_PAYMENT_METHODS)}",
                shift_id=shift_id, operation=op,
            )
        if transaction_type not in VALID_TRANSACTION_TYPES:
            raise InvalidPaymentMethod(
                f"Transaction type must be one of {', '.join(VALID_TRANSACTION_TYPES)}",
                shift_id=shift_id, operation=op,
            )
        amount = _require_money(amount, shift_id=shift_id, operation=op)
        if transaction_type == TRANSACTION_SALE and not amount.is_positive:
            raise InvalidAmount("Sale amount must be positive", shift_id=shift_id, operation=op)
        if transaction_type == TRANSACTION_RETURN and amount.is_zero:
            raise InvalidAmount("Return amount cannot be zero", shift_id=shift_id, operation=op)
        idempotency_key = _optional_text(idempotency_key, "idempotency_key", MAX_IDEMPOTENCY_KEY_LENGTH,
                                         shift_id=shift_id, operation=op)

        with self.locks.hold(shift_id, operation=op, shift_id=shift_id):
            state = self._load_open(shift_id, op)

            if idempotency_key:
                previous = state.find_posting(idempotency_key)
                if previous is not None:
                    if not previous.same_payload(payment_method, amount, transaction_type):
                        raise PostingConflict(
                            f"Idempotency key '{idempotency_key}' was already used for a different payment",
                            shift_id=shift_id, operation=op,
                        )
                    logger.info("Duplicate posting %s on shift %s ignored", idempotency_key, shift_id)
                    return state

            now = self.audit.now()
            posting = SalePosting(
                id=new_id(),
                payment_method=payment_method,
                amount=amount,
                transaction_type=transaction_type,
                idempotency_key=idempotency_key,
                timestamp=now,
                user_id=actor.user_id,
                user_name=actor.user_name,
            )
            entry = self.audit.record(
                shift_id, op, actor,
                f"{transaction_type} method={payment_method} amount_cents={amount.cents}",
                occurred_at=now,
            )
            return self._save(state.with_posting(posting), entry)

    def add_cash_movement(self, shift_id: str, type: str, amount, reason: str, actor) -> ShiftState:
        """
        Record a pay-in (IN) or pay-out (OUT) on the drawer.

        Raises:
            MissingActor, InvalidAmount (amount <= 0), InvalidMovement
            (unknown type, empty or over-long reason), ShiftNotActive
        """
        op = OP_ADD_CASH_MOVEMENT
        actor = Actor.require(actor, shift_id=shift_id, operation=op)
        amount = _require_money(amount, shift_id=shift_id, operation=op)
        movement_type = type.strip().upper() if isinstance(type, str) else type
        reason = validate_movement(movement_type, amount, reason, shift_id=shift_id, operation=op)

        with self.locks.hold(shift_id, operation=op, shift_id=shift_id):
            state = self._load_open(shift_id, op)
            now = self.audit.now()
            movement = CashMovement(
                id=new_id(),
                type=movement_type,
                amount=amount,
                reason=reason,
                timestamp=now,
                user_id=actor.user_id,
                user_name=actor.user_name,
            )
            entry = self.audit.record(
                shift_id, op, actor, f"{movement_type} amount_cents={amount.cents} reason={reason}",
                occurred_at=now,
            )
            return self._save(state.with_movement(movement), entry)

    def close(self, shift_id: str, counted_cash, actor) -> ShiftState:
        """
        Close the shift and reconcile counted cash against the expectation.

        One-shot terminal transition: a second close raises ShiftAlreadyClosed.
        """
        op = OP_CLOSE
        actor = Actor.require(actor, shift_id=shift_id, operation=op)
        counted_cash = _require_money(counted_cash, shift_id=shift_id, operation=op)
        if counted_cash.is_negative:
            raise InvalidAmount("Counted cash cannot be negative", shift_id=shift_id, operation=op)

        with self.locks.hold(shift_id, operation=op, shift_id=shift_id):
            state = self._load(shift_id, op)
            if state.is_closed:
                raise ShiftAlreadyClosed(f"Shift {shift_id} is already closed", shift_id=shift_id, operation=op)

            now = self.audit.now()
            expected = expected_cash(state)
            diff = difference(state, counted_cash)
            closed = state.closed(
                end_time=now,
                counted_cash=counted_cash,
                expected_cash=expected,
                difference=diff,
                closed_by_id=actor.user_id,
                closed_by_name=actor.user_name,
            )
            entry = self.audit.record(
                shift_id, op, actor,
                f"counted_cents={counted_cash.cents} expected_cents={expected.cents} difference_cents={diff.cents}",
                occurred_at=now,
            )
            return self._save(closed, entry)

    # =========================================================================
    # READS
    # =========================================================================

    def get_shift(self, shift_id: str) -> ShiftState:
        return self.gateway.load_shift(shift_id)

    def get_active_shift(self, context: str = DEFAULT_CONTEXT) -> ShiftState | None:
        return self.gateway.load_active_shift(context)

    def list_shifts(self, context: str | None = None, status: str | None = None, limit: int = 50) -> list[ShiftState]:
        return self.gateway.list_shifts(context=context, status=status, limit=limit)

    def get_summary(self, shift_id: str) -> ShiftSummary:
        return summarize(self.gateway.load_shift(shift_id))

    def get_report(self, shift_id: str) -> ShiftReport:
        return build_report(self.gateway.load_shift(shift_id))

    def get_audit_log(self, shift_id: str) -> list[AuditEntry]:
        self.gateway.load_shift(shift_id)
        return self.gateway.list_audit(shift_id)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _load(self, shift_id: str, operation: str) -> ShiftState:
        try:
            return self.gateway.load_shift(shift_id)
        except ShiftNotFound as exc:
            raise ShiftNotActive(f"Shift {shift_id} does not exist", shift_id=shift_id,
                                 operation=operation) from exc

    def _load_open(self, shift_id: str, operation: str) -> ShiftState:
        state = self._load(shift_id, operation)
        if not state.is_open:
            raise ShiftNotActive(f"Shift {shift_id} is closed", shift_id=shift_id, operation=operation)
        return state

    def _save(self, state: ShiftState, entry: AuditEntry) -> ShiftState:
        saved = self.gateway.save_shift(state, audit=(entry,))
        self.audit.emit(entry)
        return saved
