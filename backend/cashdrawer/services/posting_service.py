# Overview: Posts completed sale/return payment legs from the event source onto shifts.

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import ShiftNotActive
from ..money import Money
from .audit import OP_POST_SALE_PAYMENT, Actor
from .concurrency import run_with_retry
from .shift_manager import ShiftManager
from .shift_state import DEFAULT_CONTEXT, TRANSACTION_SALE, ShiftState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentEvent:
    """
    One completed payment leg emitted by the sale/return event source.

    shift_id may be omitted, in which case the event is posted to the open
    shift of `context`. idempotency_key should be stable across redeliveries
    of the same leg (e.g. "<transaction id>:<leg index>").
    amount is validated by the manager, so malformed legs fail with
    InvalidAmount before any retry.
    """
    amount: Money | str
    payment_method: str
    actor: Actor
    transaction_type: str = TRANSACTION_SALE
    idempotency_key: str | None = None
    shift_id: str | None = None
    context: str = DEFAULT_CONTEXT


def post_payment_event(manager: ShiftManager, event: PaymentEvent, *, attempts: int = 3,
                       backoff_base: float = 0.1) -> ShiftState:
    """
    Post one event, retrying retryable failures (PersistenceFailure, LockTimeout).

    Retries are only safe when the event carries an idempotency key; events
    without one are attempted once.
    """
    shift_id = event.shift_id
    if shift_id is None:
        active = manager.get_active_shift(event.context)
        if active is None:
            raise ShiftNotActive(
                f"No open shift in context '{event.context}'",
                operation=OP_POST_SALE_PAYMENT,
            )
        shift_id = active.id

    def _post():
        return manager.post_sale_payment(
            shift_id,
            event.payment_method,
            event.amount,
            event.actor,
            transaction_type=event.transaction_type,
            idempotency_key=event.idempotency_key,
        )

    if not event.idempotency_key:
        logger.debug("Posting event without idempotency key to shift %s; no retry", shift_id)
        return _post()
    return run_with_retry(_post, attempts=attempts, backoff_base=backoff_base)


def post_transaction(manager: ShiftManager, transaction_id: str, legs, actor: Actor, *,
                     transaction_type: str = TRANSACTION_SALE, shift_id: str | None = None,
                     context: str = DEFAULT_CONTEXT) -> ShiftState | None:
    """
    Post every payment leg of one transaction.

    legs is an iterable of (payment_method, amount) pairs; each leg gets the
    idempotency key "<transaction_id>:<index>" so redelivering the whole
    transaction is harmless.
    """
    state = None
    for index, (payment_method, amount) in enumerate(legs):
        state = post_payment_event(manager, PaymentEvent(
            amount=amount,
            payment_method=payment_method,
            actor=actor,
            transaction_type=transaction_type,
            idempotency_key=f"{transaction_id}:{index}",
            shift_id=shift_id,
            context=context,
        ))
        shift_id = state.id
    return state
