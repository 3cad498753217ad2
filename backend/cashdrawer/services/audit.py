# Overview: Actor attribution and audit side log for shift operations.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..errors import MissingActor
from ..time_utils import Clock, to_utc_z, utcnow

audit_logger = logging.getLogger("cashdrawer.audit")

OP_OPEN = "open"
OP_POST_SALE_PAYMENT = "post_sale_payment"
OP_ADD_CASH_MOVEMENT = "add_cash_movement"
OP_CLOSE = "close"

MAX_USER_ID_LENGTH = 64
MAX_USER_NAME_LENGTH = 128
MAX_DETAIL_LENGTH = 255


@dataclass(frozen=True)
class Actor:
    """User performing an operation, as supplied by the identity context."""
    user_id: str
    user_name: str

    @classmethod
    def require(cls, actor, *, shift_id: str | None = None, operation: str | None = None) -> "Actor":
        """
        Return a validated Actor or raise MissingActor.

        Accepts an Actor, or a (user_id, user_name) pair.
        """
        if isinstance(actor, tuple) and len(actor) == 2:
            actor = cls(*actor)
        if not isinstance(actor, Actor):
            raise MissingActor("Acting user is required", shift_id=shift_id, operation=operation)
        user_id = str(actor.user_id or "").strip()
        user_name = str(actor.user_name or "").strip()
        if not user_id or not user_name:
            raise MissingActor("Acting user id and name are required", shift_id=shift_id, operation=operation)
        if len(user_id) > MAX_USER_ID_LENGTH or len(user_name) > MAX_USER_NAME_LENGTH:
            raise MissingActor(
                f"Acting user id is limited to {MAX_USER_ID_LENGTH} characters and name to {MAX_USER_NAME_LENGTH}",
                shift_id=shift_id, operation=operation,
            )
        return cls(user_id=user_id, user_name=user_name)


@dataclass(frozen=True)
class AuditEntry:
    shift_id: str
    operation: str
    user_id: str
    user_name: str
    occurred_at: datetime
    detail: str | None = None

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "operation": self.operation,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "occurred_at": to_utc_z(self.occurred_at),
            "detail": self.detail,
        }


class AuditTrail:
    """
    Builds audit entries for mutating operations.

    Entries are handed back to the caller so they can be persisted in the same
    write as the state they describe; they are logged once that write is
    confirmed.
    """

    def __init__(self, clock: Clock = utcnow):
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def record(self, shift_id: str, operation: str, actor: Actor, detail: str | None = None,
               occurred_at: datetime | None = None) -> AuditEntry:
        return AuditEntry(
            shift_id=shift_id,
            operation=operation,
            user_id=actor.user_id,
            user_name=actor.user_name,
            occurred_at=occurred_at or self._clock(),
            detail=detail[:MAX_DETAIL_LENGTH] if detail else detail,
        )

    @staticmethod
    def emit(entry: AuditEntry) -> None:
        audit_logger.info(
            "shift=%s op=%s actor=%s (%s) %s",
            entry.shift_id, entry.operation, entry.user_id, entry.user_name, entry.detail or "",
        )
