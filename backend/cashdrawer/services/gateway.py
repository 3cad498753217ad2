# Overview: Persistence gateways for shift state (SQLAlchemy and in-memory).

"""
Shift persistence gateway

The manager only talks to a ShiftGateway. save_shift is a full-state upsert:
scalar fields are overwritten, child collections (movements, postings) are
append-only and audit entries are written in the same transaction. A save
either commits everything and returns the confirmed state, or raises
PersistenceFailure with nothing written.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Iterable, Sequence

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceFailure, ShiftAlreadyOpen, ShiftNotFound
from ..extensions import db
from .audit import AuditEntry
from .concurrency import lock_for_update
from .shift_state import STATUS_OPEN, ShiftState

logger = logging.getLogger(__name__)


def _check_append_only(kind: str, stored_ids: Sequence[str], new_ids: Sequence[str], shift_id: str) -> None:
    if list(new_ids[:len(stored_ids)]) != list(stored_ids):
        raise PersistenceFailure(
            f"Refusing to rewrite {kind} of shift {shift_id}: entries are append-only",
            shift_id=shift_id,
            operation="save_shift",
        )


class ShiftGateway:
    """Persistence contract consumed by ShiftManager."""

    def load_shift(self, shift_id: str) -> ShiftState:
        raise NotImplementedError

    def load_active_shift(self, context: str) -> ShiftState | None:
        raise NotImplementedError

    def save_shift(self, state: ShiftState, audit: Iterable[AuditEntry] = ()) -> ShiftState:
        raise NotImplementedError

    def list_shifts(self, context: str | None = None, status: str | None = None, limit: int = 50) -> list[ShiftState]:
        raise NotImplementedError

    def list_audit(self, shift_id: str) -> list[AuditEntry]:
        raise NotImplementedError


# =============================================================================
# SQLALCHEMY
# =============================================================================

class SqlShiftGateway(ShiftGateway):
    """Gateway backed by the Flask-SQLAlchemy session of the current app context."""

    def load_shift(self, shift_id: str) -> ShiftState:
        from ..models import ShiftRecord

        record = db.session.get(ShiftRecord, shift_id, populate_existing=True)
        if record is None:
            raise ShiftNotFound(f"Shift {shift_id} not found", shift_id=shift_id, operation="load_shift")
        return record.to_domain()

    def load_active_shift(self, context: str) -> ShiftState | None:
        from ..models import ShiftRecord

        record = lock_for_update(
            db.session.query(ShiftRecord).filter_by(context=context, status=STATUS_OPEN)
        ).populate_existing().first()
        return record.to_domain() if record else None

    def save_shift(self, state: ShiftState, audit: Iterable[AuditEntry] = ()) -> ShiftState:
        from ..models import CashMovementRecord, SalePostingRecord, ShiftAuditEvent, ShiftRecord

        try:
            record = db.session.get(ShiftRecord, state.id, populate_existing=True)
            if record is None:
                record = ShiftRecord(id=state.id)
                db.session.add(record)
                stored_movements, stored_postings = [], []
            else:
                if record.version_id != state.version:
                    raise PersistenceFailure(
                        f"Shift {state.id} was modified concurrently (version {record.version_id}, "
                        f"expected {state.version})",
                        shift_id=state.id,
                        operation="save_shift",
                    )
                stored_movements = [m.id for m in record.movements]
                stored_postings = [p.id for p in record.postings]
                # Child-only appends must still bump version_id.
                flag_modified(record, "updated_at")

            _check_append_only("cash movements", stored_movements, [m.id for m in state.cash_movements], state.id)
            _check_append_only("sale postings", stored_postings, [p.id for p in state.postings], state.id)

            record.apply(state)
            for seq, movement in enumerate(state.cash_movements[len(stored_movements):], start=len(stored_movements)):
                record.movements.append(CashMovementRecord.from_domain(state.id, seq, movement))
            for seq, posting in enumerate(state.postings[len(stored_postings):], start=len(stored_postings)):
                record.postings.append(SalePostingRecord.from_domain(state.id, seq, posting))

            # Parent row must exist before audit rows reference it.
            db.session.flush()
            for entry in audit:
                db.session.add(ShiftAuditEvent.from_domain(entry))

            db.session.commit()
        except PersistenceFailure:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            if state.is_open and state.version == 0:
                raise ShiftAlreadyOpen(
                    f"Context '{state.context}' already has an open shift",
                    shift_id=state.id,
                    operation="open",
                ) from exc
            logger.exception("Integrity error saving shift %s", state.id)
            raise PersistenceFailure(f"Failed to save shift {state.id}", shift_id=state.id,
                                     operation="save_shift") from exc
        except (SQLAlchemyError, StaleDataError) as exc:
            db.session.rollback()
            logger.exception("Failed to save shift %s", state.id)
            raise PersistenceFailure(f"Failed to save shift {state.id}", shift_id=state.id,
                                     operation="save_shift") from exc
        except Exception as exc:
            # Driver errors such as OverflowError are not wrapped by SQLAlchemy.
            db.session.rollback()
            logger.exception("Unexpected error saving shift %s", state.id)
            raise PersistenceFailure(f"Failed to save shift {state.id}", shift_id=state.id,
                                     operation="save_shift") from exc

        return self.load_shift(state.id)

    def list_shifts(self, context: str | None = None, status: str | None = None, limit: int = 50) -> list[ShiftState]:
        from ..models import ShiftRecord

        query = db.session.query(ShiftRecord)
        if context:
            query = query.filter_by(context=context)
        if status:
            query = query.filter_by(status=status)
        records = query.order_by(desc(ShiftRecord.start_time)).limit(limit).all()
        return [r.to_domain() for r in records]

    def list_audit(self, shift_id: str) -> list[AuditEntry]:
        from ..models import ShiftAuditEvent

        events = db.session.query(ShiftAuditEvent).filter_by(
            shift_id=shift_id
        ).order_by(ShiftAuditEvent.occurred_at, ShiftAuditEvent.id).all()
        return [e.to_domain() for e in events]


# =============================================================================
# IN-MEMORY
# =============================================================================

class InMemoryShiftGateway(ShiftGateway):
    """
    Thread-safe dict-backed gateway.

    Used for embedding the engine without a database and in tests. Set
    fail_next_save to make the next save raise PersistenceFailure.
    """

    def __init__(self):
        self._shifts: dict[str, ShiftState] = {}
        self._audit: list[AuditEntry] = []
        self._lock = threading.Lock()
        self.fail_next_save = False
        self.save_count = 0

    def load_shift(self, shift_id: str) -> ShiftState:
        with self._lock:
            state = self._shifts.get(shift_id)
        if state is None:
            raise ShiftNotFound(f"Shift {shift_id} not found", shift_id=shift_id, operation="load_shift")
        return state

    def load_active_shift(self, context: str) -> ShiftState | None:
        with self._lock:
            for state in self._shifts.values():
                if state.context == context and state.is_open:
                    return state
        return None

    def save_shift(self, state: ShiftState, audit: Iterable[AuditEntry] = ()) -> ShiftState:
        audit = list(audit)
        with self._lock:
            if self.fail_next_save:
                self.fail_next_save = False
                raise PersistenceFailure(f"Failed to save shift {state.id}", shift_id=state.id,
                                         operation="save_shift")
            stored = self._shifts.get(state.id)
            if stored is None:
                if state.is_open and any(s.context == state.context and s.is_open for s in self._shifts.values()):
                    raise ShiftAlreadyOpen(f"Context '{state.context}' already has an open shift",
                                           shift_id=state.id, operation="open")
            else:
                if stored.version != state.version:
                    raise PersistenceFailure(
                        f"Shift {state.id} was modified concurrently", shift_id=state.id, operation="save_shift"
                    )
                _check_append_only("cash movements", [m.id for m in stored.cash_movements],
                                   [m.id for m in state.cash_movements], state.id)
                _check_append_only("sale postings", [p.id for p in stored.postings],
                                   [p.id for p in state.postings], state.id)
            saved = replace(state, version=state.version + 1)
            self._shifts[state.id] = saved
            self._audit.extend(audit)
            self.save_count += 1
            return saved

    def list_shifts(self, context: str | None = None, status: str | None = None, limit: int = 50) -> list[ShiftState]:
        with self._lock:
            shifts = list(self._shifts.values())
        if context:
            shifts = [s for s in shifts if s.context == context]
        if status:
            shifts = [s for s in shifts if s.status == status]
        shifts.sort(key=lambda s: s.start_time, reverse=True)
        return shifts[:limit]

    def list_audit(self, shift_id: str) -> list[AuditEntry]:
        with self._lock:
            return [e for e in self._audit if e.shift_id == shift_id]
