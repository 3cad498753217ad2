from __future__ import annotations

from ..extensions import db
from ..money import Money
from ..services.audit import MAX_DETAIL_LENGTH, MAX_USER_ID_LENGTH, MAX_USER_NAME_LENGTH, AuditEntry
from ..services.cash_ledger import MAX_REASON_LENGTH
from ..services.shift_state import (
    MAX_CONTEXT_LENGTH,
    MAX_IDEMPOTENCY_KEY_LENGTH,
    CashMovement,
    SalePosting,
    ShiftState,
)
from ..time_utils import utcnow


def _money(cents: int | None) -> Money | None:
    return Money(cents) if cents is not None else None


class ShiftRecord(db.Model):
    """
    Register shift.

    WHY: Cashier accountability. Each shift has an opening float, sales
    accumulators per payment method, manual cash movements and, once closed,
    the counted cash and its variance against the expectation.

    LIFECYCLE:
    - OPEN: Shift is active, accepts postings and movements
    - CLOSED: Cash counted, variance stored

    IMMUTABLE: Once closed, a shift cannot be reopened or modified.
    At most one OPEN shift per context (partial unique index).
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_open_context",
            "context",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
    )

    id = db.Column(db.String(32), primary_key=True)
    context = db.Column(db.String(MAX_CONTEXT_LENGTH), nullable=False, index=True)

    user_id = db.Column(db.String(MAX_USER_ID_LENGTH), nullable=False, index=True)
    user_name = db.Column(db.String(MAX_USER_NAME_LENGTH), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    # Cash tracking (all amounts in cents)
    starting_cash_cents = db.Column(db.BigInteger, nullable=False, default=0)
    cash_sales_cents = db.Column(db.BigInteger, nullable=False, default=0)
    card_sales_cents = db.Column(db.BigInteger, nullable=False, default=0)
    digital_sales_cents = db.Column(db.BigInteger, nullable=False, default=0)

    # Set when closing
    counted_cash_cents = db.Column(db.BigInteger, nullable=True)
    expected_cash_cents = db.Column(db.BigInteger, nullable=True)
    difference_cents = db.Column(db.BigInteger, nullable=True)  # counted - expected
    closed_by_id = db.Column(db.String(MAX_USER_ID_LENGTH), nullable=True)
    closed_by_name = db.Column(db.String(MAX_USER_NAME_LENGTH), nullable=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=True)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    movements = db.relationship(
        "CashMovementRecord",
        order_by="CashMovementRecord.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    postings = db.relationship(
        "SalePostingRecord",
        order_by="SalePostingRecord.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_domain(self) -> ShiftState:
        return ShiftState(
            id=self.id,
            context=self.context,
            user_id=self.user_id,
            user_name=self.user_name,
            start_time=self.start_time,
            starting_cash=Money(self.starting_cash_cents),
            cash_sales=Money(self.cash_sales_cents),
            card_sales=Money(self.card_sales_cents),
            digital_sales=Money(self.digital_sales_cents),
            cash_movements=tuple(m.to_domain() for m in self.movements),
            postings=tuple(p.to_domain() for p in self.postings),
            status=self.status,
            end_time=self.end_time,
            counted_cash=_money(self.counted_cash_cents),
            expected_cash=_money(self.expected_cash_cents),
            difference=_money(self.difference_cents),
            closed_by_id=self.closed_by_id,
            closed_by_name=self.closed_by_name,
            version=self.version_id,
        )

    def apply(self, state: ShiftState) -> None:
        """Copy the scalar fields of a snapshot onto this row."""
        self.context = state.context
        self.user_id = state.user_id
        self.user_name = state.user_name
        self.status = state.status
        self.starting_cash_cents = state.starting_cash.cents
        self.cash_sales_cents = state.cash_sales.cents
        self.card_sales_cents = state.card_sales.cents
        self.digital_sales_cents = state.digital_sales.cents
        self.counted_cash_cents = state.counted_cash.cents if state.counted_cash is not None else None
        self.expected_cash_cents = state.expected_cash.cents if state.expected_cash is not None else None
        self.difference_cents = state.difference.cents if state.difference is not None else None
        self.closed_by_id = state.closed_by_id
        self.closed_by_name = state.closed_by_name
        self.start_time = state.start_time
        self.end_time = state.end_time


class CashMovementRecord(db.Model):
    """
    Pay-in / pay-out against a shift's drawer.

    APPEND-ONLY: rows are inserted, never updated or deleted. sequence keeps
    insertion order independent of timestamp resolution.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "sequence", name="uq_cash_movements_shift_sequence"),
    )

    id = db.Column(db.String(32), primary_key=True)
    shift_id = db.Column(db.String(32), db.ForeignKey("shifts.id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    movement_type = db.Column(db.String(8), nullable=False)  # IN, OUT
    amount_cents = db.Column(db.BigInteger, nullable=False)
    reason = db.Column(db.String(MAX_REASON_LENGTH), nullable=False)

    user_id = db.Column(db.String(MAX_USER_ID_LENGTH), nullable=False)
    user_name = db.Column(db.String(MAX_USER_NAME_LENGTH), nullable=False)
    occurred_at = db.Column(db.DateTime, nullable=False)

    @classmethod
    def from_domain(cls, shift_id: str, sequence: int, movement: CashMovement) -> "CashMovementRecord":
        return cls(
            id=movement.id,
            shift_id=shift_id,
            sequence=sequence,
            movement_type=movement.type,
            amount_cents=movement.amount.cents,
            reason=movement.reason,
            user_id=movement.user_id,
            user_name=movement.user_name,
            occurred_at=movement.timestamp,
        )

    def to_domain(self) -> CashMovement:
        return CashMovement(
            id=self.id,
            type=self.movement_type,
            amount=Money(self.amount_cents),
            reason=self.reason,
            timestamp=self.occurred_at,
            user_id=self.user_id,
            user_name=self.user_name,
        )


class SalePostingRecord(db.Model):
    """
    Payment leg posted against a shift (sale or return).

    idempotency_key is unique per shift so redelivered events cannot be
    counted twice.
    """
    __tablename__ = "sale_postings"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "sequence", name="uq_sale_postings_shift_sequence"),
        db.UniqueConstraint("shift_id", "idempotency_key", name="uq_sale_postings_shift_key"),
    )

    id = db.Column(db.String(32), primary_key=True)
    shift_id = db.Column(db.String(32), db.ForeignKey("shifts.id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)  # cash, card, digital
    amount_cents = db.Column(db.BigInteger, nullable=False)  # signed
    transaction_type = db.Column(db.String(16), nullable=False)  # sale, return
    idempotency_key = db.Column(db.String(MAX_IDEMPOTENCY_KEY_LENGTH), nullable=True)

    user_id = db.Column(db.String(MAX_USER_ID_LENGTH), nullable=False)
    user_name = db.Column(db.String(MAX_USER_NAME_LENGTH), nullable=False)
    occurred_at = db.Column(db.DateTime, nullable=False)

    @classmethod
    def from_domain(cls, shift_id: str, sequence: int, posting: SalePosting) -> "SalePostingRecord":
        return cls(
            id=posting.id,
            shift_id=shift_id,
            sequence=sequence,
            payment_method=posting.payment_method,
            amount_cents=posting.amount.cents,
            transaction_type=posting.transaction_type,
            idempotency_key=posting.idempotency_key,
            user_id=posting.user_id,
            user_name=posting.user_name,
            occurred_at=posting.timestamp,
        )

    def to_domain(self) -> SalePosting:
        return SalePosting(
            id=self.id,
            payment_method=self.payment_method,
            amount=Money(self.amount_cents),
            transaction_type=self.transaction_type,
            idempotency_key=self.idempotency_key,
            timestamp=self.occurred_at,
            user_id=self.user_id,
            user_name=self.user_name,
        )


class ShiftAuditEvent(db.Model):
    """
    Audit side log: who performed each mutating shift operation, and when.

    Written in the same transaction as the state change it records.
    """
    __tablename__ = "shift_audit_events"
    __table_args__ = (
        db.Index("ix_shift_audit_events_shift_occurred", "shift_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.String(32), db.ForeignKey("shifts.id"), nullable=False)
    operation = db.Column(db.String(32), nullable=False, index=True)
    user_id = db.Column(db.String(MAX_USER_ID_LENGTH), nullable=False, index=True)
    user_name = db.Column(db.String(MAX_USER_NAME_LENGTH), nullable=False)
    occurred_at = db.Column(db.DateTime, nullable=False)
    detail = db.Column(db.String(MAX_DETAIL_LENGTH), nullable=True)

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> "ShiftAuditEvent":
        return cls(
            shift_id=entry.shift_id,
            operation=entry.operation,
            user_id=entry.user_id,
            user_name=entry.user_name,
            occurred_at=entry.occurred_at,
            detail=entry.detail,
        )

    def to_domain(self) -> AuditEntry:
        return AuditEntry(
            shift_id=self.shift_id,
            operation=self.operation,
            user_id=self.user_id,
            user_name=self.user_name,
            occurred_at=self.occurred_at,
            detail=self.detail,
        )
