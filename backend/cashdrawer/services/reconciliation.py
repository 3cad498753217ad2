# Overview: Pure expected-cash, variance, summary and end-of-shift report calculations.

"""
Cash reconciliation

expected_cash = starting_cash + cash_sales + pay-ins - pay-outs
difference    = counted_cash - expected_cash

Positive difference is an overage, negative a shortage. The wallet summary
and the end-of-shift report both go through expected_cash() so the two can
never disagree.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..money import Money
from ..time_utils import to_utc_z
from .shift_state import ShiftState

VARIANCE_OPEN = "open"
VARIANCE_BALANCED = "balanced"
VARIANCE_OVER = "over"
VARIANCE_SHORT = "short"


def expected_cash(shift: ShiftState) -> Money:
    ledger = shift.ledger
    return shift.starting_cash + shift.cash_sales + ledger.total_in() - ledger.total_out()


def difference(shift: ShiftState, counted_cash: Money) -> Money:
    return counted_cash - expected_cash(shift)


def variance_status(diff: Money | None) -> str:
    if diff is None:
        return VARIANCE_OPEN
    if diff.is_positive:
        return VARIANCE_OVER
    if diff.is_negative:
        return VARIANCE_SHORT
    return VARIANCE_BALANCED


@dataclass(frozen=True)
class ShiftSummary:
    shift_id: str
    starting_cash: Money
    expected_cash: Money
    total_in: Money
    total_out: Money
    cash_sales: Money
    card_sales: Money
    digital_sales: Money
    total_sales: Money

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "starting_cash_cents": self.starting_cash.cents,
            "expected_cash_cents": self.expected_cash.cents,
            "total_in_cents": self.total_in.cents,
            "total_out_cents": self.total_out.cents,
            "cash_sales_cents": self.cash_sales.cents,
            "card_sales_cents": self.card_sales.cents,
            "digital_sales_cents": self.digital_sales.cents,
            "total_sales_cents": self.total_sales.cents,
        }


def summarize(shift: ShiftState) -> ShiftSummary:
    """Wallet summary computed from one snapshot."""
    ledger = shift.ledger
    return ShiftSummary(
        shift_id=shift.id,
        starting_cash=shift.starting_cash,
        expected_cash=expected_cash(shift),
        total_in=ledger.total_in(),
        total_out=ledger.total_out(),
        cash_sales=shift.cash_sales,
        card_sales=shift.card_sales,
        digital_sales=shift.digital_sales,
        total_sales=shift.total_sales,
    )


@dataclass(frozen=True)
class ShiftReport:
    shift: ShiftState
    summary: ShiftSummary
    counted_cash: Money | None
    difference: Money | None
    variance_status: str

    def format_lines(self, symbol: str = "$") -> list[str]:
        """Plain-text lines for printing the end-of-shift report."""
        s = self.summary
        lines = [
            f"Shift {self.shift.id}",
            f"Operator: {self.shift.user_name}",
            f"Opened: {to_utc_z(self.shift.start_time)}",
            f"Closed: {to_utc_z(self.shift.end_time) or '-'}",
            f"Cash sales: {s.cash_sales.format(symbol)}",
            f"Card sales: {s.card_sales.format(symbol)}",
            f"Digital sales: {s.digital_sales.format(symbol)}",
            f"Total sales: {s.total_sales.format(symbol)}",
            f"Opening float: {s.starting_cash.format(symbol)}",
            f"Pay in: {s.total_in.format(symbol)}",
            f"Pay out: {s.total_out.format(symbol)}",
            f"Expected cash: {s.expected_cash.format(symbol)}",
        ]
        if self.counted_cash is not None:
            lines.append(f"Counted cash: {self.counted_cash.format(symbol)}")
            lines.append(f"Difference: {self.difference.format(symbol)} ({self.variance_status})")
        return lines

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift.id,
            "context": self.shift.context,
            "user_id": self.shift.user_id,
            "user_name": self.shift.user_name,
            "status": self.shift.status,
            "start_time": to_utc_z(self.shift.start_time),
            "end_time": to_utc_z(self.shift.end_time),
            "closed_by_id": self.shift.closed_by_id,
            "closed_by_name": self.shift.closed_by_name,
            "summary": self.summary.to_dict(),
            "movement_count": len(self.shift.cash_movements),
            "posting_count": len(self.shift.postings),
            "counted_cash_cents": self.counted_cash.cents if self.counted_cash is not None else None,
            "difference_cents": self.difference.cents if self.difference is not None else None,
            "variance_status": self.variance_status,
        }


def build_report(shift: ShiftState) -> ShiftReport:
    """
    End-of-shift report.

    A closed shift reports its stored counted cash and difference; an open
    shift reports the running expectation with no variance yet.
    """
    summary = summarize(shift)
    return ShiftReport(
        shift=shift,
        summary=summary,
        counted_cash=shift.counted_cash,
        difference=shift.difference,
        variance_status=variance_status(shift.difference),
    )
