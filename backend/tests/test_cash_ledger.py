from datetime import datetime

import pytest

from cashdrawer.errors import InvalidAmount, InvalidMovement
from cashdrawer.money import Money
from cashdrawer.services.cash_ledger import MOVEMENT_IN, MOVEMENT_OUT, CashLedger
from cashdrawer.services.shift_state import CashMovement


def _movement(n: int, type_: str = MOVEMENT_IN, cents: int = 100, reason: str = "change") -> CashMovement:
    return CashMovement(
        id=f"m-{n}",
        type=type_,
        amount=Money(cents),
        reason=reason,
        timestamp=datetime(2026, 1, 5, 9, 0, n),
        user_id="u-1",
        user_name="Ana",
    )


def test_append_preserves_insertion_order_and_never_mutates():
    ledger = CashLedger()
    appended = []
    for n in range(5):
        movement = _movement(n, MOVEMENT_IN if n % 2 else MOVEMENT_OUT)
        new_ledger = ledger.append(movement)
        assert len(ledger) == n
        ledger = new_ledger
        appended.append(movement)

    assert list(ledger.movements) == appended
    assert list(ledger) == appended


def test_totals_by_direction():
    ledger = CashLedger([
        _movement(1, MOVEMENT_IN, 5000),
        _movement(2, MOVEMENT_OUT, 2000),
        _movement(3, MOVEMENT_IN, 1),
    ])
    assert ledger.total_in() == Money(5001)
    assert ledger.total_out() == Money(2000)


def test_empty_ledger_totals_are_zero():
    ledger = CashLedger()
    assert ledger.total_in() == Money.zero()
    assert ledger.total_out() == Money.zero()


@pytest.mark.parametrize("cents", [0, -100])
def test_append_rejects_non_positive_amount(cents):
    with pytest.raises(InvalidAmount):
        CashLedger().append(_movement(1, cents=cents))


def test_append_rejects_blank_reason_and_unknown_type():
    with pytest.raises(InvalidMovement):
        CashLedger().append(_movement(1, reason="   "))
    with pytest.raises(InvalidMovement):
        CashLedger().append(_movement(1, type_="SIDEWAYS"))
