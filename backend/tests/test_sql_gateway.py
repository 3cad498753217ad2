"""
Persistence tests: the shift engine running on the SQLAlchemy gateway.
"""

from dataclasses import replace

import pytest
from sqlalchemy.exc import OperationalError

from cashdrawer.errors import PersistenceFailure, ShiftAlreadyOpen, ShiftNotActive, ShiftNotFound
from cashdrawer.extensions import db
from cashdrawer.models import CashMovementRecord, SalePostingRecord, ShiftAuditEvent, ShiftRecord
from cashdrawer.money import Money
from cashdrawer.services.gateway import SqlShiftGateway
from cashdrawer.services.shift_state import ShiftState
from tests.conftest import CASHIER, MANAGER


def m(value: str) -> Money:
    return Money.parse(value)


@pytest.fixture
def sql_gateway(app):
    return SqlShiftGateway()


def _run_scenario(manager):
    shift = manager.open(CASHIER.user_id, CASHIER.user_name, m("100.00"), context="register-1")
    for amount in ("20.00", "30.00", "10.00"):
        manager.post_sale_payment(shift.id, "cash", m(amount), CASHIER)
    manager.post_sale_payment(shift.id, "card", m("15.00"), CASHIER, idempotency_key="trx-9:1")
    manager.add_cash_movement(shift.id, "IN", m("50.00"), "change", CASHIER)
    manager.add_cash_movement(shift.id, "OUT", m("20.00"), "tip payout", MANAGER)
    return shift.id


class TestShiftPersistence:
    def test_full_lifecycle_round_trips(self, sql_manager):
        shift_id = _run_scenario(sql_manager)

        closed = sql_manager.close(shift_id, m("185.00"), MANAGER)
        db.session.expunge_all()
        reloaded = sql_manager.get_shift(shift_id)

        assert reloaded == closed
        assert reloaded.status == "CLOSED"
        assert reloaded.cash_sales == m("60.00")
        assert reloaded.card_sales == m("15.00")
        assert reloaded.expected_cash == m("190.00")
        assert reloaded.difference == m("-5.00")
        assert reloaded.closed_by_name == MANAGER.user_name
        assert [mv.reason for mv in reloaded.cash_movements] == ["change", "tip payout"]
        assert reloaded.postings[-1].idempotency_key == "trx-9:1"

    def test_child_rows_are_sequenced(self, sql_manager):
        shift_id = _run_scenario(sql_manager)

        postings = db.session.query(SalePostingRecord).filter_by(shift_id=shift_id).all()
        movements = db.session.query(CashMovementRecord).filter_by(shift_id=shift_id).all()
        assert sorted(p.sequence for p in postings) == [0, 1, 2, 3]
        assert sorted(mv.sequence for mv in movements) == [0, 1]

    def test_every_save_bumps_version(self, sql_manager):
        shift = sql_manager.open("u-1", "Ana", m("10.00"))
        assert shift.version == 1

        after_payment = sql_manager.post_sale_payment(shift.id, "cash", m("1.00"), CASHIER)
        after_movement = sql_manager.add_cash_movement(shift.id, "IN", m("1.00"), "change", CASHIER)

        assert after_payment.version == 2
        assert after_movement.version == 3

    def test_audit_events_written_with_state(self, sql_manager):
        shift_id = _run_scenario(sql_manager)
        sql_manager.close(shift_id, m("190.00"), MANAGER)

        entries = sql_manager.get_audit_log(shift_id)
        assert db.session.query(ShiftAuditEvent).filter_by(shift_id=shift_id).count() == 7
        assert entries[0].operation == "open"
        assert entries[-1].operation == "close"
        assert entries[-1].user_id == MANAGER.user_id

    def test_missing_shift(self, sql_manager):
        with pytest.raises(ShiftNotFound):
            sql_manager.get_shift("0" * 32)
        with pytest.raises(ShiftNotActive):
            sql_manager.close("0" * 32, m("1.00"), CASHIER)

    def test_list_and_active(self, sql_manager):
        first = sql_manager.open("u-1", "Ana", m("0"), context="r1")
        sql_manager.close(first.id, m("0"), CASHIER)
        second = sql_manager.open("u-1", "Ana", m("0"), context="r1")

        assert sql_manager.get_active_shift("r1").id == second.id
        assert sql_manager.get_active_shift("r2") is None
        assert {s.id for s in sql_manager.list_shifts(context="r1")} == {first.id, second.id}
        assert [s.id for s in sql_manager.list_shifts(status="CLOSED")] == [first.id]


class TestGatewayGuards:
    def test_open_index_rejects_second_open_shift(self, sql_manager, sql_gateway):
        existing = sql_manager.open("u-1", "Ana", m("0"), context="r1")
        duplicate = ShiftState.opened(
            user_id="u-2", user_name="Ben", starting_cash=m("0"),
            start_time=existing.start_time, context="r1",
        )

        with pytest.raises(ShiftAlreadyOpen):
            sql_gateway.save_shift(duplicate)

        assert db.session.query(ShiftRecord).count() == 1

    def test_stale_version_rejected(self, sql_manager, sql_gateway):
        shift = sql_manager.open("u-1", "Ana", m("0"))
        sql_manager.post_sale_payment(shift.id, "cash", m("1.00"), CASHIER)

        with pytest.raises(PersistenceFailure):
            sql_gateway.save_shift(replace(shift, card_sales=m("99.00")))

        assert sql_manager.get_shift(shift.id).card_sales == Money.zero()

    def test_movements_cannot_be_rewritten(self, sql_manager, sql_gateway):
        shift = sql_manager.open("u-1", "Ana", m("0"))
        shift = sql_manager.add_cash_movement(shift.id, "IN", m("5.00"), "change", CASHIER)

        with pytest.raises(PersistenceFailure):
            sql_gateway.save_shift(replace(shift, cash_movements=()))

        assert len(sql_manager.get_shift(shift.id).cash_movements) == 1

    def test_rejected_close_leaves_row_untouched(self, sql_manager):
        shift = sql_manager.open("u-1", "Ana", m("10.00"))
        closed = sql_manager.close(shift.id, m("10.00"), CASHIER)

        with pytest.raises(ShiftNotActive):
            sql_manager.add_cash_movement(shift.id, "OUT", m("1.00"), "late", CASHIER)

        assert sql_manager.get_shift(shift.id).version == closed.version


def _fail_next_commit(monkeypatch, exc):
    session = db.session()
    original = session.commit

    def commit():
        monkeypatch.setattr(session, "commit", original)
        raise exc

    monkeypatch.setattr(session, "commit", commit)


class TestWriteFailures:
    def test_failed_commit_rolls_back(self, sql_manager, monkeypatch):
        shift = sql_manager.open("u-1", "Ana", m("10.00"))
        _fail_next_commit(monkeypatch, OperationalError("COMMIT", {}, Exception("database is locked")))

        with pytest.raises(PersistenceFailure) as exc:
            sql_manager.post_sale_payment(shift.id, "cash", m("5.00"), CASHIER)

        assert exc.value.retryable
        stored = sql_manager.get_shift(shift.id)
        assert stored == shift
        assert stored.version == shift.version
        assert [e.operation for e in sql_manager.get_audit_log(shift.id)] == ["open"]

        after = sql_manager.post_sale_payment(shift.id, "cash", m("5.00"), CASHIER)
        assert after.cash_sales == m("5.00")
        assert after.version == shift.version + 1

    def test_driver_overflow_rolls_back(self, sql_manager, sql_gateway):
        shift = sql_manager.open("u-1", "Ana", m("10.00"))

        with pytest.raises(PersistenceFailure):
            sql_gateway.save_shift(replace(shift, cash_sales=Money(10 ** 19)))

        assert sql_manager.get_shift(shift.id).cash_sales == Money.zero()
        after = sql_manager.add_cash_movement(shift.id, "IN", m("1.00"), "change", CASHIER)
        assert len(after.cash_movements) == 1

    def test_unexpected_error_rolls_back(self, sql_manager, monkeypatch):
        shift = sql_manager.open("u-1", "Ana", m("10.00"))
        _fail_next_commit(monkeypatch, RuntimeError("driver exploded"))

        with pytest.raises(PersistenceFailure):
            sql_manager.close(shift.id, m("10.00"), CASHIER)

        assert sql_manager.get_shift(shift.id).is_open
        assert sql_manager.close(shift.id, m("10.00"), CASHIER).is_closed
