"""
Pytest fixtures for cashdrawer backend tests.

Provides a deterministic clock, an in-memory manager, and a Flask app backed
by an in-memory SQLite database with its test client.
"""

from datetime import datetime, timedelta

import pytest

from cashdrawer import create_app
from cashdrawer.extensions import db, get_shift_manager
from cashdrawer.services.audit import Actor
from cashdrawer.services.concurrency import ShiftLockRegistry
from cashdrawer.services.gateway import InMemoryShiftGateway
from cashdrawer.services.shift_manager import ShiftManager


class StepClock:
    """Clock that advances one second per call."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


CASHIER = Actor("u-1", "Ana")
MANAGER = Actor("u-2", "Ben")


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def gateway():
    return InMemoryShiftGateway()


@pytest.fixture
def manager(gateway, clock):
    return ShiftManager(gateway, locks=ShiftLockRegistry(timeout=2.0), clock=clock)


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def sql_manager(app):
    return get_shift_manager()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def actor_headers(actor: Actor = CASHIER) -> dict:
    """Helper to create identity headers."""
    return {'X-Actor-Id': actor.user_id, 'X-Actor-Name': actor.user_name}
