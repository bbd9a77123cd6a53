"""Shared fixtures for all test modules."""
import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("API_KEY", "TEST-KEY-2026")
os.environ.setdefault("ADMIN_API_KEY", "TEST-ADMIN-KEY-2026")
os.environ.setdefault("APP_ENV", "development")

from refund_workflow.main import app
from refund_workflow.repository.store import store
from refund_workflow.services.refund_lifecycle import RefundLifecycleManager, lifecycle
from seed_data import load_seed_data, SCENARIO_LEARNER
from tests.helpers import NOW, FrozenClock, RecordingNotifier


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    """Reset the store, reseed it relative to NOW and freeze the app's clock."""
    frozen = FrozenClock(NOW)
    store.reset()
    load_seed_data(store, now=NOW)
    monkeypatch.setattr(lifecycle, "clock", frozen)
    yield frozen


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def manager(clock, notifier):
    return RefundLifecycleManager(store=store, clock=clock, notifier=notifier)


@pytest.fixture
def learner_id():
    return SCENARIO_LEARNER


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": "TEST-KEY-2026", "X-User-Id": SCENARIO_LEARNER}


@pytest.fixture
def admin_headers():
    return {"X-API-Key": "TEST-KEY-2026", "X-Admin-Key": "TEST-ADMIN-KEY-2026", "X-User-Id": "ADM-001"}
