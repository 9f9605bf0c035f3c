"""Shared fixtures: in-memory database, tenant-scoped store, fake channels."""

from contextlib import contextmanager
from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import outreach_flow.models  # noqa: F401
from outreach_flow.channels.base import DispatchResult
from outreach_flow.store import EntityStore
from outreach_flow.workflow.definition import CHANNEL_STEP_TYPES

TENANT = "tenant-a"


@pytest.fixture
def db_engine():
    """In-memory SQLite shared across sessions and threads for one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    with Session(db_engine) as session:
        yield session


def _session_factory(engine):
    @contextmanager
    def _get_session():
        with Session(engine) as session:
            yield session

    return _get_session


@pytest.fixture
def store(db_engine):
    return EntityStore(tenant_id=TENANT, session_factory=_session_factory(db_engine))


@pytest.fixture
def other_store(db_engine):
    return EntityStore(tenant_id="tenant-b", session_factory=_session_factory(db_engine))


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    # Monday 2025-03-03 10:00 UTC
    return FakeClock(datetime(2025, 3, 3, 10, 0))


class FakeDispatcher:
    """Records calls; returns canned results or raises canned errors per step type."""

    def __init__(self):
        self.calls = []
        self.results = {}

    def execute(self, step_type, lead, config, account_id=None):
        self.calls.append({"step_type": step_type, "lead_id": lead.id, "config": config, "account_id": account_id})
        result = self.results.get(step_type)
        if isinstance(result, Exception):
            raise result
        if result is None:
            return DispatchResult(success=True, data={"action_taken": step_type})
        return result

    def step_types_called(self):
        return [c["step_type"] for c in self.calls]


@pytest.fixture
def fake_dispatcher():
    return FakeDispatcher()


@pytest.fixture
def dispatchers(fake_dispatcher):
    return {step_type: fake_dispatcher for step_type in CHANNEL_STEP_TYPES}
