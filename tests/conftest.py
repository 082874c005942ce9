"""
Shared fixtures: an in-memory database per test and a gateway that records
what it was asked to send.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pathway.db import Base
from pathway.errors import ExternalServiceUnavailable
from pathway.intake.script import CORE_DISCOVERY_SCRIPT
from pathway.preferences import PreferenceStore
from pathway.services.coaching_session import CoachingSessionService
from pathway.storage import InteractionLog
from pathway.triggers.gateway import NotificationGateway, OutboundDispatcher


class RecordingGateway(NotificationGateway):
    """Collects dispatched events; fails the first `fail_times` calls."""

    def __init__(self, fail_times=0):
        self.events = []
        self.calls = 0
        self.fail_times = fail_times

    def dispatch(self, event):
        self.calls += 1
        if self.calls <= self.fail_times:
            raise ExternalServiceUnavailable("gateway down")
        self.events.append(event)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def log(engine):
    return InteractionLog(
        sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    )


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def gateway_factory():
    return RecordingGateway


@pytest.fixture
def dispatcher(gateway, log):
    return OutboundDispatcher(gateway, log=log, sleep=lambda seconds: None)


@pytest.fixture
def preferences():
    return PreferenceStore()


@pytest.fixture
def service(log, dispatcher, preferences):
    return CoachingSessionService(
        CORE_DISCOVERY_SCRIPT, log, dispatcher, preferences=preferences
    )


@pytest.fixture
def script():
    return CORE_DISCOVERY_SCRIPT


# One plausible answer per step, in script order.
ANSWERS = [
    "Sam, family, my health, staying free",
    "I'm on parole, check in every two weeks",
    "Staying with my cousin, I have food, no car though",
    "I'd travel and cook for people, doing it for my daughter",
    "Cousin's couch for now, my own studio, deposit money, apply to two places",
    "Warehouse and kitchens, line cook at a real restaurant, no ID yet, get my ID",
    "Doing okay most days, calm and rested, maybe a counselor",
    "My daughter and my aunt, see my daughter every week, my aunt helps",
    "I wake up in my own place, I cook, I feel steady",
    "Feed people and mentor kids coming home",
    "My aunt and my PO, a job lead would help most, yes to referrals",
    "Finish my food handler card, sign up for the class on Monday",
    "Yes please, text me, every morning",
]


@pytest.fixture
def answers():
    return list(ANSWERS)
