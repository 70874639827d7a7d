import json
import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import SyncSettings
from db import Base
from logic.fetcher import UpstreamFetcher
from models.bookmark import Bookmark  # noqa: F401
from models.question import Question
from models.user import User
from models.user_progress import UserProgress  # noqa: F401

TEST_ENDPOINTS = {
    "leetcode": [
        "https://lc-primary.test/{username}",
        "https://lc-fallback.test/{username}",
    ],
    "gfg": [
        "https://gfg.test/{username}",
    ],
}


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeResponse:
    """
    Streams its body through iter_content. With `clock` and `chunk_delay`
    set, every chunk moves the clock forward to simulate a slow upstream.
    """

    def __init__(self, payload=None, status_code=200, reason="OK", bad_json=False, chunks=None, clock=None, chunk_delay=0.0):
        self._payload = payload
        self.status_code = status_code
        self.reason = reason
        self._bad_json = bad_json
        self._chunks = chunks
        self._clock = clock
        self._chunk_delay = chunk_delay
        self.closed = False

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def iter_content(self, chunk_size=1):
        if self._chunks is not None:
            chunks = self._chunks
        elif self._bad_json:
            chunks = [b"<html>oops"]
        else:
            chunks = [json.dumps(self._payload).encode()]
        for chunk in chunks:
            if self._clock is not None:
                self._clock.advance(self._chunk_delay)
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    """
    Scripted stand-in for requests.Session. Each URL maps to a list of
    outcomes (FakeResponse or exception) consumed in order; the last one repeats.
    """

    def __init__(self, routes=None):
        self.routes = {url: list(outcomes) for url, outcomes in (routes or {}).items()}
        self.calls = []

    def get(self, url, headers=None, timeout=None, stream=False):
        self.calls.append((url, timeout))
        outcomes = self.routes.get(url)
        if not outcomes:
            raise requests.ConnectionError(f"No route to {url}")
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SleepSpy:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return SyncSettings()


@pytest.fixture
def sleep_spy():
    return SleepSpy()


@pytest.fixture
def make_fetcher(settings, sleep_spy):
    def _make(routes, **overrides):
        session = FakeSession(routes)
        fetcher = UpstreamFetcher(
            overrides.get("settings", settings),
            session=session,
            endpoints=TEST_ENDPOINTS,
            sleep=sleep_spy,
            clock=overrides.get("clock", FakeClock()),
        )
        return fetcher, session

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(username=None, role="user", leetcode=None, gfg=None, full_name=None):
        counter["n"] += 1
        user = User(
            username=username or f"student{counter['n']}",
            password_hash="x",
            role=role,
            full_name=full_name,
            leetcode_username=leetcode,
            geeksforgeeks_username=gfg,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_question(db):
    def _make(name, link, type="homework", difficulty="easy"):
        question = Question(question_name=name, question_link=link, type=type, difficulty=difficulty)
        db.add(question)
        db.commit()
        db.refresh(question)
        return question

    return _make
