"""Pytest fixtures for the topup desk tests."""

import pytest

from app import accounts
from app.audit import SinglePrincipalGate
from app.database import init_db, make_engine, make_sessionmaker
from app.service import TopupService

ADMIN_CHAT_ID = "-100500"


class RecordingNotifier:
    """Notifier double that keeps every (recipient, outcome) pair."""

    def __init__(self):
        self.sent = []

    async def notify(self, recipient, outcome):
        self.sent.append((recipient, outcome))

    def kinds(self):
        return [o.kind.value for _, o in self.sent]


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several sessions (and threads) share one database."""
    eng = make_engine(f"sqlite:///{tmp_path / 'topup.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    return accounts.upsert_user(db, "1001", display_name="Alice Doe", username="alice")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(session_factory, notifier):
    return TopupService(
        gate=SinglePrincipalGate(ADMIN_CHAT_ID),
        notifier=notifier,
        admin_chat_id=ADMIN_CHAT_ID,
        session_factory=session_factory,
    )
