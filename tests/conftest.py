import os
import tempfile
from contextlib import contextmanager

# Settings are read at import time
_LOG_DIR = tempfile.mkdtemp(prefix="inbox-assistant-tests-")
os.environ.setdefault("AUDIT_LOG_PATH", os.path.join(_LOG_DIR, "audit.log"))
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from sqlalchemy.pool import StaticPool

from app.core.config import MailboxSettings, SmtpTransportSettings
from app.db.session import create_db_engine, create_session_factory, init_db
from app.models.email import EmailDetail
from app.services.agents.reply_agent import ReplyComposer
from app.services.mail.dispatcher import ReplyDispatcher
from app.services.mail.signatures import SignatureService
from app.services.mailbox.reader import MailboxReader
from app.services.storage.reply_store import ReplyStore
from app.utils.exceptions import DispatchError


class FakeTransport:
    """Records messages instead of talking to an SMTP relay"""

    def __init__(self, settings, error=None):
        self.settings = settings
        self.error = error
        self.sent = []

    @property
    def from_address(self):
        return self.settings.from_address

    @property
    def from_name(self):
        return self.settings.from_name

    def send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)


class RecordingTransportFactory:
    def __init__(self, error=None):
        self.error = error
        self.transports = []

    def __call__(self, settings):
        transport = FakeTransport(settings, self.error)
        self.transports.append(transport)
        return transport

    @property
    def messages(self):
        return [m for t in self.transports for m in t.sent]


class FakeMailboxSession:
    """Scripted mailbox session; ``None`` for a listing means it returns nothing"""

    def __init__(self, recent=None, everything=None, by_uid=None, window=None,
                 uid_error=None, window_error=None, list_error=None):
        self.recent = recent or []
        self.everything = everything or []
        self.by_uid = by_uid or {}
        self.window = window or []
        self.uid_error = uid_error
        self.window_error = window_error
        self.list_error = list_error
        self.calls = []

    def list_recent(self, limit, newest_first=True):
        self.calls.append(("list_recent", limit, newest_first))
        if self.list_error is not None:
            raise self.list_error
        return self.recent[:limit]

    def list_all(self, limit, newest_first=True):
        self.calls.append(("list_all", limit, newest_first))
        return self.everything[:limit]

    def fetch_by_uid(self, uid):
        self.calls.append(("fetch_by_uid", uid))
        if self.uid_error is not None:
            raise self.uid_error
        return self.by_uid.get(uid)

    def fetch_window(self, limit):
        self.calls.append(("fetch_window", limit))
        if self.window_error is not None:
            raise self.window_error
        return self.window[-limit:]


def opener_for(session):
    @contextmanager
    def _open(settings):
        yield session
    return _open


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return ReplyStore(session_factory)


@pytest.fixture
def mailbox_settings():
    return {
        "default": MailboxSettings(provider="mock", username="user@example.com"),
        "info": MailboxSettings(provider="mock", username="info@example.com"),
    }


@pytest.fixture
def mock_reader(mailbox_settings):
    return MailboxReader(mailbox_settings, default_account="default")


@pytest.fixture
def transport_settings():
    return {
        "smtp": SmtpTransportSettings(from_address="user@example.com", from_name="Inbox User"),
        "smtp1": SmtpTransportSettings(from_address="info@example.com", from_name="Info Desk"),
    }


@pytest.fixture
def transport_factory():
    return RecordingTransportFactory()


@pytest.fixture
def failing_transport_factory():
    return RecordingTransportFactory(error=DispatchError("SMTP delivery failed: connection refused"))


@pytest.fixture
def dispatcher(store, transport_settings, transport_factory):
    return ReplyDispatcher(
        store,
        transports=transport_settings,
        account_transports={"info": "smtp1"},
        default_transport="smtp",
        default_account="default",
        transport_factory=transport_factory,
    )


@pytest.fixture
def signatures():
    return SignatureService({"default": "Best regards,\nInbox User", "info": "Info Desk"})


@pytest.fixture
def chat_model():
    return FakeListChatModel(responses=["Draft one", "Draft two", "Draft three"])


@pytest.fixture
def composer(chat_model):
    return ReplyComposer(chat_model)


@pytest.fixture
def email():
    return EmailDetail(
        id="42",
        subject="Meeting notes",
        sender="alice@example.com",
        recipient="user@example.com",
        date="2024-05-01T09:30:00+00:00",
        message_id="<notes-42@example.com>",
        body="Here are the notes from today.\nLet me know what you think.",
    )
