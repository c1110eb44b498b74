"""
FastAPI dependencies wiring services from settings.

Each service is built once per process; tests replace them through
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.db.session import create_db_engine, create_session_factory
from app.services.agents.reply_agent import ReplyComposer
from app.services.llm.gemini_provider import get_gemini_model
from app.services.mail.dispatcher import ReplyDispatcher
from app.services.mail.signatures import SignatureService
from app.services.mailbox.reader import MailboxReader
from app.services.storage.reply_store import ReplyStore


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine(settings.DATABASE_URL)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    return create_session_factory(get_engine())


def get_reply_store() -> ReplyStore:
    return ReplyStore(get_session_factory())


@lru_cache(maxsize=1)
def get_mailbox_reader() -> MailboxReader:
    return MailboxReader(settings.MAILBOXES, default_account=settings.DEFAULT_ACCOUNT)


def get_reply_composer() -> ReplyComposer:
    return ReplyComposer(get_gemini_model())


def get_reply_dispatcher(store: ReplyStore = Depends(get_reply_store)) -> ReplyDispatcher:
    return ReplyDispatcher(
        store,
        transports=settings.SMTP_TRANSPORTS,
        account_transports=settings.ACCOUNT_TRANSPORTS,
        default_transport=settings.DEFAULT_TRANSPORT,
        default_account=settings.DEFAULT_ACCOUNT,
    )


@lru_cache(maxsize=1)
def get_signature_service() -> SignatureService:
    return SignatureService(settings.SIGNATURES)
