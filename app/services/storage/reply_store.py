from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.models import EmailReply
from app.models.email import load_transcript, transcript_as_dicts
from app.models.reply import ReplyRecord

_UNSET: Any = object()


class ReplyStore:
    """
    Persistence boundary for reply records, keyed by (email id, account).

    Callers only ever receive ``ReplyRecord`` snapshots; rows are mutated
    exclusively through ``upsert``.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def upsert(
        self,
        email_id: str,
        account_id: Optional[str],
        *,
        latest_reply: Any = _UNSET,
        transcript: Any = _UNSET,
        sent_at: Any = _UNSET,
    ) -> ReplyRecord:
        """
        Insert or update the record for the exact (email_id, account_id) key.

        Only the fields passed are written. ``sent_at`` is set once: a value
        passed for a row that already has one is ignored.
        """
        with self.session_factory() as session, session.begin():
            row = session.execute(
                select(EmailReply).where(
                    EmailReply.email_id == email_id,
                    _account_clause(account_id),
                )
            ).scalar_one_or_none()

            if row is None:
                row = EmailReply(email_id=email_id, account=account_id, chat_history=[])
                session.add(row)

            if latest_reply is not _UNSET:
                row.latest_ai_reply = latest_reply
            if transcript is not _UNSET:
                row.chat_history = transcript_as_dicts(transcript)
            if sent_at is not _UNSET and sent_at is not None:
                if row.sent_at is None:
                    row.sent_at = sent_at
                else:
                    logger.info("Reply for email {} already marked sent at {}", email_id, row.sent_at)

            session.flush()
            session.refresh(row)
            return _to_record(row)

    def find_by_email_id(self, email_id: str, account_id: Optional[str] = None) -> Optional[ReplyRecord]:
        """Exact account match first, then a record stored without an account."""
        with self.session_factory() as session:
            candidates = session.execute(
                select(EmailReply).where(
                    EmailReply.email_id == email_id,
                    or_(_account_clause(account_id), EmailReply.account.is_(None)),
                )
            ).scalars().all()

            if not candidates:
                return None
            # Exact match wins over the account-less record
            candidates = sorted(candidates, key=lambda r: r.account is None)
            return _to_record(candidates[0])


def _account_clause(account_id: Optional[str]):
    if account_id is None:
        return EmailReply.account.is_(None)
    return EmailReply.account == account_id


def _to_record(row: EmailReply) -> ReplyRecord:
    return ReplyRecord(
        email_id=row.email_id,
        account=row.account,
        latest_reply=row.latest_ai_reply,
        transcript=load_transcript(row.chat_history),
        sent_at=row.sent_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
