"""
Mailbox provider adapters.

A provider opens a session against one configured account with ``INBOX``
already selected read-only. Sessions return ``RawMessage`` objects whose
fields still hold provider-native values; ``normalize`` turns them into
plain strings.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional, Protocol, Sequence

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError
from loguru import logger

from app.core.config import MailboxSettings
from app.utils.exceptions import LookupUnsupportedError

INBOX = "INBOX"
HEADER_ITEMS = [b"ENVELOPE", b"INTERNALDATE"]
FULL_ITEMS = [b"ENVELOPE", b"INTERNALDATE", b"BODY.PEEK[]"]


@dataclass
class RawMessage:
    uid: Any
    subject: Any = None
    sender: Any = None
    recipient: Any = None
    date: Any = None
    message_id: Any = None
    text: Any = None
    html: Any = None


class MailboxSession(Protocol):
    def list_recent(self, limit: int, newest_first: bool = True) -> List[RawMessage]:
        """Optimized header-only listing; may legitimately return nothing."""

    def list_all(self, limit: int, newest_first: bool = True) -> List[RawMessage]:
        """Broader header-only listing used when ``list_recent`` is empty."""

    def fetch_by_uid(self, uid: str) -> Optional[RawMessage]:
        """Direct lookup with bodies. Raises when the provider cannot do it."""

    def fetch_window(self, limit: int) -> List[RawMessage]:
        """The ``limit`` most recent messages with bodies, oldest first."""


SessionOpener = Callable[[MailboxSettings], ContextManager[MailboxSession]]


class ImapMailboxSession:
    """Session over an IMAPClient connection"""

    def __init__(self, client: IMAPClient):
        self.client = client

    def list_recent(self, limit: int, newest_first: bool = True) -> List[RawMessage]:
        # Server-side ordering needs the SORT extension
        if not self.client.has_capability("SORT"):
            logger.info("Server lacks SORT capability, skipping optimized listing")
            return []
        criteria = ["REVERSE", "ARRIVAL"] if newest_first else ["ARRIVAL"]
        uids = list(self.client.sort(criteria, "ALL"))[:limit]
        return self._fetch(uids, HEADER_ITEMS)

    def list_all(self, limit: int, newest_first: bool = True) -> List[RawMessage]:
        uids = sorted(self.client.search("ALL"), reverse=newest_first)[:limit]
        return self._fetch(uids, HEADER_ITEMS)

    def fetch_by_uid(self, uid: str) -> Optional[RawMessage]:
        if not uid.isdigit():
            raise LookupUnsupportedError(f"'{uid}' is not an IMAP UID")
        messages = self._fetch([int(uid)], FULL_ITEMS)
        return messages[0] if messages else None

    def fetch_window(self, limit: int) -> List[RawMessage]:
        uids = sorted(self.client.search("ALL"), reverse=True)[:limit]
        return self._fetch(sorted(uids), FULL_ITEMS)

    def _fetch(self, uids: Sequence[int], items: List[bytes]) -> List[RawMessage]:
        if not uids:
            return []
        response = self.client.fetch(list(uids), items)
        # Keep the requested order; the server answers in its own
        return [_from_fetch(uid, response[uid]) for uid in uids if uid in response]


def _from_fetch(uid: int, data: Dict[bytes, Any]) -> RawMessage:
    envelope = data.get(b"ENVELOPE")
    raw = data.get(b"BODY[]")
    parsed = BytesParser(policy=policy.default).parsebytes(raw) if raw else None

    message = RawMessage(uid=uid, date=data.get(b"INTERNALDATE"))
    if envelope is not None:
        message.subject = envelope.subject
        message.sender = envelope.from_
        message.recipient = envelope.to
        message.message_id = envelope.message_id
        message.date = envelope.date or message.date
    elif parsed is not None:
        message.subject = parsed.get("Subject")
        message.sender = parsed.get("From")
        message.recipient = parsed.get("To")
        message.message_id = parsed.get("Message-ID")

    if parsed is not None:
        message.text = _part_content(parsed, "plain")
        message.html = _part_content(parsed, "html")
    return message


def _part_content(message: EmailMessage, subtype: str) -> Optional[str]:
    part = message.get_body(preferencelist=(subtype,))
    if part is None:
        return None
    try:
        return part.get_content()
    except (LookupError, UnicodeError) as e:
        logger.warning("Undecodable text/{} part: {}", subtype, e)
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


@contextmanager
def open_imap_session(settings: MailboxSettings) -> Iterator[ImapMailboxSession]:
    logger.info(
        "Connecting to IMAP server {}:{} ({}) as {}",
        settings.host, settings.port, settings.encryption, settings.username,
    )
    client = IMAPClient(
        host=settings.host,
        port=settings.port,
        ssl=settings.encryption == "ssl",
        timeout=settings.timeout_seconds,
    )
    try:
        if settings.encryption == "starttls":
            client.starttls()
        client.login(settings.username, settings.password)
        client.select_folder(INBOX, readonly=True)
        yield ImapMailboxSession(client)
    finally:
        try:
            client.logout()
        except (IMAPClientError, OSError) as e:
            logger.warning("IMAP logout failed: {}", e)


class MockMailboxSession:
    """Fixed sample inbox for development without a mail server"""

    def __init__(self, messages: Optional[List[RawMessage]] = None):
        self.messages = messages if messages is not None else sample_messages()

    def list_recent(self, limit: int, newest_first: bool = True) -> List[RawMessage]:
        ordered = sorted(self.messages, key=lambda m: m.date, reverse=newest_first)
        return [_headers_only(m) for m in ordered[:limit]]

    def list_all(self, limit: int, newest_first: bool = True) -> List[RawMessage]:
        return self.list_recent(limit, newest_first)

    def fetch_by_uid(self, uid: str) -> Optional[RawMessage]:
        return next((m for m in self.messages if m.uid == uid), None)

    def fetch_window(self, limit: int) -> List[RawMessage]:
        return sorted(self.messages, key=lambda m: m.date)[-limit:]


def _headers_only(message: RawMessage) -> RawMessage:
    return RawMessage(
        uid=message.uid,
        subject=message.subject,
        sender=message.sender,
        recipient=message.recipient,
        date=message.date,
        message_id=message.message_id,
    )


@contextmanager
def open_mock_session(settings: MailboxSettings) -> Iterator[MockMailboxSession]:
    logger.info("Using mock mailbox for {}", settings.username)
    yield MockMailboxSession()


PROVIDERS: Dict[str, SessionOpener] = {
    "imap": open_imap_session,
    "mock": open_mock_session,
}


def open_session(settings: MailboxSettings) -> ContextManager[MailboxSession]:
    """Open a session with the provider the account is configured for."""
    return PROVIDERS[settings.provider](settings)


def sample_messages() -> List[RawMessage]:
    now = datetime.now(timezone.utc)
    return [
        RawMessage(
            uid="email-001",
            subject="Project Update: Q3 Goals",
            sender="jane.manager@example.com",
            recipient="user@example.com",
            date=now - timedelta(days=1),
            message_id="<project-update-123@example.com>",
            text=(
                "Hi team,\n\nI wanted to provide an update on our Q3 goals. We're tracking well on most "
                "metrics, but I'd like to schedule a review meeting next week.\n\n"
                "Could you please share your availability?\n\nBest,\nJane"
            ),
        ),
        RawMessage(
            uid="email-002",
            subject="Client Meeting - Follow-up",
            sender="Robert Client <robert.client@acme.com>",
            recipient="user@example.com",
            date=now - timedelta(days=2),
            message_id="<client-meeting-456@acme.com>",
            text=(
                "Hello,\n\nThank you for meeting with us yesterday. The presentation was well-received, "
                "and the team is excited about the potential collaboration.\n\nI have a few questions "
                "about the timeline and budget. Could we schedule a quick call this week?\n\n"
                "Regards,\nRobert"
            ),
        ),
        RawMessage(
            uid="email-003",
            subject="Conference Speaking Opportunity",
            sender="events@techconf.org",
            recipient="user@example.com",
            date=now - timedelta(days=5),
            message_id="<invite-789@techconf.org>",
            text=(
                "Dear Speaker,\n\nWe're pleased to invite you to speak at our upcoming TechConf. Based on "
                "your expertise in AI and machine learning, we think you'd be perfect for a 30-minute "
                "session on recent developments.\n\nPlease let me know if you're interested, and I can "
                "share more details.\n\nSincerely,\nConference Organizing Team"
            ),
        ),
        RawMessage(
            uid="email-004",
            subject="Your Subscription Renewal",
            sender="billing@saasproduct.com",
            recipient="user@example.com",
            date=now - timedelta(hours=12),
            message_id="<billing-246@saasproduct.com>",
            text=(
                "Hello,\n\nYour subscription to SaasProduct Pro is set to renew on July 15th. Your card "
                "ending in 4567 will be charged $99.99.\n\nIf you'd like to make any changes to your "
                "subscription, please visit your account settings or contact our support team.\n\n"
                "Thank you for being a valued customer!\n\nThe SaasProduct Team"
            ),
        ),
        RawMessage(
            uid="email-005",
            subject="Feedback on Your Recent Pull Request",
            sender="dev.lead@company.com",
            recipient="user@example.com",
            date=now - timedelta(hours=6),
            message_id="<code-review-357@company.com>",
            text=(
                "Hi Developer,\n\nI've reviewed your PR for the authentication feature. Overall, it looks "
                "good, but I have a few suggestions:\n\n1. Consider adding more comprehensive tests for "
                "edge cases\n2. The password reset flow needs a clearer error message\n3. Let's discuss "
                "the rate limiting approach\n\nLet me know when you'd like to chat about these points.\n\n"
                "Regards,\nDev Lead"
            ),
        ),
    ]
