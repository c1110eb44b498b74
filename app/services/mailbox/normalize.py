"""
Coercion of provider values into plain strings.

IMAPClient hands back bytes, ``Address`` tuples and ``datetime`` objects; the
mock provider hands back str and datetime. Nothing but ``str`` or ``None``
leaves this module.
"""

import re
from datetime import date, datetime
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.utils import getaddresses, parsedate_to_datetime
from typing import Any, Optional

from app.models.email import NO_SUBJECT, UNKNOWN_ADDRESS, EmailDetail, EmailSummary

_EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)


def to_text(value: Any) -> Optional[str]:
    """Decode bytes and RFC 2047 encoded words into a str."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    elif not isinstance(value, str):
        value = str(value)
    if "=?" in value:
        try:
            value = str(make_header(decode_header(value)))
        except (UnicodeError, LookupError, ValueError, HeaderParseError):
            pass
    return value.strip()


def to_iso_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = to_text(value)
    if not text:
        return None
    try:
        return parsedate_to_datetime(text).isoformat()
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        return None


def extract_address(value: Any) -> str:
    """
    Reduce any address representation to a single bare address.

    Accepts IMAPClient ``Address`` tuples, ``"Name <a@b>"`` strings, bytes and
    sequences of any of those; the first resolvable address wins.
    """
    resolved = _resolve_address(value)
    return resolved if resolved else UNKNOWN_ADDRESS


def _resolve_address(value: Any) -> Optional[str]:
    if value is None:
        return None

    # imapclient.response_types.Address
    if hasattr(value, "mailbox") and hasattr(value, "host"):
        mailbox, host = to_text(value.mailbox), to_text(value.host)
        if mailbox and host:
            return f"{mailbox}@{host}"
        return None

    if isinstance(value, (str, bytes)):
        return _parse_address_string(to_text(value) or "")

    if isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            resolved = _resolve_address(item)
            if resolved:
                return resolved
        return None

    return _parse_address_string(str(value))


def _parse_address_string(value: str) -> Optional[str]:
    for _name, address in getaddresses([value]):
        if "@" in address:
            return address.strip()
    match = _EMAIL_PATTERN.search(value)
    return match.group(0) if match else None


def summarize(raw) -> EmailSummary:
    return EmailSummary(
        id=to_text(raw.uid) or "",
        subject=to_text(raw.subject) or NO_SUBJECT,
        sender=extract_address(raw.sender),
        date=to_iso_date(raw.date),
        message_id=to_text(raw.message_id) or "",
    )


def detail(raw) -> EmailDetail:
    html = to_text(raw.html) if raw.html is not None else None
    return EmailDetail(
        **summarize(raw).model_dump(),
        recipient=extract_address(raw.recipient),
        body=_body_text(raw.text),
        html=html or None,
    )


def _body_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def error_summary(uid: Any) -> EmailSummary:
    """Placeholder row for a message that could not be normalized."""
    return EmailSummary(
        id=to_text(uid) or "error",
        subject="Error: Unable to process email",
        sender=UNKNOWN_ADDRESS,
        date=None,
        message_id="",
    )
