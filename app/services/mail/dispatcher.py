from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Dict, Optional

from loguru import logger

from app.core.config import SmtpTransportSettings
from app.models.email import EmailDetail, Transcript
from app.models.reply import ReplyRecord
from app.services.mail.formatting import append_signature, format_reply_subject, reply_to_html
from app.services.mail.smtp_transport import SmtpTransport
from app.services.storage.reply_store import ReplyStore, now_utc
from app.utils.audit_logger import audit_logger
from app.utils.exceptions import DispatchError


class ReplyDispatcher:
    """
    Sends replies through the outbound relay mapped to each account and
    records drafts and sent replies in the reply store.
    """

    def __init__(
        self,
        store: ReplyStore,
        transports: Dict[str, SmtpTransportSettings],
        account_transports: Optional[Dict[str, str]] = None,
        default_transport: str = "smtp",
        default_account: str = "default",
        transport_factory: Callable[[SmtpTransportSettings], SmtpTransport] = SmtpTransport,
    ):
        self.store = store
        self.transports = transports
        self.account_transports = account_transports or {}
        self.default_transport = default_transport
        self.default_account = default_account
        self.transport_factory = transport_factory

    def resolve_transport_key(self, account_id: str) -> str:
        return self.account_transports.get(account_id, self.default_transport)

    def build_message(self, email: EmailDetail, reply_text: str, transport: SmtpTransport) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = format_reply_subject(email.subject)
        message["From"] = formataddr((transport.from_name or "", transport.from_address))
        message["To"] = email.sender
        message["Reply-To"] = formataddr((transport.from_name or "", transport.from_address))
        message["Message-ID"] = make_msgid()
        if email.message_id:
            message["In-Reply-To"] = email.message_id
            message["References"] = email.message_id
        message.set_content(reply_text.rstrip() + "\n")
        message.add_alternative(f"<html><body>{reply_to_html(reply_text)}</body></html>", subtype="html")
        return message

    def send_reply(
        self,
        email: EmailDetail,
        reply_text: str,
        account_id: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> bool:
        """
        Send a reply to the original sender.

        Args:
            email: The email being replied to
            reply_text: Plain-text reply
            account_id: Logical account to send from, the default account when omitted
            signature: Optional signature appended unless the reply already ends with it

        Returns:
            True once the relay accepted the message, even if recording it as sent fails
        """
        account = account_id or self.default_account
        transport_key = self.resolve_transport_key(account)
        content = append_signature(reply_text, signature)

        try:
            transport_settings = self.transports.get(transport_key)
            if transport_settings is None:
                raise DispatchError(f"No SMTP transport configured under '{transport_key}'")
            transport = self.transport_factory(transport_settings)
            transport.send(self.build_message(email, content, transport))
        except Exception as e:
            logger.error("Failed to send email reply for {} ({}): {}", email.id, account, e)
            audit_logger.log(
                action="email_reply_sent",
                resource_type="email",
                resource_id=email.id,
                status="failure",
                account=account,
                details={"transport": transport_key, "error": str(e)},
            )
            return False

        try:
            self.store.upsert(email.id, account, latest_reply=content, sent_at=now_utc())
        except Exception as e:
            logger.error("Reply for email {} ({}) was sent but could not be recorded: {}", email.id, account, e)
            audit_logger.log(
                action="email_reply_sent",
                resource_type="email",
                resource_id=email.id,
                status="failure",
                account=account,
                details={"stage": "persist", "transport": transport_key, "error": str(e)},
            )
            return True

        audit_logger.log(
            action="email_reply_sent",
            resource_type="email",
            resource_id=email.id,
            status="success",
            account=account,
            details={"transport": transport_key, "to": email.sender},
        )
        return True

    def save_draft_reply(
        self,
        email_id: str,
        reply_text: str,
        transcript: Transcript,
        account_id: Optional[str] = None,
    ) -> ReplyRecord:
        """Store the latest draft and transcript; a draft never sets ``sent_at``."""
        account = account_id or self.default_account
        record = self.store.upsert(email_id, account, latest_reply=reply_text, transcript=transcript)

        audit_logger.log(
            action="email_reply_draft_saved",
            resource_type="email",
            resource_id=email_id,
            status="success",
            account=account,
            details={"turns": len(transcript)},
        )
        return record
