from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from app.core.config import MailboxSettings
from app.models.email import EmailDetail, EmailSummary
from app.services.mailbox import normalize
from app.services.mailbox.providers import MailboxSession, RawMessage, SessionOpener, open_session
from app.utils.audit_logger import audit_logger
from app.utils.exceptions import UnknownAccountError


class _Lookup:
    """State shared by the lookup strategies of one ``get_message`` call"""

    def __init__(self, session: MailboxSession, message_id: str, window_size: int):
        self.session = session
        self.message_id = message_id
        self.window_size = window_size
        self._window: Optional[List[RawMessage]] = None
        self._window_error: Optional[Exception] = None

    @property
    def window(self) -> List[RawMessage]:
        # Fetched at most once, a failed fetch is not repeated
        if self._window_error is not None:
            raise self._window_error
        if self._window is None:
            try:
                self._window = self.session.fetch_window(self.window_size)
            except Exception as e:
                self._window_error = e
                raise
            logger.info("Scanning {} recent messages for {}", len(self._window), self.message_id)
        return self._window


LookupStrategy = Callable[[_Lookup], Optional[RawMessage]]


def lookup_by_uid(lookup: _Lookup) -> Optional[RawMessage]:
    return lookup.session.fetch_by_uid(lookup.message_id)


def scan_window_for_uid(lookup: _Lookup) -> Optional[RawMessage]:
    return next(
        (m for m in lookup.window if normalize.to_text(m.uid) == lookup.message_id),
        None,
    )


def window_position(lookup: _Lookup) -> Optional[RawMessage]:
    if not lookup.message_id.isdigit():
        return None
    position = int(lookup.message_id)
    if 1 <= position <= len(lookup.window):
        return lookup.window[position - 1]
    return None


DEFAULT_STRATEGIES: Tuple[Tuple[str, LookupStrategy], ...] = (
    ("uid", lookup_by_uid),
    ("window_scan", scan_window_for_uid),
    ("window_position", window_position),
)


class MailboxReader:
    """
    Read-only access to the inbox of each configured account.

    Connection and protocol failures never leave this class: listings
    degrade to an empty list and lookups to ``None``.
    """

    def __init__(
        self,
        mailboxes: Dict[str, MailboxSettings],
        default_account: str = "default",
        session_opener: SessionOpener = open_session,
        strategies: Tuple[Tuple[str, LookupStrategy], ...] = DEFAULT_STRATEGIES,
    ):
        self.mailboxes = mailboxes
        self.default_account = default_account
        self.session_opener = session_opener
        self.strategies = strategies

    def resolve_account(self, account_id: Optional[str]) -> str:
        return account_id or self.default_account

    def _settings_for(self, account_id: str) -> MailboxSettings:
        try:
            return self.mailboxes[account_id]
        except KeyError:
            raise UnknownAccountError(f"No mailbox configured for account '{account_id}'")

    def list_inbox(self, account_id: Optional[str] = None) -> List[EmailSummary]:
        """
        List the most recent inbox messages without their bodies.

        Args:
            account_id: Logical account, the default account when omitted

        Returns:
            Up to ``fetch_limit`` summaries in the configured order, or an
            empty list when the mailbox cannot be read
        """
        account = self.resolve_account(account_id)
        try:
            settings = self._settings_for(account)
            newest_first = settings.fetch_order == "desc"
            with self.session_opener(settings) as session:
                messages = session.list_recent(settings.fetch_limit, newest_first)
                if not messages:
                    logger.warning("Optimized listing returned no results, trying broader listing")
                    messages = session.list_all(settings.fetch_limit, newest_first)
                summaries = [self._summarize(m) for m in messages]
        except Exception as e:
            logger.exception("Error listing inbox for account {}", account)
            audit_logger.log(
                action="inbox_listed",
                resource_type="mailbox",
                status="failure",
                account=account,
                details={"error": str(e)},
            )
            return []

        audit_logger.log(
            action="inbox_listed",
            resource_type="mailbox",
            status="success" if summaries else "empty",
            account=account,
            details={"count": len(summaries)},
        )
        return summaries

    def _summarize(self, message: RawMessage) -> EmailSummary:
        try:
            return normalize.summarize(message)
        except Exception as e:
            logger.error("Error processing message {}: {}", message.uid, e)
            return normalize.error_summary(message.uid)

    def get_message(self, message_id: str, account_id: Optional[str] = None) -> Optional[EmailDetail]:
        """
        Fetch one message with its bodies.

        Lookup strategies are tried in order until one yields a message.

        Args:
            message_id: Provider identifier as shown in the inbox listing
            account_id: Logical account, the default account when omitted

        Returns:
            The message, or None when no strategy finds it or the mailbox
            cannot be read
        """
        account = self.resolve_account(account_id)
        wanted = str(message_id).strip()
        try:
            settings = self._settings_for(account)
            with self.session_opener(settings) as session:
                lookup = _Lookup(session, wanted, settings.lookup_window)
                found = self._run_strategies(lookup, account)
                email = normalize.detail(found) if found is not None else None
        except Exception as e:
            logger.exception("Error retrieving email {} for account {}", wanted, account)
            audit_logger.log(
                action="email_retrieved",
                resource_type="email",
                status="failure",
                account=account,
                resource_id=wanted,
                details={"error": str(e)},
            )
            return None

        if email is None:
            logger.warning("No message found with ID: {}", wanted)
            audit_logger.log(
                action="email_retrieved",
                resource_type="email",
                status="not_found",
                account=account,
                resource_id=wanted,
            )
            return None

        audit_logger.log(
            action="email_retrieved",
            resource_type="email",
            status="success",
            account=account,
            resource_id=wanted,
            details={"subject": email.subject},
        )
        return email

    def _run_strategies(self, lookup: _Lookup, account: str) -> Optional[RawMessage]:
        for name, strategy in self.strategies:
            try:
                message = strategy(lookup)
            except Exception as e:
                logger.warning("Lookup strategy '{}' failed for {} ({}): {}", name, lookup.message_id, account, e)
                continue
            if message is not None:
                logger.info("Found message {} with strategy '{}'", lookup.message_id, name)
                return message
        return None
