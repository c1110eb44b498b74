"""Exception hierarchy for the inbox reply assistant."""


class InboxAssistantError(Exception):
    """Base exception for all application errors."""


# Mailbox
class MailboxError(InboxAssistantError):
    """Mailbox connection or protocol failure. Never leaves the mailbox reader."""


class UnknownAccountError(MailboxError):
    """No mailbox is configured for the requested account."""


class LookupUnsupportedError(MailboxError):
    """The provider cannot look a message up by UID directly."""


# Composer
class ComposerError(InboxAssistantError):
    """The language model call failed; the message carries the upstream detail."""


# Dispatch
class DispatchError(InboxAssistantError):
    """The outbound relay rejected or failed to deliver a reply."""
