from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, StringConstraints

from app.api.deps import (
    get_mailbox_reader,
    get_reply_composer,
    get_reply_dispatcher,
    get_reply_store,
    get_signature_service,
)
from app.models.email import ConversationTurn, EmailDetail, EmailSummary
from app.services.agents.reply_agent import ReplyComposer
from app.services.mail.dispatcher import ReplyDispatcher
from app.services.mail.signatures import SignatureService
from app.services.mailbox.reader import MailboxReader
from app.services.storage.reply_store import ReplyStore
from app.utils.exceptions import ComposerError

router = APIRouter()

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

EMAIL_NOT_FOUND = "Email not found"
SEND_FAILED = "Failed to send reply. Please try again."


class GenerateReplyRequest(BaseModel):
    """Model for an instruction to the reply assistant"""
    instruction: NonBlankStr


class SendReplyRequest(BaseModel):
    """Model for sending a reply; an omitted signature means the account's configured one"""
    reply: NonBlankStr
    signature: Optional[str] = None


class InboxResponse(BaseModel):
    account: str
    emails: List[EmailSummary]


class EmailResponse(BaseModel):
    account: str
    email: EmailDetail
    latest_reply: Optional[str] = None
    transcript: List[ConversationTurn] = []
    signature: str = ""
    sent_at: Optional[datetime] = None


class GeneratedReplyResponse(BaseModel):
    account: str
    reply: str
    transcript: List[ConversationTurn]
    message: str


class SendReplyResponse(BaseModel):
    status: str
    account: str
    message: str


def _require_email(reader: MailboxReader, email_id: str, account: str) -> EmailDetail:
    email = reader.get_message(email_id, account)
    if email is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=EMAIL_NOT_FOUND)
    return email


@router.get("", response_model=InboxResponse)
def list_inbox(
    account: Optional[str] = None,
    reader: MailboxReader = Depends(get_mailbox_reader),
):
    """
    List the most recent emails of an account's inbox.

    An unreachable mailbox yields an empty list.
    """
    account_id = reader.resolve_account(account)
    return InboxResponse(account=account_id, emails=reader.list_inbox(account_id))


@router.get("/{email_id}", response_model=EmailResponse)
def show_email(
    email_id: str,
    account: Optional[str] = None,
    reader: MailboxReader = Depends(get_mailbox_reader),
    store: ReplyStore = Depends(get_reply_store),
    signatures: SignatureService = Depends(get_signature_service),
):
    """
    Show one email with the latest draft or sent reply and its transcript.
    """
    account_id = reader.resolve_account(account)
    email = _require_email(reader, email_id, account_id)
    record = store.find_by_email_id(email_id, account_id)

    return EmailResponse(
        account=account_id,
        email=email,
        latest_reply=record.latest_reply if record else None,
        transcript=record.transcript if record else [],
        signature=signatures.get(account_id),
        sent_at=record.sent_at if record else None,
    )


@router.post("/{email_id}/generate-reply", response_model=GeneratedReplyResponse)
def generate_reply(
    email_id: str,
    request: GenerateReplyRequest,
    account: Optional[str] = None,
    reader: MailboxReader = Depends(get_mailbox_reader),
    store: ReplyStore = Depends(get_reply_store),
    composer: ReplyComposer = Depends(get_reply_composer),
    dispatcher: ReplyDispatcher = Depends(get_reply_dispatcher),
):
    """
    Ask the model for the next reply and save it as a draft.

    The stored transcript is replayed so follow-up instructions refine the
    previous draft.
    """
    account_id = reader.resolve_account(account)
    email = _require_email(reader, email_id, account_id)
    record = store.find_by_email_id(email_id, account_id)
    history = record.transcript if record else []

    try:
        composed = composer.generate_reply(email, request.instruction, history, account=account_id)
    except ComposerError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    dispatcher.save_draft_reply(email_id, composed.reply, composed.transcript, account_id)

    return GeneratedReplyResponse(
        account=account_id,
        reply=composed.reply,
        transcript=composed.transcript,
        message="Reply generated successfully.",
    )


@router.post("/{email_id}/send-reply", response_model=SendReplyResponse)
def send_reply(
    email_id: str,
    request: SendReplyRequest,
    account: Optional[str] = None,
    reader: MailboxReader = Depends(get_mailbox_reader),
    dispatcher: ReplyDispatcher = Depends(get_reply_dispatcher),
    signatures: SignatureService = Depends(get_signature_service),
):
    """
    Send a reply to the sender of the email.
    """
    account_id = reader.resolve_account(account)
    email = _require_email(reader, email_id, account_id)
    signature = request.signature if request.signature is not None else signatures.get(account_id)

    if not dispatcher.send_reply(email, request.reply, account_id, signature=signature):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=SEND_FAILED)

    return SendReplyResponse(status="sent", account=account_id, message="Reply sent successfully")
