from typing import List, Optional, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from loguru import logger

from app.models.email import ComposedReply, ConversationTurn, EmailDetail, Transcript
from app.utils.audit_logger import audit_logger
from app.utils.exceptions import ComposerError

DEFAULT_SYSTEM_PROMPT = (
    "You are an email assistant that helps the user craft replies. The user will provide you with "
    "an email to respond to and specific instructions on how to craft the reply. Generate a "
    "professional and appropriate response according to the user's instructions."
)

_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def email_context(email: EmailDetail) -> str:
    """The opening user turn describing the email being replied to."""
    return (
        "I need to reply to this email:\n\n"
        f"From: {email.sender}\n"
        f"Subject: {email.subject}\n"
        f"Date: {email.date or 'unknown'}\n\n"
        f"{email.body}"
    )


def to_langchain_messages(transcript: Sequence[ConversationTurn]) -> List[BaseMessage]:
    return [_MESSAGE_TYPES[turn.role](content=turn.content) for turn in transcript]


def _response_text(content) -> str:
    # Gemini may answer with a list of content parts
    if isinstance(content, str):
        return content.strip()
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type", "text") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts).strip()


class ReplyComposer:
    """
    Drafts replies through a chat model, replaying the whole transcript on
    every call.
    """

    def __init__(self, chat_model: BaseChatModel, system_prompt: str = DEFAULT_SYSTEM_PROMPT):
        self.chat_model = chat_model
        self.system_prompt = system_prompt

    def generate_reply(
        self,
        email: EmailDetail,
        instruction: str,
        transcript: Optional[Transcript] = None,
        account: Optional[str] = None,
    ) -> ComposedReply:
        """
        Produce the next assistant reply.

        Args:
            email: The email being replied to
            instruction: The user's free-text instruction for this turn
            transcript: Prior turns; an empty transcript starts a new conversation
            account: Logical account, only used for the audit trail

        Returns:
            The reply text and a new transcript with this turn appended

        Raises:
            ComposerError: If the model call fails; the caller's transcript is untouched
        """
        turns: List[ConversationTurn] = list(transcript or [])
        if not turns:
            turns.append(ConversationTurn(role="system", content=self.system_prompt))
            turns.append(ConversationTurn(role="user", content=email_context(email)))
        turns.append(ConversationTurn(role="user", content=instruction))

        try:
            response = self.chat_model.invoke(to_langchain_messages(turns))
        except Exception as e:
            logger.error("Reply generation failed for email {}: {}", email.id, e)
            audit_logger.log(
                action="email_reply_generated",
                resource_type="email",
                resource_id=email.id,
                status="failure",
                account=account,
                details={"error": str(e)},
            )
            raise ComposerError(f"Failed to generate reply: {e}") from e

        reply = _response_text(response.content)
        turns.append(ConversationTurn(role="assistant", content=reply))

        audit_logger.log(
            action="email_reply_generated",
            resource_type="email",
            resource_id=email.id,
            status="success",
            account=account,
            details={"turns": len(turns)},
        )
        return ComposedReply(reply=reply, transcript=turns)
