from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

NO_SUBJECT = "No Subject"
UNKNOWN_ADDRESS = "Unknown"


class EmailSummary(BaseModel):
    """One inbox row; every field is a plain string or None"""
    id: str
    subject: str = NO_SUBJECT
    sender: str = UNKNOWN_ADDRESS
    date: Optional[str] = None  # ISO-8601
    message_id: str = ""


class EmailDetail(EmailSummary):
    """Model representing a single fetched email with its bodies"""
    recipient: str = UNKNOWN_ADDRESS
    body: str = ""
    html: Optional[str] = None


class ConversationTurn(BaseModel):
    """One role-tagged turn exchanged with the language model"""
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


Transcript = List[ConversationTurn]

_transcript_adapter = TypeAdapter(Transcript)


def dump_transcript(transcript: Transcript) -> str:
    """Serialize a transcript to a JSON array of {role, content} objects."""
    return _transcript_adapter.dump_json(transcript).decode("utf-8")


def load_transcript(data) -> Transcript:
    """Rebuild a transcript from JSON text or an already-decoded list."""
    if data is None or data == "":
        return []
    if isinstance(data, (str, bytes)):
        return _transcript_adapter.validate_json(data)
    return _transcript_adapter.validate_python(data)


def transcript_as_dicts(transcript: Transcript) -> List[dict]:
    return _transcript_adapter.dump_python(transcript, mode="json")


class ComposedReply(BaseModel):
    """Result of one reply-generation turn"""
    reply: str
    transcript: Transcript = Field(default_factory=list)
