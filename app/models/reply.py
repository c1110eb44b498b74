from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.email import Transcript


class ReplyRecord(BaseModel):
    """Read-only snapshot of a persisted draft or sent reply"""
    model_config = ConfigDict(frozen=True)

    email_id: str
    account: Optional[str] = None
    latest_reply: Optional[str] = None
    transcript: Transcript = Field(default_factory=list)
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_sent(self) -> bool:
        return self.sent_at is not None
