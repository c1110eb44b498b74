"""
Database models.

One table, ``email_replies``: the latest draft or sent reply per
(email id, account) together with the conversation held with the model.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class EmailReply(Base):
    __tablename__ = "email_replies"
    __table_args__ = (
        UniqueConstraint("email_id", "account", name="uq_email_replies_email_account"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Identifier of the email on the IMAP server"
    )
    account: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    latest_ai_reply: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chat_history: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(
        JSON, nullable=True, comment="Ordered list of {role, content} turns"
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<EmailReply {self.email_id} account={self.account} sent={self.sent_at is not None}>"
