"""
Message model

One turn in a conversation. Lexicon sentiment is written at creation for user
messages; the LLM label and deviation arrive later from reconciliation.
"""

import uuid
from sqlalchemy import Column, String, Text, DateTime, Float, Integer, ForeignKey, JSON, Index
from sqlalchemy import Enum as SQLEnum

from .base import Base
from soulsync.utils.time_utils import utcnow

MOOD_VALUES = ("very_positive", "positive", "neutral", "negative", "very_negative")


class Message(Base):
    __tablename__ = "message_TB"

    MESSAGE_ID = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    CONVERSATION_ID = Column(
        String(36),
        ForeignKey("conversation_TB.CONVERSATION_ID", ondelete="CASCADE"),
        nullable=False,
    )
    ROLE = Column(SQLEnum("user", "assistant", name="message_role"), nullable=False)
    CONTENT = Column(Text, nullable=False)
    VECTOR_REF = Column(String(64), nullable=True, index=True)

    SENTIMENT_SCORE = Column(Float, nullable=True)
    SENTIMENT_COMPARATIVE = Column(Float, nullable=True)
    SENTIMENT_MOOD = Column(SQLEnum(*MOOD_VALUES, name="sentiment_mood"), nullable=True)
    SENTIMENT_CONFIDENCE = Column(Integer, nullable=True)

    SENTIMENT_LLM = Column(SQLEnum(*MOOD_VALUES, name="sentiment_llm"), nullable=True)
    SENTIMENT_DEVIATION = Column(Float, nullable=True)

    RETRIEVED_CONTEXT = Column(JSON, nullable=True)
    CREATED_AT = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_message_conversation_created", "CONVERSATION_ID", "CREATED_AT"),
    )

    def to_dict(self) -> dict:
        sentiment = None
        if self.SENTIMENT_MOOD is not None:
            sentiment = {
                "score": self.SENTIMENT_SCORE,
                "comparative": self.SENTIMENT_COMPARATIVE,
                "mood": self.SENTIMENT_MOOD,
                "confidence": self.SENTIMENT_CONFIDENCE,
            }
        return {
            "message_id": self.MESSAGE_ID,
            "conversation_id": self.CONVERSATION_ID,
            "role": self.ROLE,
            "content": self.CONTENT,
            "vector_ref": self.VECTOR_REF,
            "sentiment": sentiment,
            "sentiment_llm": self.SENTIMENT_LLM,
            "sentiment_deviation": self.SENTIMENT_DEVIATION,
            "retrieved_context": self.RETRIEVED_CONTEXT,
            "created_at": self.CREATED_AT.isoformat() if self.CREATED_AT else None,
        }
