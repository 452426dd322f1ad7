"""
Conversation model
"""

import uuid
from sqlalchemy import Column, String, DateTime

from .base import Base
from soulsync.utils.time_utils import utcnow

DEFAULT_TITLE = "New Conversation"


class Conversation(Base):
    __tablename__ = "conversation_TB"

    CONVERSATION_ID = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    OWNER_ID = Column(String(64), nullable=False, index=True)
    TITLE = Column(String(200), nullable=False, default=DEFAULT_TITLE)
    CREATED_AT = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    UPDATED_AT = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "conversation_id": self.CONVERSATION_ID,
            "owner_id": self.OWNER_ID,
            "title": self.TITLE,
            "created_at": self.CREATED_AT.isoformat() if self.CREATED_AT else None,
            "updated_at": self.UPDATED_AT.isoformat() if self.UPDATED_AT else None,
        }
