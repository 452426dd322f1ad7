# soulsync/schemas/chat_schemas.py
"""
Chat stream schemas
"""

from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional

MAX_MESSAGE_LENGTH = 4000


class StreamMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    personality: Optional[Literal["reflective", "supportive", "creative"]] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value
