# soulsync/schemas/sentiment_schemas.py
"""
Sentiment schemas shared by the lexicon scorer and the LLM classifier
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class Mood(str, Enum):
    VERY_POSITIVE = "very_positive"
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    VERY_NEGATIVE = "very_negative"


class SentimentResult(BaseModel):
    score: float = 0.0
    comparative: float = 0.0
    mood: Mood = Mood.NEUTRAL
    confidence: int = Field(default=0, ge=0, le=100)


class SentimentLabel(BaseModel):
    """The only response shape accepted from the classifier."""
    model_config = ConfigDict(extra="forbid")

    mood: Mood
