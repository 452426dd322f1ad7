# soulsync/schemas/mood_schemas.py
from pydantic import BaseModel
from typing import Dict


class MoodSummary(BaseModel):
    total_messages: int = 0
    average_score: float = 0.0
    average_comparative: float = 0.0
    dominant_mood: str = "neutral"
    dominant_emoji: str = ""
    dominant_color: str = ""
    mood_distribution: Dict[str, int] = {}
