# soulsync/schemas/__init__.py
"""
Schema package
Only the commonly shared schemas are re-exported here
"""

from .sentiment_schemas import Mood, SentimentResult, SentimentLabel
from .memory_schemas import RetrievedMemory, MemoryStats

# Import the rest from their modules directly
# from .chat_schemas import StreamMessageRequest
# from .mood_schemas import MoodSummary
