# soulsync/models/__init__.py
"""
Models package
SQLAlchemy tables and engine/session factories
"""

from .base import Base, build_engine, build_session_factory
from .conversation import Conversation, DEFAULT_TITLE
from .message import Message, MOOD_VALUES

__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "Conversation",
    "DEFAULT_TITLE",
    "Message",
    "MOOD_VALUES",
]
