# soulsync/services/database_service.py
"""
Conversation and message persistence
SQLAlchemy-based async DB access

Failures are logged and re-raised: the chat pipeline treats persistence errors
as fatal for the current turn.
"""

from typing import Dict, List, Optional
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.future import select
from sqlalchemy.exc import SQLAlchemyError

from soulsync.models import Base, Conversation, Message, DEFAULT_TITLE, build_engine, build_session_factory
from soulsync.schemas.sentiment_schemas import SentimentResult
from soulsync.utils.logger import logger
from soulsync.utils.time_utils import utcnow

UPDATABLE_MESSAGE_FIELDS = {
    "vector_ref": "VECTOR_REF",
    "sentiment_llm": "SENTIMENT_LLM",
    "sentiment_deviation": "SENTIMENT_DEVIATION",
}


class DatabaseService:
    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = build_engine(database_url, echo=echo)
        self.async_session = build_session_factory(self.engine)
        logger.info(" DatabaseService initialized")

    async def create_tables(self):
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info(" Database tables created")
        except Exception as e:
            logger.error(f" Table creation failed: {e}")
            raise

    async def create_conversation(self, owner_id: str, title: str = DEFAULT_TITLE) -> Dict:
        try:
            async with self.async_session() as session:
                conversation = Conversation(OWNER_ID=owner_id, TITLE=title)
                session.add(conversation)
                await session.commit()
                return conversation.to_dict()
        except SQLAlchemyError as e:
            logger.error(f" Conversation creation failed: {e}")
            raise

    async def get_conversation(self, conversation_id: str, owner_id: str) -> Optional[Dict]:
        try:
            async with self.async_session() as session:
                query = select(Conversation).where(
                    Conversation.CONVERSATION_ID == conversation_id,
                    Conversation.OWNER_ID == owner_id,
                )
                result = await session.execute(query)
                conversation = result.scalar_one_or_none()
                return conversation.to_dict() if conversation else None
        except SQLAlchemyError as e:
            logger.error(f" Conversation lookup failed: {e}")
            raise

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        sentiment: Optional[SentimentResult] = None,
        retrieved_context: Optional[List[Dict]] = None,
    ) -> Dict:
        try:
            async with self.async_session() as session:
                message = Message(
                    CONVERSATION_ID=conversation_id,
                    ROLE=role,
                    CONTENT=content,
                    RETRIEVED_CONTEXT=retrieved_context,
                )
                if sentiment is not None:
                    message.SENTIMENT_SCORE = sentiment.score
                    message.SENTIMENT_COMPARATIVE = sentiment.comparative
                    message.SENTIMENT_MOOD = sentiment.mood.value
                    message.SENTIMENT_CONFIDENCE = sentiment.confidence
                session.add(message)
                await session.commit()
                logger.debug(f" Message saved: role={role}, id={message.MESSAGE_ID}")
                return message.to_dict()
        except SQLAlchemyError as e:
            logger.error(f" Message save failed: {e}")
            raise

    async def update_message(self, message_id: str, **fields) -> None:
        unknown = set(fields) - set(UPDATABLE_MESSAGE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        values = {UPDATABLE_MESSAGE_FIELDS[k]: v for k, v in fields.items()}
        try:
            async with self.async_session() as session:
                await session.execute(
                    update(Message).where(Message.MESSAGE_ID == message_id).values(**values)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f" Message update failed: {e}")
            raise

    async def get_message(self, message_id: str) -> Optional[Dict]:
        try:
            async with self.async_session() as session:
                result = await session.execute(select(Message).where(Message.MESSAGE_ID == message_id))
                message = result.scalar_one_or_none()
                return message.to_dict() if message else None
        except SQLAlchemyError as e:
            logger.error(f" Message lookup failed: {e}")
            raise

    async def get_recent_history(self, conversation_id: str, limit: int = 20) -> List[Dict]:
        """Newest `limit` messages, returned oldest first."""
        try:
            async with self.async_session() as session:
                query = select(Message.ROLE, Message.CONTENT).where(
                    Message.CONVERSATION_ID == conversation_id
                ).order_by(Message.CREATED_AT.desc()).limit(limit)
                result = await session.execute(query)
                rows = result.all()
                return [{"role": role, "content": content} for role, content in reversed(rows)]
        except SQLAlchemyError as e:
            logger.error(f" History lookup failed: {e}")
            raise

    async def update_conversation_title_and_timestamp(
        self, conversation_id: str, title: Optional[str] = None
    ) -> str:
        try:
            async with self.async_session() as session:
                result = await session.execute(
                    select(Conversation).where(Conversation.CONVERSATION_ID == conversation_id)
                )
                conversation = result.scalar_one()
                if title is not None:
                    conversation.TITLE = title
                conversation.UPDATED_AT = utcnow()
                await session.commit()
                return conversation.TITLE
        except SQLAlchemyError as e:
            logger.error(f" Conversation update failed: {e}")
            raise

    def _owned_conversations(self, owner_id: str):
        return select(Conversation.CONVERSATION_ID).where(Conversation.OWNER_ID == owner_id)

    async def count_memory_messages(self, owner_id: str) -> int:
        async with self.async_session() as session:
            query = select(func.count(Message.MESSAGE_ID)).where(
                Message.CONVERSATION_ID.in_(self._owned_conversations(owner_id)),
                Message.VECTOR_REF.is_not(None),
            )
            return (await session.execute(query)).scalar_one()

    async def clear_vector_refs(self, owner_id: str) -> int:
        try:
            async with self.async_session() as session:
                result = await session.execute(
                    update(Message).where(
                        Message.CONVERSATION_ID.in_(self._owned_conversations(owner_id)),
                        Message.VECTOR_REF.is_not(None),
                    ).values(VECTOR_REF=None).execution_options(synchronize_session=False)
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f" Clearing vector references failed: {e}")
            raise

    async def get_user_sentiments(self, owner_id: str, since: Optional[datetime] = None) -> List[Dict]:
        async with self.async_session() as session:
            query = select(
                Message.SENTIMENT_SCORE, Message.SENTIMENT_COMPARATIVE, Message.SENTIMENT_MOOD
            ).where(
                Message.CONVERSATION_ID.in_(self._owned_conversations(owner_id)),
                Message.ROLE == "user",
                Message.SENTIMENT_MOOD.is_not(None),
            )
            if since is not None:
                query = query.where(Message.CREATED_AT >= since)
            rows = (await session.execute(query)).all()
            return [
                {"score": score, "comparative": comparative, "mood": mood}
                for score, comparative, mood in rows
            ]

    async def close(self):
        await self.engine.dispose()
        logger.info(" Database connection closed")
