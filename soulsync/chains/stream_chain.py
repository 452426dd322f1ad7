# soulsync/chains/stream_chain.py
"""
Streaming chat pipeline

One user turn:
  lexicon sentiment -> persist user message -> embed + upsert (best effort)
  -> owner-scoped memory query (best effort) -> system prompt
  -> stream reply fragments to the client -> persist reply, update title
  -> terminal frame, close -> background LLM sentiment reconciliation
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Set, Tuple

from soulsync.chains.token_channel import TokenChannel
from soulsync.models import DEFAULT_TITLE
from soulsync.prompts.chat_prompt import build_system_prompt
from soulsync.schemas.memory_schemas import RetrievedMemory
from soulsync.schemas.sentiment_schemas import Mood, SentimentResult
from soulsync.services.database_service import DatabaseService
from soulsync.services.embedding_service import EmbeddingService
from soulsync.services.llm_service import LLMService
from soulsync.services.memory_service import MemoryService, make_vector_id, memories_to_context
from soulsync.services.sentiment_service import LexiconSentimentScorer, mood_deviation
from soulsync.utils.logger import logger
from soulsync.utils.sse import chunk_event, done_event, error_event

TITLE_MAX_CHARS = 50
DEVIATION_REVIEW_THRESHOLD = 0.2
STREAM_FAILURE_MESSAGE = "Failed to generate response"


class TurnError(Exception):
    """Fatal for the current turn; raised before the stream opens."""


class ConversationNotFoundError(TurnError):
    pass


class MessagePersistenceError(TurnError):
    pass


def make_title(content: str) -> str:
    title = content[:TITLE_MAX_CHARS]
    return title + "..." if len(content) > TITLE_MAX_CHARS else title


class ChatTurn:
    """State of one user turn after the pre-stream steps succeeded."""

    def __init__(
        self,
        chain: "StreamingChatChain",
        conversation: Dict,
        owner_id: str,
        user_message: Dict,
        sentiment: SentimentResult,
        memories: List[RetrievedMemory],
        history: List[Dict],
        system_prompt: str,
    ):
        self.chain = chain
        self.conversation = conversation
        self.owner_id = owner_id
        self.user_message = user_message
        self.sentiment = sentiment
        self.memories = memories
        self.history = history
        self.system_prompt = system_prompt

        self.assistant_message: Optional[Dict] = None
        self.chat_title: Optional[str] = None
        self.streamed_text = ""
        self.closed = False

    @property
    def conversation_id(self) -> str:
        return self.conversation["conversation_id"]

    @property
    def vector_ref(self) -> Optional[str]:
        return self.user_message.get("vector_ref")

    async def stream(self) -> AsyncIterator[str]:
        """SSE frames: chunks in arrival order, then exactly one terminal frame."""
        fragments: List[str] = []
        stream_error: Optional[Exception] = None
        source = self.chain.llm.stream_complete(self.history, self.system_prompt)

        try:
            async with TokenChannel(source, maxsize=self.chain.stream_buffer_size) as channel:
                try:
                    async for fragment in channel:
                        fragments.append(fragment)
                        yield chunk_event(fragment)
                except Exception as e:
                    logger.error(f" Completion stream failed after {len(fragments)} fragments: {e}")
                    stream_error = e

            self.streamed_text = "".join(fragments)
            if stream_error is not None and not self.streamed_text:
                yield error_event(STREAM_FAILURE_MESSAGE)
                return

            await self._complete()
            yield done_event(
                self.user_message["message_id"],
                self.assistant_message["message_id"],
                self.chat_title,
            )

        except (asyncio.CancelledError, GeneratorExit):
            logger.info(
                f" Client disconnected mid-stream: conversation={self.conversation_id}, "
                f"discarding {len(fragments)} fragments"
            )
            raise
        except Exception as e:
            logger.error(f" Streaming turn failed: {e}")
            yield error_event(STREAM_FAILURE_MESSAGE)
        finally:
            self.closed = True

    async def _complete(self):
        repo = self.chain.db
        self.assistant_message = await repo.create_message(
            self.conversation_id,
            "assistant",
            self.streamed_text,
            retrieved_context=memories_to_context(self.memories),
        )

        title = None
        if self.conversation["title"] == DEFAULT_TITLE:
            title = make_title(self.user_message["content"])
        self.chat_title = await repo.update_conversation_title_and_timestamp(
            self.conversation_id, title=title
        )

    async def schedule_reconciliation(self):
        """Hand the LLM sentiment check to an unawaited background task."""
        self.chain.spawn(self.chain.reconcile_sentiment(
            self.user_message["message_id"],
            self.user_message["content"],
            self.sentiment.mood,
        ))


class StreamingChatChain:
    def __init__(
        self,
        db: DatabaseService,
        scorer: LexiconSentimentScorer,
        embeddings: EmbeddingService,
        memory: MemoryService,
        llm: LLMService,
        memory_top_k: int = 3,
        history_limit: int = 20,
        stream_buffer_size: int = 32,
        default_personality: str = "reflective",
    ):
        self.db = db
        self.scorer = scorer
        self.embeddings = embeddings
        self.memory = memory
        self.llm = llm
        self.memory_top_k = memory_top_k
        self.history_limit = history_limit
        self.stream_buffer_size = stream_buffer_size
        self.default_personality = default_personality
        self._background_tasks: Set[asyncio.Task] = set()

    async def start_turn(
        self,
        conversation_id: str,
        owner_id: str,
        content: str,
        personality: Optional[str] = None,
    ) -> ChatTurn:
        conversation = await self.db.get_conversation(conversation_id, owner_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        sentiment = self.scorer.score(content)

        try:
            user_message = await self.db.create_message(
                conversation_id, "user", content, sentiment=sentiment
            )
        except Exception as e:
            logger.error(f" Could not persist user message: {e}")
            raise MessagePersistenceError(str(e)) from e

        vector_id = make_vector_id(owner_id, user_message["message_id"])
        vector, ok = await self._remember(user_message, owner_id, vector_id)
        if ok:
            user_message["vector_ref"] = vector_id

        # No vector, no retrieval
        memories: List[RetrievedMemory] = []
        if vector is not None:
            memories, ok = await self._recall(owner_id, vector, exclude=[vector_id])
        logger.info(f" Retrieved {len(memories)} relevant memories")

        system_prompt = build_system_prompt(personality or self.default_personality, memories)
        history = await self.db.get_recent_history(conversation_id, self.history_limit)

        return ChatTurn(
            chain=self,
            conversation=conversation,
            owner_id=owner_id,
            user_message=user_message,
            sentiment=sentiment,
            memories=memories,
            history=history,
            system_prompt=system_prompt,
        )

    async def _remember(
        self, user_message: Dict, owner_id: str, vector_id: str
    ) -> Tuple[Optional[List[float]], bool]:
        """Embed and upsert. Returns (vector, stored); the vector may exist even if the upsert failed."""
        try:
            vector = await self.embeddings.embed(user_message["content"])
        except Exception as e:
            logger.warning(f" Embedding failed, continuing without memory: {e}")
            return None, False

        try:
            await self.memory.upsert(
                vector_id,
                owner_id,
                user_message["conversation_id"],
                user_message["content"],
                vector,
                "user",
            )
            await self.db.update_message(user_message["message_id"], vector_ref=vector_id)
        except Exception as e:
            logger.warning(f" Failed to store memory embedding: {e}")
            return vector, False
        return vector, True

    async def _recall(
        self, owner_id: str, vector: List[float], exclude: List[str]
    ) -> Tuple[List[RetrievedMemory], bool]:
        try:
            memories = await self.memory.query(
                owner_id,
                vector,
                self.memory_top_k,
                exclude_ids=exclude,
            )
        except Exception as e:
            logger.warning(f" Failed to retrieve memories: {e}")
            return [], False
        return memories, True

    async def reconcile_sentiment(self, message_id: str, content: str, lexicon_mood: Mood):
        try:
            llm_mood = await self.llm.classify_sentiment(content)
            if llm_mood is None:
                logger.info(f" No LLM sentiment for message {message_id}; left unreconciled")
                return

            deviation = mood_deviation(lexicon_mood, llm_mood)
            await self.db.update_message(
                message_id,
                sentiment_llm=llm_mood.value,
                sentiment_deviation=deviation,
            )
            if deviation > DEVIATION_REVIEW_THRESHOLD:
                logger.warning(
                    f" Sentiment disagreement flagged for review: message={message_id}, "
                    f"lexicon={Mood(lexicon_mood).value}, llm={llm_mood.value}, deviation={deviation:.2f}"
                )
        except Exception as e:
            logger.error(f" Sentiment reconciliation failed for message {message_id}: {e}")

    def spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def drain(self):
        """Wait for pending background work (shutdown and tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
