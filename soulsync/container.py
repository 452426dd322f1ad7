# soulsync/container.py
"""
Service wiring

Clients are constructed once at startup and passed explicitly into the chain.
"""

import os
from dataclasses import dataclass

from qdrant_client import AsyncQdrantClient

from soulsync.config import Settings
from soulsync.chains.stream_chain import StreamingChatChain
from soulsync.services.database_service import DatabaseService
from soulsync.services.embedding_service import EmbeddingService, build_local_embeddings
from soulsync.services.llm_service import LLMService, build_llm_service
from soulsync.services.memory_service import MemoryService
from soulsync.services.sentiment_service import LexiconSentimentScorer
from soulsync.utils.logger import logger


@dataclass
class Services:
    db: DatabaseService
    scorer: LexiconSentimentScorer
    embeddings: EmbeddingService
    memory: MemoryService
    llm: LLMService
    chat_chain: StreamingChatChain

    async def start(self):
        await self.db.create_tables()
        await self.memory.ensure_collection()

    async def close(self):
        await self.chat_chain.drain()
        await self.memory.close()
        await self.db.close()


def configure_tracing(settings: Settings):
    if not settings.langsmith_tracing:
        return
    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGCHAIN_API_KEY"] = settings.langsmith_api_key or ""
    os.environ["LANGCHAIN_ENDPOINT"] = settings.langsmith_endpoint
    os.environ["LANGCHAIN_PROJECT"] = settings.langsmith_project
    logger.info(f" LangSmith tracing enabled: project={settings.langsmith_project}")


def assemble_services(
    settings: Settings,
    db: DatabaseService,
    embeddings: EmbeddingService,
    memory: MemoryService,
    llm: LLMService,
    scorer: LexiconSentimentScorer = None,
) -> Services:
    scorer = scorer or LexiconSentimentScorer()
    chat_chain = StreamingChatChain(
        db=db,
        scorer=scorer,
        embeddings=embeddings,
        memory=memory,
        llm=llm,
        memory_top_k=settings.memory_top_k,
        history_limit=settings.history_limit,
        stream_buffer_size=settings.stream_buffer_size,
        default_personality=settings.default_personality,
    )
    return Services(db, scorer, embeddings, memory, llm, chat_chain)


def build_services(settings: Settings) -> Services:
    configure_tracing(settings)

    db = DatabaseService(settings.database_url, echo=settings.debug)
    embeddings = EmbeddingService(
        build_local_embeddings(settings.embedding_model),
        settings.embedding_dimension,
    )
    memory = MemoryService(
        AsyncQdrantClient(location=settings.qdrant_url, api_key=settings.qdrant_api_key),
        settings.memory_collection,
        settings.embedding_dimension,
        snippet_max_chars=settings.memory_snippet_max_chars,
    )
    return assemble_services(settings, db, embeddings, memory, build_llm_service(settings))
