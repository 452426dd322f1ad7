"""Shared test fixtures."""

import json
from typing import Dict, List, Optional

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from qdrant_client import AsyncQdrantClient

from soulsync.config import Settings
from soulsync.container import assemble_services
from soulsync.schemas.sentiment_schemas import Mood
from soulsync.services.database_service import DatabaseService
from soulsync.services.embedding_service import EmbeddingService
from soulsync.services.memory_service import MemoryService

DIMENSION = 384


class FakeLLM:
    """Stands in for LLMService; records the order of calls it receives."""

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        mood: Optional[Mood] = Mood.NEUTRAL,
        fail_after: Optional[int] = None,
    ):
        self.fragments = fragments if fragments is not None else ["Hello", " there", ", friend."]
        self.mood = mood
        self.fail_after = fail_after
        self.calls: List[str] = []
        self.system_prompts: List[str] = []
        self.histories: List[List[Dict]] = []
        self.stream_closed = False

    async def stream_complete(self, history, system_prompt):
        self.calls.append("stream")
        self.system_prompts.append(system_prompt)
        self.histories.append(history)
        try:
            emitted = self.fragments if self.fail_after is None else self.fragments[: self.fail_after]
            for fragment in emitted:
                yield fragment
            if self.fail_after is not None:
                raise RuntimeError("upstream connection reset")
        finally:
            self.stream_closed = True

    async def classify_sentiment(self, text):
        self.calls.append("classify")
        return self.mood


class FailingEmbeddings(Embeddings):
    def embed_documents(self, texts):
        raise RuntimeError("embedding model unavailable")

    def embed_query(self, text):
        raise RuntimeError("embedding model unavailable")


def parse_frames(frames: List[str]) -> List[Dict]:
    """Decode `data: <json>\\n\\n` frames."""
    payloads = []
    for frame in frames:
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        payloads.append(json.loads(frame[len("data: "):].strip()))
    return payloads


async def collect(turn) -> List[Dict]:
    return parse_frames([frame async for frame in turn.stream()])


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'soulsync-test.db'}",
        qdrant_url=":memory:",
        memory_collection="test_memories",
        langsmith_tracing=False,
    )


@pytest.fixture
async def db(app_settings):
    service = DatabaseService(app_settings.database_url)
    await service.create_tables()
    yield service
    await service.close()


@pytest.fixture
async def memory(app_settings):
    service = MemoryService(
        AsyncQdrantClient(location=":memory:"),
        app_settings.memory_collection,
        DIMENSION,
    )
    await service.ensure_collection()
    yield service
    await service.close()


@pytest.fixture
def embeddings() -> EmbeddingService:
    return EmbeddingService(DeterministicFakeEmbedding(size=DIMENSION), DIMENSION)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def services(app_settings, db, embeddings, memory, fake_llm):
    return assemble_services(app_settings, db, embeddings, memory, fake_llm)


@pytest.fixture
def chain(services):
    return services.chat_chain
