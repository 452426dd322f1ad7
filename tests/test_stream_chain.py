"""Tests for the streaming chat turn pipeline."""

import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from soulsync.chains.stream_chain import (
    STREAM_FAILURE_MESSAGE,
    ConversationNotFoundError,
    MessagePersistenceError,
    StreamingChatChain,
    make_title,
)
from soulsync.schemas.sentiment_schemas import Mood
from soulsync.services.embedding_service import EmbeddingService
from soulsync.services.sentiment_service import LexiconSentimentScorer

from .conftest import DIMENSION, FailingEmbeddings, FakeLLM, collect, parse_frames


async def _new_chat(db, owner: str = "owner-a") -> str:
    return (await db.create_conversation(owner))["conversation_id"]


# -- streaming ---------------------------------------------------------------


async def test_chunks_stream_in_order_and_match_persisted_reply(chain, db, fake_llm) -> None:
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "Hi there")
    payloads = await collect(turn)

    chunks = [p["chunk"] for p in payloads if not p["done"]]
    assert chunks == fake_llm.fragments
    assert payloads[-1]["done"] is True
    assert sum(1 for p in payloads if p["done"]) == 1

    assistant = await db.get_message(payloads[-1]["assistantMessageId"])
    assert assistant["role"] == "assistant"
    assert assistant["content"] == "".join(chunks)
    assert payloads[-1]["userMessageId"] == turn.user_message["message_id"]
    assert turn.closed


async def test_history_passed_to_model_ends_with_current_message(chain, db, fake_llm) -> None:
    cid = await _new_chat(db)
    await collect(await chain.start_turn(cid, "owner-a", "first"))
    await collect(await chain.start_turn(cid, "owner-a", "second"))

    assert [m["content"] for m in fake_llm.histories[-1]] == ["first", "".join(fake_llm.fragments), "second"]


async def test_user_message_gets_lexicon_sentiment_and_vector_ref(chain, db) -> None:
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "I'm so happy and excited!")
    await collect(turn)

    stored = await db.get_message(turn.user_message["message_id"])
    assert stored["sentiment"]["mood"] == "very_positive"
    assert stored["vector_ref"] is not None


# -- titles ------------------------------------------------------------------


def test_make_title_truncates_long_content() -> None:
    assert make_title("short") == "short"
    assert make_title("a" * 60) == "a" * 50 + "..."


async def test_title_is_set_once(chain, db) -> None:
    cid = await _new_chat(db)
    first = await collect(await chain.start_turn(cid, "owner-a", "Planning a trip to the mountains next summer with my sister"))
    assert first[-1]["chatTitle"] == "Planning a trip to the mountains next summer with ..."

    second = await collect(await chain.start_turn(cid, "owner-a", "Something else entirely"))
    assert second[-1]["chatTitle"] == first[-1]["chatTitle"]
    assert (await db.get_conversation(cid, "owner-a"))["title"] == first[-1]["chatTitle"]


# -- pre-stream failures -----------------------------------------------------


async def test_foreign_conversation_is_not_found(chain, db, fake_llm) -> None:
    cid = await _new_chat(db, owner="owner-a")
    with pytest.raises(ConversationNotFoundError):
        await chain.start_turn(cid, "owner-b", "hello")
    assert fake_llm.calls == []


async def test_user_message_persistence_failure_is_fatal(chain, db, fake_llm, monkeypatch) -> None:
    cid = await _new_chat(db)

    async def broken(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(db, "create_message", broken)
    with pytest.raises(MessagePersistenceError):
        await chain.start_turn(cid, "owner-a", "hello")
    assert fake_llm.calls == []


# -- best-effort memory ------------------------------------------------------


async def test_embedding_failure_degrades_to_no_memory(db, memory, fake_llm) -> None:
    chain = StreamingChatChain(
        db=db,
        scorer=LexiconSentimentScorer(),
        embeddings=EmbeddingService(FailingEmbeddings(), DIMENSION),
        memory=memory,
        llm=fake_llm,
    )
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "Remember that I live in Paris")
    payloads = await collect(turn)

    assert payloads[-1]["done"] is True
    assert "error" not in payloads[-1]
    assert (await db.get_message(turn.user_message["message_id"]))["vector_ref"] is None
    assert turn.memories == []


async def test_memory_store_failure_keeps_turn_alive(chain, db, memory, fake_llm, monkeypatch) -> None:
    async def broken(*args, **kwargs):
        raise ConnectionError("qdrant unreachable")

    monkeypatch.setattr(memory, "upsert", broken)
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "hello")
    payloads = await collect(turn)

    assert payloads[-1]["done"] is True
    assert turn.user_message["vector_ref"] is None


async def test_related_memory_reaches_the_system_prompt(chain, db, fake_llm) -> None:
    cid = await _new_chat(db)
    await collect(await chain.start_turn(cid, "owner-a", "I love pizza"))
    turn = await chain.start_turn(cid, "owner-a", "I love pizza")
    await collect(turn)

    assert len(turn.memories) == 1
    assert "1. I love pizza" in fake_llm.system_prompts[-1]

    assistant = (await db.get_recent_history(cid, limit=1))[0]
    assert assistant["role"] == "assistant"


async def test_other_owners_memories_never_reach_the_prompt(chain, db, fake_llm) -> None:
    other = await _new_chat(db, owner="owner-b")
    await collect(await chain.start_turn(other, "owner-b", "My PIN is 1234"))

    mine = await _new_chat(db, owner="owner-a")
    turn = await chain.start_turn(mine, "owner-a", "My PIN is 1234")
    await collect(turn)

    assert turn.memories == []
    assert "1234" not in fake_llm.system_prompts[-1]
    assert "Relevant past memories" not in fake_llm.system_prompts[-1]


async def test_retrieved_context_is_stored_on_reply(chain, db) -> None:
    cid = await _new_chat(db)
    await collect(await chain.start_turn(cid, "owner-a", "I live in Paris"))
    payloads = await collect(await chain.start_turn(cid, "owner-a", "I live in Paris"))

    assistant = await db.get_message(payloads[-1]["assistantMessageId"])
    assert [c["content"] for c in assistant["retrieved_context"]] == ["I live in Paris"]


# -- completion failures -----------------------------------------------------


async def test_completion_failure_before_any_text_sends_error_frame(db, services) -> None:
    services.chat_chain.llm = FakeLLM(fail_after=0)
    cid = await _new_chat(db)
    turn = await services.chat_chain.start_turn(cid, "owner-a", "hello")
    payloads = await collect(turn)

    assert payloads == [{"error": STREAM_FAILURE_MESSAGE, "done": True}]
    history = await db.get_recent_history(cid)
    assert [m["role"] for m in history] == ["user"]


async def test_completion_failure_after_text_keeps_partial_reply(db, services) -> None:
    services.chat_chain.llm = FakeLLM(fragments=["Once", " upon", " a time"], fail_after=2)
    cid = await _new_chat(db)
    turn = await services.chat_chain.start_turn(cid, "owner-a", "tell me a story")
    payloads = await collect(turn)

    assert [p["chunk"] for p in payloads[:-1]] == ["Once", " upon"]
    assert payloads[-1]["done"] is True
    assistant = await db.get_message(payloads[-1]["assistantMessageId"])
    assert assistant["content"] == "Once upon"


async def test_client_disconnect_discards_reply(chain, db, fake_llm) -> None:
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "hello")

    frames = turn.stream()
    first = parse_frames([await frames.__anext__()])
    assert first[0]["chunk"] == fake_llm.fragments[0]
    await frames.aclose()

    assert turn.closed
    assert turn.assistant_message is None
    assert fake_llm.stream_closed
    assert [m["role"] for m in await db.get_recent_history(cid)] == ["user"]


# -- sentiment reconciliation ------------------------------------------------


async def test_reconciliation_runs_only_after_stream_closes(db, services, caplog) -> None:
    chain = services.chat_chain
    chain.llm = FakeLLM(mood=Mood.NEGATIVE)
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "I'm so happy and excited!")

    await collect(turn)
    assert chain.llm.calls == ["stream"]

    with caplog.at_level(logging.WARNING, logger="soulsync"):
        await turn.schedule_reconciliation()
        await chain.drain()

    assert chain.llm.calls == ["stream", "classify"]
    stored = await db.get_message(turn.user_message["message_id"])
    assert stored["sentiment_llm"] == "negative"
    assert stored["sentiment_deviation"] == pytest.approx(1.5)
    assert "flagged for review" in caplog.text


async def test_matching_moods_are_not_flagged(db, services, caplog) -> None:
    chain = services.chat_chain
    chain.llm = FakeLLM(mood=Mood.VERY_POSITIVE)
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "I'm so happy and excited!")
    await collect(turn)

    with caplog.at_level(logging.WARNING, logger="soulsync"):
        await turn.schedule_reconciliation()
        await chain.drain()

    stored = await db.get_message(turn.user_message["message_id"])
    assert stored["sentiment_deviation"] == 0
    assert "flagged for review" not in caplog.text


async def test_unparseable_classification_leaves_message_unreconciled(db, services) -> None:
    chain = services.chat_chain
    chain.llm = FakeLLM(mood=None)
    cid = await _new_chat(db)
    turn = await chain.start_turn(cid, "owner-a", "hello")
    await collect(turn)
    await turn.schedule_reconciliation()
    await chain.drain()

    stored = await db.get_message(turn.user_message["message_id"])
    assert stored["sentiment_llm"] is None
    assert stored["sentiment_deviation"] is None
