"""Tests for the HTTP surface."""

import httpx
import pytest

from soulsync.main import create_app

from .conftest import parse_frames

OWNER = {"X-User-Id": "owner-a"}


@pytest.fixture
async def client(services):
    app = create_app(services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await services.chat_chain.drain()


def _frames(response: httpx.Response):
    return parse_frames([block + "\n\n" for block in response.text.split("\n\n") if block])


async def _chat(db, owner: str = "owner-a") -> str:
    return (await db.create_conversation(owner))["conversation_id"]


# -- stream ------------------------------------------------------------------


async def test_stream_returns_sse_frames(client, db, fake_llm) -> None:
    cid = await _chat(db)
    response = await client.post(f"/api/chats/{cid}/stream", json={"content": "Hello!"}, headers=OWNER)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    payloads = _frames(response)
    assert [p["chunk"] for p in payloads[:-1]] == fake_llm.fragments
    assert payloads[-1]["done"] is True
    assert payloads[-1]["chatTitle"] == "Hello!"


async def test_reconciliation_runs_after_response(client, db, services, fake_llm) -> None:
    cid = await _chat(db)
    await client.post(f"/api/chats/{cid}/stream", json={"content": "I had lunch at noon."}, headers=OWNER)
    await services.chat_chain.drain()
    assert fake_llm.calls == ["stream", "classify"]


async def test_unknown_chat_is_404(client, db) -> None:
    cid = await _chat(db, owner="owner-b")
    response = await client.post(f"/api/chats/{cid}/stream", json={"content": "hi"}, headers=OWNER)
    assert response.status_code == 404
    assert response.json() == {"error": "Chat not found"}


async def test_setup_failure_is_500(client, db, services, monkeypatch) -> None:
    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(services.chat_chain, "start_turn", broken)
    cid = await _chat(db)
    response = await client.post(f"/api/chats/{cid}/stream", json={"content": "hi"}, headers=OWNER)
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process message"}


async def test_missing_identity_is_401(client, db) -> None:
    cid = await _chat(db)
    response = await client.post(f"/api/chats/{cid}/stream", json={"content": "hi"})
    assert response.status_code == 401


@pytest.mark.parametrize("content", ["", "   ", "x" * 4001])
async def test_invalid_content_is_rejected(client, db, content) -> None:
    cid = await _chat(db)
    response = await client.post(f"/api/chats/{cid}/stream", json={"content": content}, headers=OWNER)
    assert response.status_code == 422


# -- memory ------------------------------------------------------------------


async def test_memory_stats_search_and_delete(client, db) -> None:
    cid = await _chat(db)
    await client.post(f"/api/chats/{cid}/stream", json={"content": "I live in Paris"}, headers=OWNER)

    stats = (await client.get("/api/memory/stats", headers=OWNER)).json()
    assert stats["total_memories"] == 1
    assert stats["db_count"] == 1

    search = (await client.get("/api/memory/search", params={"query": "I live in Paris"}, headers=OWNER)).json()
    assert search["count"] == 1
    assert search["memories"][0]["content"] == "I live in Paris"

    other = (await client.get("/api/memory/search", params={"query": "I live in Paris"}, headers={"X-User-Id": "owner-b"})).json()
    assert other["count"] == 0

    deleted = (await client.delete("/api/memory", headers=OWNER)).json()
    assert deleted["vector_db_deleted"] == 1
    assert deleted["messages_cleared"] == 1
    assert (await client.get("/api/memory/stats", headers=OWNER)).json()["total_memories"] == 0


async def test_memory_search_requires_query(client) -> None:
    response = await client.get("/api/memory/search", headers=OWNER)
    assert response.status_code == 422


# -- mood --------------------------------------------------------------------


async def test_mood_summary(client, db) -> None:
    cid = await _chat(db)
    await client.post(f"/api/chats/{cid}/stream", json={"content": "I'm so happy and excited!"}, headers=OWNER)
    await client.post(f"/api/chats/{cid}/stream", json={"content": "I had lunch at noon."}, headers=OWNER)

    summary = (await client.get("/api/mood/summary", headers=OWNER)).json()
    assert summary["total_messages"] == 2
    assert summary["mood_distribution"] == {"very_positive": 1, "neutral": 1}


async def test_mood_summary_carries_dominant_emoji_and_color(client, db) -> None:
    cid = await _chat(db)
    await client.post(f"/api/chats/{cid}/stream", json={"content": "not bad"}, headers=OWNER)

    summary = (await client.get("/api/mood/summary", headers=OWNER)).json()
    assert summary["dominant_mood"] == "very_positive"
    assert summary["dominant_emoji"] == "😊"
    assert summary["dominant_color"] == "#10b981"


# -- status ------------------------------------------------------------------


async def test_root_and_health(client) -> None:
    assert (await client.get("/")).json()["status"] == "running"
    assert (await client.get("/health")).json()["status"] == "healthy"
