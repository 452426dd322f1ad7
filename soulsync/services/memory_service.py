# soulsync/services/memory_service.py
"""
Long-term memory on Qdrant

Every read, count and delete carries an `owner_id` filter that Qdrant evaluates
server-side. Nothing here filters results after the fact.
"""

import uuid
from typing import Dict, List, Optional, Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Direction,
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HasIdCondition,
    MatchValue,
    OrderBy,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from soulsync.schemas.memory_schemas import MemoryStats, RetrievedMemory
from soulsync.utils.logger import logger
from soulsync.utils.time_utils import utcnow

VECTOR_ID_NAMESPACE = uuid.UUID("5f0c7d1e-8d0b-4a63-9a54-3f1f6f4f5a10")


def make_vector_id(owner_id: str, message_id: str) -> str:
    """Qdrant point ids must be UUIDs; derive one from owner and message."""
    return str(uuid.uuid5(VECTOR_ID_NAMESPACE, f"{owner_id}-{message_id}"))


def owner_filter(owner_id: str, exclude_ids: Optional[Sequence[str]] = None) -> Filter:
    if not owner_id:
        raise ValueError("owner_id is required for every memory query")

    must_not = [HasIdCondition(has_id=list(exclude_ids))] if exclude_ids else None
    return Filter(
        must=[FieldCondition(key="owner_id", match=MatchValue(value=owner_id))],
        must_not=must_not,
    )


class MemoryService:
    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        dimension: int,
        snippet_max_chars: int = 1000,
    ):
        self.client = client
        self.collection_name = collection_name
        self.dimension = dimension
        self.snippet_max_chars = snippet_max_chars

    async def ensure_collection(self):
        if await self.client.collection_exists(self.collection_name):
            return
        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.dimension, distance=Distance.COSINE),
        )
        await self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name="owner_id",
            field_schema=PayloadSchemaType.KEYWORD,
        )
        await self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name="created_ts",
            field_schema=PayloadSchemaType.FLOAT,
        )
        logger.info(f" Created memory collection: {self.collection_name} (dim={self.dimension})")

    async def upsert(
        self,
        vector_id: str,
        owner_id: str,
        conversation_id: str,
        text: str,
        vector: List[float],
        role: str,
    ) -> str:
        if not owner_id:
            raise ValueError("owner_id is required to store a memory")

        now = utcnow()
        await self.client.upsert(
            collection_name=self.collection_name,
            points=[
                PointStruct(
                    id=vector_id,
                    vector=vector,
                    payload={
                        "owner_id": owner_id,
                        "conversation_id": conversation_id,
                        "content": text[: self.snippet_max_chars],
                        "role": role,
                        "created_at": now.isoformat(),
                        "created_ts": now.timestamp(),
                    },
                )
            ],
        )
        logger.debug(f" Memory stored: vector_id={vector_id}, owner={owner_id}")
        return vector_id

    async def query(
        self,
        owner_id: str,
        query_vector: List[float],
        top_k: int = 3,
        exclude_ids: Optional[Sequence[str]] = None,
    ) -> List[RetrievedMemory]:
        """Top-k by descending similarity; any backend error yields []."""
        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                query_filter=owner_filter(owner_id, exclude_ids),
                limit=top_k,
                with_payload=True,
            )
        except Exception as e:
            logger.warning(f" Memory query failed, continuing without memories: {e}")
            return []

        memories = []
        for point in response.points:
            payload = point.payload or {}
            memories.append(RetrievedMemory(
                content=payload.get("content", ""),
                role=payload.get("role", "user"),
                timestamp=payload.get("created_at"),
                score=point.score,
            ))
        return sorted(memories, key=lambda m: -m.score)

    async def delete_all(self, owner_id: str) -> int:
        flt = owner_filter(owner_id)
        count = await self.client.count(
            collection_name=self.collection_name,
            count_filter=flt,
            exact=True,
        )
        if count.count:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(filter=flt),
            )
        logger.info(f" Deleted {count.count} memories for owner={owner_id}")
        return count.count

    async def stats(self, owner_id: str) -> MemoryStats:
        flt = owner_filter(owner_id)
        count = await self.client.count(
            collection_name=self.collection_name,
            count_filter=flt,
            exact=True,
        )
        if not count.count:
            return MemoryStats()

        return MemoryStats(
            total_memories=count.count,
            oldest_timestamp=await self._edge_timestamp(flt, Direction.ASC),
            newest_timestamp=await self._edge_timestamp(flt, Direction.DESC),
        )

    async def _edge_timestamp(self, flt: Filter, direction: Direction) -> Optional[str]:
        """First point by `created_ts` in the given direction; served by the payload index."""
        points, _ = await self.client.scroll(
            collection_name=self.collection_name,
            scroll_filter=flt,
            limit=1,
            order_by=OrderBy(key="created_ts", direction=direction),
            with_payload=["created_at"],
            with_vectors=False,
        )
        if not points:
            return None
        return (points[0].payload or {}).get("created_at")

    async def close(self):
        await self.client.close()


def memories_to_context(memories: List[RetrievedMemory]) -> Optional[List[Dict]]:
    """Snapshot of the memories actually used, stored on the assistant message."""
    if not memories:
        return None
    return [
        {"content": m.content, "score": m.score, "timestamp": m.timestamp}
        for m in memories
    ]
