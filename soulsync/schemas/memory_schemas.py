# soulsync/schemas/memory_schemas.py
"""
Memory store schemas
"""

from pydantic import BaseModel
from typing import List, Optional


class RetrievedMemory(BaseModel):
    content: str
    role: str
    timestamp: Optional[str] = None
    score: float


class MemoryStats(BaseModel):
    total_memories: int = 0
    oldest_timestamp: Optional[str] = None
    newest_timestamp: Optional[str] = None


class MemoryStatsResponse(MemoryStats):
    db_count: int = 0


class MemorySearchResponse(BaseModel):
    query: str
    count: int
    memories: List[RetrievedMemory]


class MemoryDeleteResponse(BaseModel):
    message: str
    vector_db_deleted: int
    messages_cleared: int
