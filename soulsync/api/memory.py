from fastapi import APIRouter, Depends, HTTPException, Query

from soulsync.api.deps import get_owner_id, get_services
from soulsync.container import Services
from soulsync.schemas.memory_schemas import (
    MemoryDeleteResponse,
    MemorySearchResponse,
    MemoryStatsResponse,
)
from soulsync.utils.logger import logger

router = APIRouter(tags=["memory"])


@router.get("/memory/stats", response_model=MemoryStatsResponse)
async def get_memory_stats(
    owner_id: str = Depends(get_owner_id),
    services: Services = Depends(get_services),
):
    try:
        stats = await services.memory.stats(owner_id)
        db_count = await services.db.count_memory_messages(owner_id)
        return MemoryStatsResponse(**stats.model_dump(), db_count=db_count)
    except Exception as e:
        logger.error(f" Memory stats failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/memory/search", response_model=MemorySearchResponse)
async def search_memories(
    query: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
    owner_id: str = Depends(get_owner_id),
    services: Services = Depends(get_services),
):
    try:
        vector = await services.embeddings.embed(query)
        memories = await services.memory.query(owner_id, vector, limit)
        return MemorySearchResponse(query=query, count=len(memories), memories=memories)
    except Exception as e:
        logger.error(f" Memory search failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/memory", response_model=MemoryDeleteResponse)
async def delete_all_memories(
    owner_id: str = Depends(get_owner_id),
    services: Services = Depends(get_services),
):
    try:
        logger.info(f" Memory delete request: owner={owner_id}")
        deleted = await services.memory.delete_all(owner_id)
        cleared = await services.db.clear_vector_refs(owner_id)
        return MemoryDeleteResponse(
            message="All memories deleted successfully",
            vector_db_deleted=deleted,
            messages_cleared=cleared,
        )
    except Exception as e:
        logger.error(f" Memory delete failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
