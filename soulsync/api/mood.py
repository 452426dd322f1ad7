from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from soulsync.api.deps import get_owner_id, get_services
from soulsync.container import Services
from soulsync.schemas.mood_schemas import MoodSummary
from soulsync.services.sentiment_service import summarize_moods
from soulsync.utils.logger import logger
from soulsync.utils.time_utils import utcnow

router = APIRouter(tags=["mood"])


@router.get("/mood/summary", response_model=MoodSummary)
async def get_mood_summary(
    days: Optional[int] = Query(None, ge=1, le=3650),
    owner_id: str = Depends(get_owner_id),
    services: Services = Depends(get_services),
):
    """Aggregate lexicon moods over the owner's messages."""
    try:
        since = utcnow() - timedelta(days=days) if days else None
        sentiments = await services.db.get_user_sentiments(owner_id, since=since)
        return MoodSummary(**summarize_moods(sentiments))
    except Exception as e:
        logger.error(f" Mood summary failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
