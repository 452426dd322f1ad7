# soulsync/api/chat.py
"""
Streaming chat API
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from soulsync.api.deps import get_owner_id, get_services
from soulsync.chains.stream_chain import ConversationNotFoundError
from soulsync.container import Services
from soulsync.schemas.chat_schemas import StreamMessageRequest
from soulsync.utils.logger import logger
from soulsync.utils.sse import SSE_HEADERS

router = APIRouter(tags=["chat"])


@router.post("/chats/{chat_id}/stream")
async def stream_message(
    chat_id: str,
    request: StreamMessageRequest,
    owner_id: str = Depends(get_owner_id),
    services: Services = Depends(get_services),
):
    """Send a user turn; replies as text/event-stream."""
    try:
        logger.info(f" Stream request: chat_id={chat_id}, owner={owner_id}")
        turn = await services.chat_chain.start_turn(
            conversation_id=chat_id,
            owner_id=owner_id,
            content=request.content,
            personality=request.personality,
        )
    except ConversationNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Chat not found"})
    except Exception as e:
        logger.error(f" Stream setup failed: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to process message"})

    # Reconciliation is scheduled only once the response body is fully sent
    return StreamingResponse(
        turn.stream(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(turn.schedule_reconciliation),
    )
