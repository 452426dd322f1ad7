"""
Server-Sent Events framing
"""

import json
from typing import Any, Dict

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}


def sse_event(payload: Dict[str, Any]) -> str:
    """Encode one `data: <json>` frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def chunk_event(fragment: str) -> str:
    return sse_event({"chunk": fragment, "done": False})


def done_event(user_message_id: str, assistant_message_id: str, chat_title: str) -> str:
    return sse_event({
        "done": True,
        "userMessageId": user_message_id,
        "assistantMessageId": assistant_message_id,
        "chatTitle": chat_title,
    })


def error_event(message: str) -> str:
    return sse_event({"error": message, "done": True})
