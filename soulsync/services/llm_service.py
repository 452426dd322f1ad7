# soulsync/services/llm_service.py
"""
Chat-completion client

`stream_complete` yields text fragments from the reply model. `classify_sentiment`
is a one-shot call whose answer must parse as `{"mood": <label>}`; anything else
is reported as None.
"""

from typing import AsyncIterator, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_openai import ChatOpenAI
from langsmith import traceable
from pydantic import ValidationError

from soulsync.config import Settings
from soulsync.prompts.chat_prompt import ChatPrompts
from soulsync.schemas.sentiment_schemas import Mood, SentimentLabel
from soulsync.utils.logger import logger

_ROLE_MAP = {"user": "human", "assistant": "ai"}


def to_prompt_history(history: List[Dict]) -> List[tuple]:
    return [
        (_ROLE_MAP[m["role"]], m["content"])
        for m in history
        if m.get("role") in _ROLE_MAP and m.get("content")
    ]


class LLMService:
    def __init__(self, chat_llm: BaseChatModel, sentiment_llm: Optional[BaseChatModel] = None):
        self.chat_llm = chat_llm
        self.sentiment_llm = sentiment_llm or chat_llm

        self.stream_chain = ChatPromptTemplate.from_messages([
            ("system", "{system_prompt}"),
            MessagesPlaceholder("history"),
        ]) | self.chat_llm

        self.classify_chain = ChatPromptTemplate.from_messages([
            ("system", ChatPrompts.SENTIMENT_CLASSIFICATION),
            ("human", "{text}"),
        ]) | self.sentiment_llm | StrOutputParser()

        logger.info(" LLMService initialized")

    async def stream_complete(self, history: List[Dict], system_prompt: str) -> AsyncIterator[str]:
        """Lazy, finite, not restartable. Closing it closes the HTTP stream."""
        stream = self.stream_chain.astream({
            "system_prompt": system_prompt,
            "history": to_prompt_history(history),
        })
        try:
            async for chunk in stream:
                content = chunk.content if isinstance(chunk.content, str) else ""
                if content:
                    yield content
        finally:
            await stream.aclose()

    @traceable(name="classify_sentiment")
    async def classify_sentiment(self, text: str) -> Optional[Mood]:
        if not text or not text.strip():
            return None
        try:
            raw = await self.classify_chain.ainvoke({"text": text})
        except Exception as e:
            logger.warning(f" Sentiment classification request failed: {e}")
            return None

        try:
            return SentimentLabel.model_validate_json(raw.strip()).mood
        except ValidationError:
            logger.warning(f" Sentiment classification returned an invalid payload: {raw[:100]!r}")
            return None


def build_llm_service(settings: Settings) -> LLMService:
    chat_llm = ChatOpenAI(
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,
        streaming=True,
    )
    sentiment_llm = ChatOpenAI(
        model=settings.sentiment_model,
        temperature=0,
        max_tokens=20,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,
    )
    return LLMService(chat_llm, sentiment_llm)
