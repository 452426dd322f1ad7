# soulsync/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    # OpenAI-compatible completion endpoint (Groq by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.3-70b-versatile"
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 60.0

    # Second-opinion sentiment classifier
    sentiment_model: str = "llama-3.3-70b-versatile"

    # Local embedding model
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int = 384

    # Qdrant (":memory:" runs the local in-process mode)
    qdrant_url: str = ":memory:"
    qdrant_api_key: Optional[str] = None
    memory_collection: str = "soulsync_memories"
    memory_top_k: int = 3
    memory_snippet_max_chars: int = 1000

    # Relational store
    database_url: str = "sqlite+aiosqlite:///./soulsync.db"

    # Conversation
    history_limit: int = 20
    stream_buffer_size: int = 32
    default_personality: str = "reflective"

    # LangChain LangSmith tracing
    langsmith_tracing: Optional[bool] = False
    langsmith_endpoint: Optional[str] = "https://api.smith.langchain.com"
    langsmith_api_key: Optional[str] = None
    langsmith_project: Optional[str] = "soulsync"

    # App Settings
    debug: bool = False
    log_level: str = "INFO"

settings = Settings()
