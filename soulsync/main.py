# soulsync/main.py
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from soulsync import __version__
from soulsync.api import chat, memory, mood
from soulsync.config import settings
from soulsync.container import Services, build_services
from soulsync.utils.logger import setup_logger

logger = setup_logger()


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app; pass `services` to skip constructing real clients."""
    app = FastAPI(
        title="SoulSync Chat Service",
        description="Streaming RAG chat companion with per-user memory and mood tracking",
        version=__version__,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # restrict to known origins in deployment
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Injected services are usable before startup runs
    app.state.services = services

    @app.on_event("startup")
    async def startup_event():
        logger.info(" SoulSync Chat Service starting")
        logger.info(f" Debug mode: {settings.debug}")
        if app.state.services is None:
            app.state.services = build_services(settings)
        await app.state.services.start()
        logger.info(f" Memory collection ready: {settings.memory_collection}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(" SoulSync Chat Service stopping")
        if app.state.services is not None:
            await app.state.services.close()

    app.include_router(chat.router, prefix="/api")
    app.include_router(memory.router, prefix="/api")
    app.include_router(mood.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "service": "SoulSync Chat Service",
            "version": __version__,
            "status": "running",
            "features": [
                "streaming chat replies",
                "per-user semantic memory",
                "lexicon and LLM sentiment",
            ],
        }

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "memory_collection": settings.memory_collection,
            "model": settings.llm_model,
            "embedding_model": settings.embedding_model,
        }

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "soulsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
