# soulsync/services/embedding_service.py
from typing import List

from langchain_core.embeddings import Embeddings

from soulsync.utils.logger import logger


class EmbeddingError(Exception):
    pass


class EmbeddingService:
    """Text -> fixed-length vector through a LangChain embeddings model."""

    def __init__(self, embeddings: Embeddings, dimension: int):
        self.embeddings = embeddings
        self.dimension = dimension

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingError("cannot embed empty text")

        try:
            vector = await self.embeddings.aembed_query(text)
        except Exception as e:
            raise EmbeddingError(f"embedding failed: {e}") from e

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"embedding dimension mismatch: expected {self.dimension}, got {len(vector)}"
            )
        logger.debug(f" Embedding generated: dim={len(vector)}")
        return [float(v) for v in vector]


def build_local_embeddings(model_name: str) -> Embeddings:
    """Local sentence-transformers model, mean-pooled and L2-normalized."""
    from langchain_huggingface import HuggingFaceEmbeddings

    logger.info(f" Loading local embedding model: {model_name}")
    return HuggingFaceEmbeddings(
        model_name=model_name,
        model_kwargs={"device": "cpu"},
        encode_kwargs={"normalize_embeddings": True},
    )
