import logging
import time
from typing import List, Optional, Sequence, Union

import numpy as np
from openai import AsyncOpenAI, OpenAIError

from faq_assistant.config import config
from faq_assistant.errors import EmbeddingUnavailable, VectorDimensionMismatch

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 when either vector has zero norm."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise VectorDimensionMismatch(a.shape[-1], b.shape[-1])

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


class EmbeddingService:
    def __init__(self, client: Optional[AsyncOpenAI] = None,
                 model: str = None, dimensions: int = None):
        if client is None:
            if not config.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY must be set")
            client = AsyncOpenAI(api_key=config.OPENAI_API_KEY, timeout=config.OPENAI_TIMEOUT)
        self.client = client
        self.model = model or config.EMBEDDING_MODEL
        self.dimensions = dimensions or config.EMBEDDING_DIMENSIONS

    async def get_embeddings(self, texts: Union[str, List[str]]) -> np.ndarray:
        """Get embeddings for text(s)"""
        if isinstance(texts, str):
            texts = [texts]

        start_time = time.time()
        try:
            response = await self.client.embeddings.create(
                input=texts,
                model=self.model,
                dimensions=self.dimensions,
            )
        except OpenAIError as e:
            logger.error("Error generating embeddings: %s", e)
            raise EmbeddingUnavailable(str(e)) from e

        embeddings = np.array([item.embedding for item in response.data], dtype=np.float32)
        if embeddings.shape != (len(texts), self.dimensions):
            raise VectorDimensionMismatch(self.dimensions, embeddings.shape[-1])

        elapsed = (time.time() - start_time) * 1000
        logger.debug("Embedding generation took %.2fms for %d texts", elapsed, len(texts))
        return embeddings

    async def embed(self, text: str) -> np.ndarray:
        return (await self.get_embeddings(text))[0]
