"""
Embedding Client

Converts free text (class descriptions, member profiles, search queries) into
embedding vectors using OpenAI's API.

Usage:
    client = EmbeddingClient(api_key="sk-...")
    vector = await client.generate_embedding("Gentle morning yoga for beginners")
    await client.close()
"""

import asyncio
import logging
import os
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from recommender.embedding import EMBEDDING_DIMENSIONS, EMBEDDING_MODEL

from ..errors import EmbeddingRateLimitError, EmbeddingUnavailableError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """
    Async wrapper around the OpenAI embeddings endpoint.

    Failures are mapped onto the service error taxonomy:
    - empty text: ValueError (caller input problem)
    - missing key, provider error, timeout: EmbeddingUnavailableError
    - provider rate limit: EmbeddingRateLimitError
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        timeout: float = 30.0,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if not self.api_key:
            raise EmbeddingUnavailableError(
                "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
            )
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def generate_embedding(self, text: str) -> List[float]:
        """Embed one text; a wrong-length vector is returned but logged."""
        if not text or not text.strip():
            raise ValueError("Text is required for embedding generation")

        try:
            response = await asyncio.wait_for(
                self.client.embeddings.create(model=self.model, input=text.strip()),
                timeout=self.timeout,
            )
        except openai.RateLimitError as e:
            raise EmbeddingRateLimitError(f"Embedding provider rate limit: {e}") from e
        except asyncio.TimeoutError as e:
            raise EmbeddingUnavailableError(
                f"Embedding request timed out after {self.timeout}s"
            ) from e
        except openai.OpenAIError as e:
            raise EmbeddingUnavailableError(f"Embedding provider error: {e}") from e

        vector = list(response.data[0].embedding)
        if len(vector) != self.dimensions:
            logger.warning(
                "[embedding] DIMENSION_MISMATCH expected=%d actual=%d model=%s",
                self.dimensions, len(vector), self.model,
            )
        return vector

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
