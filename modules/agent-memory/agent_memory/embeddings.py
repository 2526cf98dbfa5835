"""Embedding sources: text in, fixed-length vector out."""

import os
from typing import Optional, Protocol

from openai import AsyncOpenAI


class EmbeddingSource(Protocol):
    """Anything that turns text into a vector.

    `model` identifies the vector space and is part of embedding cache keys.
    """

    model: str

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingSource:
    """OpenAI embedding API wrapper.

    Uses text-embedding-3-small by default:
    - 1536 dimensions
    - Deterministic enough for caching by (model, text)
    """

    MAX_CONTENT_LENGTH = 100_000

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        dimensions: int = 1536,
    ):
        self.model = model
        self.dimensions = dimensions

        final_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not final_api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.client = AsyncOpenAI(api_key=final_api_key)

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text to embed (max 100,000 chars)

        Returns:
            Embedding vector

        Raises:
            ValueError: If text exceeds size limit
            openai.OpenAIError: If API call fails
        """
        if len(text) > self.MAX_CONTENT_LENGTH:
            raise ValueError(
                f"Content too long: {len(text)} chars (max {self.MAX_CONTENT_LENGTH})"
            )

        response = await self.client.embeddings.create(
            model=self.model, input=text, dimensions=self.dimensions
        )
        return response.data[0].embedding
