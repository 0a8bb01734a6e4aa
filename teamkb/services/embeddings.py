from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from teamkb.core.errors import InternalError


logger = logging.getLogger("teamkb.embeddings")


def article_text(title: str, content: str) -> str:
    """Text an article is embedded from."""
    return f"{title} {content}"


class Embedder:
    """OpenAI embeddings client, created once at start-up and shared read-only."""

    def __init__(self, model: str, api_key: Optional[str], client: Optional[AsyncOpenAI] = None) -> None:
        if client is None:
            if not api_key:
                raise RuntimeError("OPENAI_API_KEY is not set; cannot create embeddings client")
            client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self._client = client

    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the given text."""
        try:
            resp = await self._client.embeddings.create(model=self.model, input=text)
        except OpenAIError:
            logger.error(
                "Embedding request failed",
                extra={"event": "embedding_failed", "model": self.model},
                exc_info=True,
            )
            raise InternalError("Failed to create embedding")
        vector = resp.data[0].embedding
        logger.debug(
            "Embedding created",
            extra={"event": "embedding_created", "model": self.model, "dimensions": len(vector)},
        )
        return vector

    async def close(self) -> None:
        await self._client.close()
