"""Embedding service for Drew.

Generates query embeddings for the tradecraft vector search.
"""

from typing import List, Optional

import openai
import structlog
from langchain_openai import OpenAIEmbeddings
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from config.settings import settings
from config.errors import LookupServiceError, ErrorCode

logger = structlog.get_logger()

# Transient provider failures worth another attempt; lookups are read-only.
RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class EmbeddingService:
    """Thin wrapper around OpenAIEmbeddings with retry and error mapping."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.model = model or settings.embedding_model
        self.api_key = api_key or settings.openai_api_key
        self.timeout = timeout or settings.llm_timeout_seconds
        self._client: Optional[OpenAIEmbeddings] = None

    @property
    def client(self) -> OpenAIEmbeddings:
        """Get OpenAIEmbeddings client (lazy initialization)."""
        if self._client is None:
            self._client = OpenAIEmbeddings(
                model=self.model,
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0
            )
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True,
    )
    async def _embed(self, text: str) -> List[float]:
        return await self.client.aembed_query(text)

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single query string.

        Raises:
            LookupServiceError: If the embedding call fails after retries.
        """
        try:
            vector = await self._embed(text)
        except Exception as e:
            logger.error("embedding_failed", model=self.model, error=str(e))
            raise LookupServiceError(
                code=ErrorCode.EMBEDDING_ERROR,
                message=f"Embedding generation failed: {str(e)}",
                service="openai_embeddings",
                details={"model": self.model}
            )

        logger.debug("query_embedded", model=self.model, dimensions=len(vector))
        return vector
