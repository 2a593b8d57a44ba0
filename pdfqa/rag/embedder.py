"""Batched embedding generation for text chunks.

Chunks are sent to the provider in batches bounded by the provider limit.
Batches run sequentially and results keep the input order. Rate-limited
batches are retried with exponential backoff; anything else fails fast.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Protocol, Sequence

import structlog

from pdfqa import config
from pdfqa.errors import (
    CountMismatchError,
    EmbeddingBatchFailedError,
    RateLimitedError,
)
from pdfqa.rag.chunker import TextChunk
from pdfqa.rag.retry import RetryExhausted, RetryPolicy, retry_async

logger = structlog.get_logger()


class EmbeddingProvider(Protocol):
    """Anything that turns a list of strings into a list of vectors."""

    async def embed(self, texts: List[str]) -> List[List[float]]:
        ...


@dataclass(frozen=True)
class EmbeddingResult:
    """Vector for one chunk."""

    chunk_id: str
    vector: List[float]


def is_rate_limited(error: Exception) -> bool:
    return isinstance(error, RateLimitedError)


class EmbeddingClient:
    """Embeds chunks and queries through an injected provider."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = None,
        retry_policy: RetryPolicy = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the embedding client.

        Args:
            provider: Embedding provider (e.g. OpenAIClient)
            batch_size: Maximum texts per provider call (default from config)
            retry_policy: Attempt ceiling and backoff (default from config)
            sleep: Awaitable sleep used between attempts
        """
        self.provider = provider
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.retry_policy = retry_policy or RetryPolicy.from_config()
        self._sleep = sleep

    async def embed_batch(self, chunks: Sequence[TextChunk]) -> List[EmbeddingResult]:
        """Generate embeddings for chunks, one provider batch at a time.

        Args:
            chunks: Chunks to embed

        Returns:
            One EmbeddingResult per chunk, in input order

        Raises:
            EmbeddingBatchFailedError: If a batch stayed rate limited on every attempt
            CountMismatchError: If the provider returned the wrong number of vectors
            EmbeddingError: On any other provider failure
        """
        results: List[EmbeddingResult] = []

        for i in range(0, len(chunks), self.batch_size):
            batch = list(chunks[i : i + self.batch_size])
            vectors = await self._embed_with_retry([chunk.text for chunk in batch])

            results.extend(
                EmbeddingResult(chunk_id=chunk.id, vector=vector)
                for chunk, vector in zip(batch, vectors)
            )

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(results),
            )

        logger.info("embeddings_generated", count=len(results))
        return results

    async def embed_query(self, text: str) -> List[float]:
        """Generate the embedding for a single query string."""
        vectors = await self._embed_with_retry([text])
        return vectors[0]

    async def _embed_with_retry(self, texts: List[str]) -> List[List[float]]:
        async def attempt() -> List[List[float]]:
            vectors = await self.provider.embed(texts)
            if len(vectors) != len(texts):
                raise CountMismatchError(expected=len(texts), actual=len(vectors))
            return vectors

        try:
            return await retry_async(
                attempt,
                policy=self.retry_policy,
                is_retryable=is_rate_limited,
                sleep=self._sleep,
            )
        except RetryExhausted as e:
            logger.error(
                "embedding_batch_failed",
                batch_size=len(texts),
                attempts=e.attempts,
                error=str(e.last_exception),
            )
            raise EmbeddingBatchFailedError(
                f"Failed to process batch after {e.attempts} attempts: {e.last_exception}",
                attempts=e.attempts,
                last_exception=e.last_exception,
            ) from e.last_exception
