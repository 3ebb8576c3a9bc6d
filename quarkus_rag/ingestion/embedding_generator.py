"""Guide chunk embeddings through the OpenAI embeddings API."""

import os
import time
from collections import deque

import numpy as np
import structlog
from openai import AuthenticationError, OpenAI, OpenAIError, RateLimitError

from quarkus_rag.utils.config import DEFAULT_EMBEDDING_DIMENSIONS, DEFAULT_EMBEDDING_MODEL
from quarkus_rag.utils.exceptions import ConfigurationError, EmbeddingGenerationError

logger = structlog.get_logger(__name__)

# Self-hosted OpenAI-compatible servers ignore the key but the client requires one
PLACEHOLDER_API_KEY = "not-needed"


class RateLimiter:
    """Sliding one-minute window over embedding requests."""

    WINDOW_SECONDS = 60

    def __init__(self, max_rpm: int = 3000):
        self.max_rpm = max_rpm
        self.requests: deque[float] = deque()

    def _evict(self, now: float) -> None:
        while self.requests and self.requests[0] < now - self.WINDOW_SECONDS:
            self.requests.popleft()

    def wait_if_needed(self) -> None:
        """Block until one more request fits in the window, then record it."""
        now = time.time()
        self._evict(now)

        if len(self.requests) >= self.max_rpm:
            sleep_time = self.WINDOW_SECONDS - (now - self.requests[0])
            if sleep_time > 0:
                logger.info("rate_limit_wait", sleep_seconds=round(sleep_time, 2))
                time.sleep(sleep_time)
                self._evict(time.time())

        self.requests.append(time.time())


class EmbeddingGenerator:
    """Embed guide chunks through an OpenAI-compatible embeddings endpoint.

    Works against api.openai.com or a self-hosted server (``base_url``),
    e.g. one serving bge-small-en-v1.5. Every vector is checked against
    the store's column dimension before it is handed back.
    """

    MAX_BATCH_SIZE = 100

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
        base_url: str | None = None,
        timeout: float = 30.0,
        max_rpm: int = 3000,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
    ):
        """Initialize embedding generator.

        Args:
            api_key: API key (defaults to OPENAI_API_KEY env var)
            model: Embedding model name
            dimensions: Vector length of the rag_documents embedding column
            base_url: OpenAI-compatible endpoint; None for api.openai.com
            timeout: Per-request timeout in seconds
            max_rpm: Maximum requests per minute
            max_attempts: Calls per batch before its chunks are given up on
            backoff_base: Wait ``backoff_base ** attempt`` seconds between calls

        Raises:
            ConfigurationError: If no API key is available for api.openai.com
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            if base_url is None:
                raise ConfigurationError(
                    "OPENAI_API_KEY not set. Please set it in your environment or .env file."
                )
            self.api_key = PLACEHOLDER_API_KEY

        self.model = model
        self.dimensions = dimensions
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.client = OpenAI(api_key=self.api_key, base_url=base_url, timeout=timeout)
        self.rate_limiter = RateLimiter(max_rpm=max_rpm)
        self.logger = structlog.get_logger(__name__)

        self.total_tokens = 0

    def generate_embeddings(self, chunks: list[str]) -> list[np.ndarray | None]:
        """Embed chunk texts, keeping their order.

        Blank texts are never sent; they and any chunk whose batch failed
        every attempt come back as None.

        Raises:
            EmbeddingGenerationError: If every text is blank
            ConfigurationError: If the API rejects the credentials
        """
        if not chunks:
            self.logger.warning("empty_chunks_list")
            return []

        positions = [i for i, chunk in enumerate(chunks) if chunk and chunk.strip()]
        if not positions:
            self.logger.error("all_chunks_invalid")
            raise EmbeddingGenerationError("All chunks are empty or invalid")
        if len(positions) < len(chunks):
            self.logger.warning("blank_chunks_skipped", skipped=len(chunks) - len(positions))

        embeddings: list[np.ndarray | None] = [None] * len(chunks)
        for offset in range(0, len(positions), self.MAX_BATCH_SIZE):
            batch_positions = positions[offset : offset + self.MAX_BATCH_SIZE]
            vectors = self._embed_batch([chunks[i] for i in batch_positions])
            for position, vector in zip(batch_positions, vectors, strict=True):
                embeddings[position] = vector

        embedded = sum(1 for e in embeddings if e is not None)
        self.logger.debug(
            "embedding_generation_completed",
            total_chunks=len(chunks),
            successful=embedded,
            failed=len(chunks) - embedded,
        )
        return embeddings

    def _embed_batch(self, texts: list[str]) -> list[np.ndarray | None]:
        """One embeddings call per attempt, backing off between attempts."""
        for attempt in range(self.max_attempts):
            try:
                self.rate_limiter.wait_if_needed()
                response = self.client.embeddings.create(model=self.model, input=texts)
            except AuthenticationError as e:
                self.logger.error("authentication_error", error=str(e))
                raise ConfigurationError(f"Invalid embedding API key: {e}") from e
            except OpenAIError as e:
                last_attempt = attempt == self.max_attempts - 1
                self.logger.warning(
                    "embedding_request_failed",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    rate_limited=isinstance(e, RateLimitError),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if not last_attempt:
                    time.sleep(self.backoff_base**attempt)
                continue

            if response.usage is not None:
                self.total_tokens += response.usage.total_tokens
            return [self._checked_vector(item.embedding) for item in response.data]

        self.logger.error("embedding_batch_abandoned", batch_size=len(texts))
        return [None] * len(texts)

    def _checked_vector(self, values: list[float]) -> np.ndarray | None:
        vector = np.array(values, dtype=np.float32)
        if vector.shape != (self.dimensions,):
            self.logger.error(
                "embedding_dimension_mismatch",
                expected=self.dimensions,
                actual=vector.shape[0] if vector.ndim == 1 else None,
            )
            return None
        return vector
