"""OpenAI-compatible API client wrapper with error handling."""
from typing import Dict, List, Optional

import httpx
import structlog

from pdfqa import config
from pdfqa.errors import CompletionError, EmbeddingError, RateLimitedError

logger = structlog.get_logger()

NO_RESPONSE = "No response generated"


class OpenAIClient:
    """Async client for the embeddings and chat completions endpoints."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        embedding_model: str = None,
        chat_model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Provider API key (defaults to config.OPENAI_API_KEY)
            base_url: API base URL (defaults to config.OPENAI_BASE_URL)
            embedding_model: Model for embeddings (defaults to config.EMBEDDING_MODEL)
            chat_model: Model for completions (defaults to config.CHAT_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or config.OPENAI_API_KEY
        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.chat_model = chat_model or config.CHAT_MODEL
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self._transport,
        )

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            RateLimitedError: On HTTP 429
            EmbeddingError: On any other API or transport error
        """
        payload = {"model": self.embedding_model, "input": texts}

        try:
            async with self._client() as client:
                logger.debug(
                    "embedding_request",
                    model=self.embedding_model,
                    batch_size=len(texts),
                )

                response = await client.post("/embeddings", json=payload)

                if response.status_code == 429:
                    logger.warning("embedding_rate_limited", model=self.embedding_model)
                    raise RateLimitedError(f"Rate limited (429): {response.text[:200]}")

                response.raise_for_status()
                data = response.json()

            items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
            vectors = [list(item["embedding"]) for item in items]

        except httpx.HTTPStatusError as e:
            logger.error(
                "embedding_http_error",
                error=str(e),
                status_code=e.response.status_code,
            )
            raise EmbeddingError(
                f"Embedding API returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("embedding_transport_error", error=str(e))
            raise EmbeddingError(f"Embedding request failed: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("embedding_response_invalid", error=str(e), error_type=type(e).__name__)
            raise EmbeddingError(f"Malformed embedding response: {e!r}") from e

        logger.debug(
            "embedding_response",
            model=self.embedding_model,
            count=len(vectors),
            dimension=len(vectors[0]) if vectors else 0,
        )

        return vectors

    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        temperature: float = None,
        max_tokens: int = None,
    ) -> str:
        """Send a chat completion request and return the reply text.

        Raises:
            CompletionError: On API or transport errors
        """
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_instruction},
            {"role": "user", "content": user_prompt},
        ]
        payload = {
            "model": self.chat_model,
            "messages": messages,
            "temperature": config.CHAT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or config.CHAT_MAX_TOKENS,
        }

        try:
            async with self._client() as client:
                logger.info(
                    "chat_request",
                    model=self.chat_model,
                    prompt_length=len(user_prompt),
                )

                response = await client.post("/chat/completions", json=payload)
                response.raise_for_status()
                data = response.json()

            choices = data.get("choices") or [{}]
            content = (choices[0].get("message") or {}).get("content") or NO_RESPONSE
            if not isinstance(content, str):
                raise TypeError(f"content is {type(content).__name__}, expected str")

        except httpx.HTTPStatusError as e:
            logger.error(
                "chat_http_error",
                error=str(e),
                status_code=e.response.status_code,
            )
            raise CompletionError(
                f"Completion API returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("chat_transport_error", error=str(e))
            raise CompletionError(f"Completion request failed: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("chat_response_invalid", error=str(e), error_type=type(e).__name__)
            raise CompletionError(f"Malformed completion response: {e!r}") from e

        logger.info("chat_response", model=self.chat_model, response_length=len(content))

        return content
