"""Text chunking with overlap for RAG pipeline.

Two strategies:
- tokens: sentence accumulation measured with a sub-word tokenizer (tiktoken)
- characters: sliding character window, used when no tokenizer is available
"""
import math
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import structlog
import tiktoken

from pdfqa import config

logger = structlog.get_logger()

Tokenizer = Callable[[str], Sequence[int]]

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
STRATEGIES = ("auto", "tokens", "characters")


@dataclass(frozen=True)
class TextChunk:
    """A bounded text segment ready for embedding."""

    id: str
    text: str
    token_count: int


def chunk_id(source: str, index: int) -> str:
    return f"{source}-chunk-{index}"


def load_tokenizer(model: str = None) -> Optional[Tokenizer]:
    """Load the tiktoken encoder for a model.

    Returns None when the encoding cannot be loaded (unknown model,
    BPE file not reachable, ...), so callers can fall back to characters.
    """
    model = model or config.TOKENIZER_MODEL
    try:
        encoder = tiktoken.encoding_for_model(model)
    except Exception as e:
        logger.warning("tokenizer_unavailable", model=model, error=str(e))
        return None
    return encoder.encode


class TextChunker:
    """Sentence-aware chunker with overlap support."""

    def __init__(
        self,
        max_tokens: int = None,
        overlap_tokens: int = None,
        strategy: str = None,
        tokenize: Optional[Tokenizer] = None,
        chars_per_token: float = None,
    ):
        """Initialize the text chunker.

        Args:
            max_tokens: Token ceiling per chunk (default from config)
            overlap_tokens: Target overlap between consecutive chunks (default from config)
            strategy: "auto", "tokens" or "characters" (default from config)
            tokenize: Tokenizer callable; loaded from tiktoken when omitted
            chars_per_token: Conversion constant for the character strategy
        """
        self.max_tokens = max_tokens or config.CHUNK_MAX_TOKENS
        self.overlap_tokens = (
            config.CHUNK_OVERLAP_TOKENS if overlap_tokens is None else overlap_tokens
        )
        self.chars_per_token = chars_per_token or config.CHARS_PER_TOKEN
        strategy = strategy or config.CHUNK_STRATEGY

        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown chunking strategy: {strategy}")

        if self.overlap_tokens < 0 or self.overlap_tokens >= self.max_tokens:
            raise ValueError(
                f"Overlap ({self.overlap_tokens}) must be between 0 and "
                f"chunk size ({self.max_tokens})"
            )

        if strategy != "characters" and tokenize is None:
            tokenize = load_tokenizer()
            if tokenize is None and strategy == "tokens":
                raise RuntimeError("Token strategy requested but no tokenizer could be loaded")

        self.tokenize = tokenize if strategy != "characters" else None
        self.strategy = "tokens" if self.tokenize is not None else "characters"

        logger.info(
            "chunker_initialized",
            strategy=self.strategy,
            max_tokens=self.max_tokens,
            overlap_tokens=self.overlap_tokens,
        )

    @property
    def max_chars(self) -> int:
        return round(self.max_tokens * self.chars_per_token)

    @property
    def overlap_chars(self) -> int:
        return round(self.overlap_tokens * self.chars_per_token)

    def chunk(self, text: str, source: str) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Args:
            text: Text to chunk
            source: Prefix for chunk ids (``{source}-chunk-{index}``)

        Returns:
            List of TextChunk objects, ids numbered from 0
        """
        if not text or not text.strip():
            return []

        if self.strategy == "tokens":
            chunks = self._chunk_by_sentences(text, source)
        else:
            chunks = self._chunk_by_characters(text, source)

        logger.info(
            "text_chunked",
            source=source,
            strategy=self.strategy,
            text_length=len(text),
            chunk_count=len(chunks),
        )
        return chunks

    def _count(self, text: str) -> int:
        return len(self.tokenize(text))

    def _overlap_window(self, chunk_text: str) -> str:
        """Trailing words of a chunk whose token count fits the overlap target."""
        if self.overlap_tokens == 0:
            return ""

        window: List[str] = []
        budget = self.overlap_tokens
        for word in reversed(chunk_text.split()):
            cost = self._count(word)
            if cost > budget:
                break
            window.append(word)
            budget -= cost

        return " ".join(reversed(window))

    def _chunk_by_sentences(self, text: str, source: str) -> List[TextChunk]:
        sentences = [s for s in SENTENCE_BOUNDARY.split(text.strip()) if s]

        chunks: List[TextChunk] = []
        current = ""
        current_tokens = 0

        for sentence in sentences:
            sentence_tokens = self._count(sentence)

            if current and current_tokens + sentence_tokens > self.max_tokens:
                chunks.append(
                    TextChunk(
                        id=chunk_id(source, len(chunks)),
                        text=current.strip(),
                        token_count=current_tokens,
                    )
                )

                # Seed the next chunk with the tail of the one just emitted
                overlap = self._overlap_window(current)
                current = f"{overlap} {sentence}" if overlap else sentence
                current_tokens = self._count(current)
            else:
                current = f"{current} {sentence}" if current else sentence
                # Re-count the joined text; tokenizers do not add up across joins
                current_tokens = self._count(current)

        if current.strip():
            chunks.append(
                TextChunk(
                    id=chunk_id(source, len(chunks)),
                    text=current.strip(),
                    token_count=current_tokens,
                )
            )

        return chunks

    def _chunk_by_characters(self, text: str, source: str) -> List[TextChunk]:
        chunks: List[TextChunk] = []
        text_length = len(text)
        start = 0

        while start < text_length:
            end = min(start + self.max_chars, text_length)

            # Cut after the rightmost period so sentences stay whole
            if end < text_length:
                last_period = text.rfind(".", 0, end + 1)
                if last_period > start:
                    end = last_period + 1

            content = text[start:end].strip()
            if content:
                chunks.append(
                    TextChunk(
                        id=chunk_id(source, len(chunks)),
                        text=content,
                        token_count=math.ceil(len(content) / self.chars_per_token),
                    )
                )

            if end >= text_length:
                break

            # Always advance, even when the overlap would move us backwards
            start = max(start + 1, end - self.overlap_chars)

        return chunks


def chunk_stats(chunks: List[TextChunk]) -> dict:
    """Get statistics about a set of chunks.

    Args:
        chunks: List of TextChunk objects

    Returns:
        Dictionary with chunk statistics
    """
    if not chunks:
        return {
            "chunk_count": 0,
            "total_tokens": 0,
            "avg_tokens": 0,
            "min_tokens": 0,
            "max_tokens": 0,
        }

    sizes = [c.token_count for c in chunks]

    return {
        "chunk_count": len(chunks),
        "total_tokens": sum(sizes),
        "avg_tokens": sum(sizes) // len(chunks),
        "min_tokens": min(sizes),
        "max_tokens": max(sizes),
    }
