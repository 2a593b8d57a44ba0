"""Pytest configuration and shared stub providers."""
import re
from typing import Callable, Dict, List, Optional

import fitz  # PyMuPDF
import pytest

from pdfqa.rag.chunker import TextChunker
from pdfqa.rag.embedder import EmbeddingClient
from pdfqa.rag.retry import RetryPolicy
from pdfqa.rag.store_json import JsonVectorStore


class StubEmbeddingProvider:
    """Returns canned vectors; can fail or drop vectors on demand."""

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        default: Optional[List[float]] = None,
        errors: Optional[List[Optional[Exception]]] = None,
        short_by: int = 0,
    ):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0]
        self.errors = list(errors or [])
        self.short_by = short_by
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        vectors = [list(self.vectors.get(t, self.default)) for t in texts]
        return vectors[: len(vectors) - self.short_by]


class StubCompletion:
    """Records prompts and answers with a fixed string or a callable."""

    def __init__(self, reply="No response generated"):
        self.reply = reply
        self.calls: List[tuple] = []

    async def complete(self, system_instruction: str, user_prompt: str) -> str:
        self.calls.append((system_instruction, user_prompt))
        if callable(self.reply):
            return self.reply(system_instruction, user_prompt)
        return self.reply


class RecordedSleep:
    """Awaitable sleep that only records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def cite_first_context_chunk(system_instruction: str, user_prompt: str) -> str:
    chunk_id = re.search(r"^\[([^\]]+)\]", user_prompt, re.MULTILINE).group(1)
    return f"According to the document [{chunk_id}]."


@pytest.fixture
def make_provider() -> Callable[..., StubEmbeddingProvider]:
    return StubEmbeddingProvider


@pytest.fixture
def make_completion() -> Callable[..., StubCompletion]:
    return StubCompletion


@pytest.fixture
def citing_completion() -> StubCompletion:
    """Completion stub that cites the first chunk id in its context."""
    return StubCompletion(cite_first_context_chunk)


@pytest.fixture
def recorded_sleep() -> RecordedSleep:
    return RecordedSleep()


@pytest.fixture
def word_chunker() -> TextChunker:
    """Token chunker where every whitespace-separated word is one token."""
    return TextChunker(max_tokens=12, overlap_tokens=3, strategy="tokens", tokenize=str.split)


@pytest.fixture
def json_store(tmp_path) -> JsonVectorStore:
    return JsonVectorStore(tmp_path / "vectors")


@pytest.fixture
def make_embedder(recorded_sleep):
    """Build an EmbeddingClient around a provider with sleeps recorded."""

    def factory(provider, batch_size: int = 100) -> EmbeddingClient:
        return EmbeddingClient(
            provider,
            batch_size=batch_size,
            retry_policy=RetryPolicy(max_attempts=3, base_delay=1.0),
            sleep=recorded_sleep,
        )

    return factory


def build_pdf(*pages: str) -> bytes:
    """Render each string onto its own page of a new PDF."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    return build_pdf
