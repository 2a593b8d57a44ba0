"""Ingest pipeline for uploaded PDF documents.

Orchestrates:
- Upload validation and text extraction
- Namespace naming
- Text chunking
- Embedding generation
- Vector storage
"""
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

import structlog

from pdfqa.errors import EmbeddingError, ValidationError
from pdfqa.extractor import extract_pdf_text, validate_pdf_upload
from pdfqa.rag.chunker import TextChunker, chunk_stats
from pdfqa.rag.embedder import EmbeddingClient
from pdfqa.rag.store import StoredChunk, VectorStore

logger = structlog.get_logger()


@dataclass
class UploadResult:
    """Outcome of ingesting one document."""

    namespace: str
    chunk_count: int
    vector_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "namespace": self.namespace,
            "chunks": self.chunk_count,
            "vectorCount": self.vector_count,
            "metadata": self.metadata,
        }


def make_namespace(filename: str, timestamp_ms: int) -> str:
    """``report v2.pdf`` -> ``report-v2-<timestamp_ms>``."""
    sanitized = re.sub(r"[^a-zA-Z0-9.-]", "-", filename)
    sanitized = re.sub(r"\.pdf$", "", sanitized, flags=re.IGNORECASE)
    sanitized = sanitized.lstrip(".-") or "document"
    return f"{sanitized}-{timestamp_ms}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class IngestPipeline:
    """Pipeline for turning a document into stored, embedded chunks."""

    def __init__(
        self,
        chunker: TextChunker,
        embedder: EmbeddingClient,
        vector_store: VectorStore,
        clock: Callable[[], int] = _now_ms,
    ):
        """Initialize the ingest pipeline.

        Args:
            chunker: Text chunker
            embedder: Embedding client
            vector_store: Destination store
            clock: Millisecond timestamp source used in namespace names
        """
        self.chunker = chunker
        self.embedder = embedder
        self.vector_store = vector_store
        self.clock = clock

        logger.info(
            "ingest_pipeline_initialized",
            chunk_strategy=chunker.strategy,
            max_tokens=chunker.max_tokens,
            overlap_tokens=chunker.overlap_tokens,
            store=vector_store.backend,
        )

    async def ingest_pdf(self, data: bytes, filename: str, content_type: str) -> UploadResult:
        """Validate a PDF upload, extract its text and ingest it.

        Raises:
            ValidationError: If the upload is not an acceptable PDF
            ExtractionError: If the PDF contains no usable text
        """
        validate_pdf_upload(filename, content_type, len(data))
        text = extract_pdf_text(data, filename)
        return await self.ingest_text(text, filename)

    async def ingest_text(self, text: str, filename: str) -> UploadResult:
        """Chunk, embed and store a document's text under a new namespace.

        Args:
            text: Extracted document text
            filename: Original file name, stored as each chunk's source

        Returns:
            UploadResult with namespace and counts
        """
        namespace = make_namespace(filename, self.clock())
        logger.info("ingesting_document", filename=filename, namespace=namespace)

        chunks = self.chunker.chunk(text, namespace)

        if not chunks:
            logger.warning("no_chunks_created", filename=filename)
            raise ValidationError("No text chunks could be extracted from the document")

        logger.info("chunks_created", namespace=namespace, **chunk_stats(chunks))

        embeddings = await self.embedder.embed_batch(chunks)

        # Pair by id so a reordered result can never attach text to the wrong vector
        vectors = {result.chunk_id: result.vector for result in embeddings}
        missing = [chunk.id for chunk in chunks if chunk.id not in vectors]
        if missing:
            raise EmbeddingError(f"No embedding returned for chunks: {missing[:5]}")

        stored = [
            StoredChunk(id=chunk.id, text=chunk.text, source=filename, vector=vectors[chunk.id])
            for chunk in chunks
        ]
        await self.vector_store.upsert_many(namespace, stored)

        logger.info(
            "document_ingested",
            namespace=namespace,
            chunks_created=len(chunks),
            vectors_stored=len(stored),
        )

        return UploadResult(
            namespace=namespace,
            chunk_count=len(chunks),
            vector_count=len(embeddings),
            metadata={"filename": filename, "textLength": len(text)},
        )
