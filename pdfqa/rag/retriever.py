"""Retriever and answer assembler for document questions.

Handles:
- Question validation
- Query embedding and vector search
- Cited context assembly
- Completion call and citation extraction
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

import structlog

from pdfqa import config
from pdfqa.errors import ValidationError
from pdfqa.rag.embedder import EmbeddingClient
from pdfqa.rag.store import StoredChunk, VectorStore

logger = structlog.get_logger()

INSUFFICIENT_INFORMATION_ANSWER = (
    "I don't have enough information to answer that question. "
    "Please make sure you've uploaded a relevant PDF document."
)

SYSTEM_INSTRUCTION = """You are a helpful assistant that answers questions based only on the provided context from uploaded PDF documents.

Instructions:
- Answer using ONLY the information provided in the context below
- If you cannot answer based on the context, say "I don't have enough information to answer that question"
- Always cite your sources by including the chunk ID in square brackets like [chunk-id]
- Be concise but comprehensive
- Do not make up information that isn't in the context"""

USER_PROMPT_TEMPLATE = """Context from PDF documents:

{context}

Question: {question}

Please answer the question based on the provided context and cite your sources."""

BRACKETED = re.compile(r"\[([^\[\]]+)\]")


class CompletionProvider(Protocol):
    """Opaque text generator: instruction + prompt in, prose out."""

    async def complete(self, system_instruction: str, user_prompt: str) -> str:
        ...


@dataclass(frozen=True)
class Citation:
    """A retrieved chunk referenced by the answer."""

    id: str
    text: str


@dataclass
class Answer:
    """Answer text with the citations it actually used."""

    answer: str
    citations: List[Citation] = field(default_factory=list)
    chunks_found: int = 0

    @property
    def citations_used(self) -> int:
        return len(self.citations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "citations": [{"id": c.id, "text": c.text} for c in self.citations],
            "metadata": {
                "chunksFound": self.chunks_found,
                "citationsUsed": self.citations_used,
            },
        }


def truncate(text: str, limit: int = None) -> str:
    limit = limit or config.CITATION_PREVIEW_CHARS
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def build_context(chunks: List[StoredChunk]) -> str:
    """Format chunks as ``[id] text`` blocks separated by blank lines."""
    return "\n\n".join(f"[{chunk.id}] {chunk.text}" for chunk in chunks)


def cited_ids(answer: str) -> List[str]:
    """Bracketed tokens in an answer, in order of first appearance.

    ``[a, b]`` and ``[a; b]`` are read as two separate tokens.
    """
    ids: List[str] = []
    for match in BRACKETED.finditer(answer):
        for token in re.split(r"[,;]", match.group(1)):
            token = token.strip()
            if token and token not in ids:
                ids.append(token)
    return ids


def extract_citations(answer: str, chunks: List[StoredChunk]) -> List[Citation]:
    """Citations for retrieved chunks whose id appears bracketed in the answer.

    Tokens that match no retrieved chunk are dropped silently.
    """
    referenced = set(cited_ids(answer))
    return [
        Citation(id=chunk.id, text=truncate(chunk.text))
        for chunk in chunks
        if chunk.id in referenced
    ]


def validate_question(namespace: str, question: str, top_k: int) -> None:
    if not isinstance(namespace, str) or not namespace.strip():
        raise ValidationError("Missing required field: namespace")

    if not isinstance(question, str) or not question.strip():
        raise ValidationError("Question must be a non-empty string")

    if isinstance(top_k, bool) or not isinstance(top_k, int) or not 1 <= top_k <= config.MAX_TOP_K:
        raise ValidationError(f"topK must be between 1 and {config.MAX_TOP_K}")


class Retriever:
    """Semantic retriever and answer assembler for RAG pipeline."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_store: VectorStore,
        completion: CompletionProvider,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding client used for the question
            vector_store: Store holding the namespace's chunks
            completion: Provider that writes the final answer
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.completion = completion

        logger.info("retriever_initialized", store=vector_store.backend)

    async def retrieve(self, namespace: str, question: str, top_k: int) -> List[StoredChunk]:
        """Embed the question and fetch the most similar chunks.

        Returns:
            Up to ``top_k`` chunks, most similar first
        """
        query_vector = await self.embedder.embed_query(question)
        logger.debug("query_embedded", dimension=len(query_vector))

        chunks = await self.vector_store.query(namespace, query_vector, top_k)

        logger.info(
            "retrieval_completed",
            namespace=namespace,
            top_k=top_k,
            results_returned=len(chunks),
        )
        return chunks

    async def answer(self, namespace: str, question: str, top_k: int = None) -> Answer:
        """Answer a question from the chunks stored in a namespace.

        Args:
            namespace: Namespace to search
            question: Natural-language question
            top_k: Number of chunks to retrieve (1-20, default from config)

        Returns:
            Answer with the citations that matched retrieved chunks

        Raises:
            ValidationError: If namespace, question or top_k is invalid
        """
        if top_k is None:
            top_k = config.DEFAULT_TOP_K
        validate_question(namespace, question, top_k)

        chunks = await self.retrieve(namespace, question, top_k)

        if not chunks:
            logger.info("no_relevant_context_found", namespace=namespace)
            return Answer(answer=INSUFFICIENT_INFORMATION_ANSWER)

        user_prompt = USER_PROMPT_TEMPLATE.format(
            context=build_context(chunks), question=question
        )
        text = await self.completion.complete(SYSTEM_INSTRUCTION, user_prompt)

        citations = extract_citations(text, chunks)

        logger.info(
            "answer_generated",
            namespace=namespace,
            chunks_found=len(chunks),
            citations_used=len(citations),
            answer_length=len(text),
        )

        return Answer(answer=text, citations=citations, chunks_found=len(chunks))
