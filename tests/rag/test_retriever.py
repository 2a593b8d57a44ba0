"""Tests for retrieval and answer assembly."""
import pytest

from pdfqa.errors import ValidationError
from pdfqa.rag.retriever import (
    INSUFFICIENT_INFORMATION_ANSWER,
    SYSTEM_INSTRUCTION,
    Answer,
    Citation,
    Retriever,
    build_context,
    cited_ids,
    extract_citations,
)
from pdfqa.rag.store import StoredChunk

QUESTION = "What is the capital of France?"


@pytest.fixture
def seeded_store(json_store):
    async def seed(records):
        await json_store.upsert_many("doc", records)
        return json_store

    return seed


def capitals():
    return [
        StoredChunk(id="doc-chunk-0", text="Paris is the capital of France.", source="doc.pdf", vector=[1.0, 0.0]),
        StoredChunk(id="doc-chunk-1", text="Berlin is the capital of Germany.", source="doc.pdf", vector=[0.0, 1.0]),
    ]


@pytest.mark.asyncio
async def test_answer_cites_retrieved_chunk(seeded_store, make_provider, make_embedder, make_completion):
    store = await seeded_store(capitals())
    provider = make_provider(vectors={QUESTION: [0.9, 0.1]})
    completion = make_completion("The capital is Paris [doc-chunk-0].")
    retriever = Retriever(make_embedder(provider), store, completion)

    answer = await retriever.answer("doc", QUESTION, top_k=1)

    assert answer.answer == "The capital is Paris [doc-chunk-0]."
    assert answer.citations == [Citation(id="doc-chunk-0", text="Paris is the capital of France.")]
    assert answer.chunks_found == 1

    system_instruction, user_prompt = completion.calls[0]
    assert system_instruction == SYSTEM_INSTRUCTION
    assert "[doc-chunk-0] Paris is the capital of France." in user_prompt
    assert "Berlin" not in user_prompt
    assert f"Question: {QUESTION}" in user_prompt


@pytest.mark.asyncio
async def test_empty_namespace_skips_completion(json_store, make_provider, make_embedder, make_completion):
    completion = make_completion("should not be used")
    retriever = Retriever(make_embedder(make_provider()), json_store, completion)

    answer = await retriever.answer("missing", QUESTION, top_k=5)

    assert answer.answer == INSUFFICIENT_INFORMATION_ANSWER
    assert answer.citations == []
    assert answer.to_dict()["metadata"] == {"chunksFound": 0, "citationsUsed": 0}
    assert completion.calls == []


@pytest.mark.asyncio
async def test_unknown_bracketed_ids_are_dropped(seeded_store, make_provider, make_embedder, make_completion):
    store = await seeded_store(capitals())
    completion = make_completion("Paris [doc-chunk-0], see also [made-up-id] and [1].")
    retriever = Retriever(make_embedder(make_provider()), store, completion)

    answer = await retriever.answer("doc", QUESTION, top_k=2)

    assert [c.id for c in answer.citations] == ["doc-chunk-0"]
    assert answer.to_dict()["metadata"] == {"chunksFound": 2, "citationsUsed": 1}


@pytest.mark.asyncio
async def test_citation_text_is_truncated(seeded_store, make_provider, make_embedder, make_completion):
    long_text = "x" * 250
    store = await seeded_store(
        [StoredChunk(id="doc-chunk-0", text=long_text, source="doc.pdf", vector=[1.0, 0.0])]
    )
    retriever = Retriever(
        make_embedder(make_provider()), store, make_completion("See [doc-chunk-0].")
    )

    answer = await retriever.answer("doc", QUESTION, top_k=1)

    assert answer.citations[0].text == "x" * 200 + "..."


@pytest.mark.asyncio
@pytest.mark.parametrize("top_k", [0, 21, -1, True, "5", 2.5])
async def test_invalid_top_k_rejected_before_embedding(json_store, make_provider, make_embedder, make_completion, top_k):
    provider = make_provider()
    retriever = Retriever(make_embedder(provider), json_store, make_completion())

    with pytest.raises(ValidationError, match="topK must be between 1 and 20"):
        await retriever.answer("doc", QUESTION, top_k=top_k)

    assert provider.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("namespace,question", [("doc", ""), ("doc", "   "), ("", QUESTION)])
async def test_blank_inputs_rejected(json_store, make_provider, make_embedder, make_completion, namespace, question):
    provider = make_provider()
    retriever = Retriever(make_embedder(provider), json_store, make_completion())

    with pytest.raises(ValidationError):
        await retriever.answer(namespace, question, top_k=5)

    assert provider.calls == []


@pytest.mark.asyncio
async def test_default_top_k(seeded_store, make_provider, make_embedder, make_completion):
    store = await seeded_store(capitals())
    retriever = Retriever(make_embedder(make_provider()), store, make_completion("No citation."))

    answer = await retriever.answer("doc", QUESTION)

    assert answer.chunks_found == 2
    assert answer.citations == []


def test_build_context_keeps_retrieval_order():
    chunks = capitals()[::-1]

    assert build_context(chunks) == (
        "[doc-chunk-1] Berlin is the capital of Germany.\n\n"
        "[doc-chunk-0] Paris is the capital of France."
    )


def test_cited_ids_splits_grouped_brackets():
    assert cited_ids("Both [a, b] and [b; c] and [a].") == ["a", "b", "c"]
    assert cited_ids("No citations here.") == []


def test_citations_follow_retrieval_order():
    chunks = capitals()

    citations = extract_citations("Germany [doc-chunk-1], France [doc-chunk-0].", chunks)

    assert [c.id for c in citations] == ["doc-chunk-0", "doc-chunk-1"]


def test_answer_dict_shape():
    answer = Answer(
        answer="Paris [doc-chunk-0].",
        citations=[Citation(id="doc-chunk-0", text="Paris is the capital of France.")],
        chunks_found=3,
    )

    assert answer.to_dict() == {
        "answer": "Paris [doc-chunk-0].",
        "citations": [{"id": "doc-chunk-0", "text": "Paris is the capital of France."}],
        "metadata": {"chunksFound": 3, "citationsUsed": 1},
    }
