"""Tests for cosine similarity."""
import math

import pytest

from pdfqa.rag.store import StoredChunk, cosine_similarity


@pytest.mark.parametrize("vector", [[1.0, 0.0], [0.3, -2.5, 7.0], [1e-3, 1e-3]])
def test_vector_is_identical_to_itself(vector):
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_similarity_is_symmetric():
    a, b = [0.2, 0.7, -0.1], [0.9, -0.3, 0.4]

    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_known_angles():
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([1, 1], [1, 0]) == pytest.approx(1 / math.sqrt(2))


def test_zero_vector_scores_zero():
    assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0
    assert cosine_similarity([1, 2, 3], [0, 0, 0]) == 0.0


def test_mismatched_lengths_raise():
    with pytest.raises(ValueError):
        cosine_similarity([1, 0], [1, 0, 0])


def test_stored_chunk_dict_round_trip():
    chunk = StoredChunk(id="doc-chunk-0", text="Hello.", source="doc.pdf", vector=[0.5, 0.5])

    assert StoredChunk.from_dict(chunk.to_dict()) == chunk
