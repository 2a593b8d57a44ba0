"""Vector store interface shared by the local and managed backends."""
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np


@dataclass
class StoredChunk:
    """Durable record held by a vector store."""

    id: str
    text: str
    source: str
    vector: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredChunk":
        return cls(
            id=data["id"],
            text=data["text"],
            source=data.get("source", ""),
            vector=list(data.get("vector", [])),
        )


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    denominator = np.linalg.norm(va) * np.linalg.norm(vb)
    if denominator == 0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


class VectorStore(ABC):
    """Namespace-scoped storage and nearest-neighbour search for chunks."""

    @abstractmethod
    async def upsert_many(self, namespace: str, items: Sequence[StoredChunk]) -> None:
        """Insert or replace records by id within a namespace."""

    @abstractmethod
    async def query(
        self, namespace: str, vector: Sequence[float], top_k: int
    ) -> List[StoredChunk]:
        """Return up to ``top_k`` records, most similar first."""

    @property
    def backend(self) -> str:
        return type(self).__name__
