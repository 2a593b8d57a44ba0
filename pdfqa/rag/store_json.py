"""Local JSON vector store with brute-force cosine search.

Handles:
- One JSON file per namespace
- Merge-by-id upserts (last write wins)
- Atomic writes via temp file + rename
- Cosine-ranked queries over every stored vector
"""
import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Sequence

import structlog

from pdfqa import config
from pdfqa.errors import StorageError, ValidationError
from pdfqa.rag.store import StoredChunk, VectorStore, cosine_similarity

logger = structlog.get_logger()

NAMESPACE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_namespace(namespace: str) -> str:
    """Reject namespaces that are not safe to use as a file name."""
    if not isinstance(namespace, str) or not NAMESPACE_PATTERN.match(namespace):
        raise ValidationError(f"Invalid namespace: {namespace!r}")
    return namespace


class JsonVectorStore(VectorStore):
    """File-backed vector store, one record collection per namespace."""

    def __init__(self, data_dir: Path = None):
        """Initialize the JSON vector store.

        Args:
            data_dir: Directory holding ``<namespace>.json`` files (default: VECTORS_DIR)
        """
        self.data_dir = Path(data_dir or config.VECTORS_DIR)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        logger.info("json_store_initialized", data_dir=str(self.data_dir))

    def namespace_path(self, namespace: str) -> Path:
        return self.data_dir / f"{validate_namespace(namespace)}.json"

    async def load(self, namespace: str) -> List[StoredChunk]:
        """Load every record in a namespace.

        Raises:
            StorageError: If the namespace file cannot be read or parsed
        """
        path = self.namespace_path(namespace)
        return await asyncio.to_thread(self._read, path)

    def _read(self, path: Path) -> List[StoredChunk]:
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [StoredChunk.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Failed to read {path.name}: {e}") from e

    def _write(self, path: Path, records: List[Dict[str, Any]]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {path.name}: {e}") from e
        finally:
            # Gone already when the replace succeeded
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)

    async def upsert_many(self, namespace: str, items: Sequence[StoredChunk]) -> None:
        """Merge items into a namespace, replacing records with matching ids.

        Raises:
            StorageError: If the namespace file cannot be written
        """
        path = self.namespace_path(namespace)

        try:
            existing = await asyncio.to_thread(self._read, path)
        except StorageError as e:
            # Unreadable state is replaced rather than blocking re-uploads
            logger.warning("namespace_read_failed_overwriting", namespace=namespace, error=str(e))
            existing = []

        updates = {item.id: item for item in items}
        merged = [updates.pop(record.id, record) for record in existing]
        merged.extend(updates.values())

        await asyncio.to_thread(self._write, path, [r.to_dict() for r in merged])

        logger.info(
            "namespace_upserted",
            namespace=namespace,
            upserted=len(items),
            total_records=len(merged),
        )

    async def query(
        self, namespace: str, vector: Sequence[float], top_k: int
    ) -> List[StoredChunk]:
        """Rank every record in a namespace by cosine similarity to ``vector``.

        Raises:
            ValueError: If a stored vector's length differs from the query's
        """
        if top_k <= 0:
            return []

        try:
            records = await self.load(namespace)
        except StorageError as e:
            logger.error("namespace_read_failed", namespace=namespace, error=str(e))
            return []

        if not records:
            logger.info("namespace_empty", namespace=namespace)
            return []

        scored = [(cosine_similarity(vector, record.vector), record) for record in records]
        scored.sort(key=lambda pair: pair[0], reverse=True)

        results = [record for _, record in scored[:top_k]]

        logger.info(
            "vector_search_completed",
            namespace=namespace,
            top_k=top_k,
            results_found=len(results),
            top_similarity=scored[0][0],
        )

        return results
