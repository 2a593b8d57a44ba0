"""Pick the vector store backend once, at startup."""
import structlog

from pdfqa import config
from pdfqa.rag.store import VectorStore
from pdfqa.rag.store_json import JsonVectorStore
from pdfqa.rag.store_qdrant import QdrantVectorStore

logger = structlog.get_logger()


def create_vector_store() -> VectorStore:
    """Use Qdrant when QDRANT_URL is configured, local JSON files otherwise."""
    if config.QDRANT_URL:
        logger.info(
            "vector_store_selected",
            backend="qdrant",
            url=config.QDRANT_URL,
            collection=config.QDRANT_COLLECTION,
        )
        return QdrantVectorStore.from_url(config.QDRANT_URL, api_key=config.QDRANT_API_KEY)

    logger.info("vector_store_selected", backend="json", data_dir=str(config.VECTORS_DIR))
    return JsonVectorStore(config.VECTORS_DIR)
