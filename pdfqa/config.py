"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
VECTORS_DIR = Path(os.getenv("VECTORS_DIR", str(DATA_DIR / "vectors")))

# OpenAI-compatible provider
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "1536"))
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-3.5-turbo")
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.1"))
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "500"))
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "60.0"))

# Chunking (token-aware, with a character fallback)
TOKENIZER_MODEL = os.getenv("TOKENIZER_MODEL", "text-embedding-ada-002")
CHUNK_STRATEGY = os.getenv("CHUNK_STRATEGY", "auto")      # auto | tokens | characters
CHUNK_MAX_TOKENS = int(os.getenv("CHUNK_MAX_TOKENS", "1000"))
CHUNK_OVERLAP_TOKENS = int(os.getenv("CHUNK_OVERLAP_TOKENS", "150"))
CHARS_PER_TOKEN = float(os.getenv("CHARS_PER_TOKEN", "3.5"))

# Embedding batches
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "100"))
EMBEDDING_MAX_ATTEMPTS = int(os.getenv("EMBEDDING_MAX_ATTEMPTS", "3"))
EMBEDDING_BACKOFF_BASE = float(os.getenv("EMBEDDING_BACKOFF_BASE", "1.0"))  # seconds

# Retrieval
DEFAULT_TOP_K = int(os.getenv("DEFAULT_TOP_K", "5"))
MAX_TOP_K = int(os.getenv("MAX_TOP_K", "20"))
CITATION_PREVIEW_CHARS = 200

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))  # 20MB

# Managed vector store (selected when QDRANT_URL is set)
QDRANT_URL = os.getenv("QDRANT_URL")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
QDRANT_COLLECTION = os.getenv("QDRANT_COLLECTION", "pdfqa_chunks")

# HTTP boundary
API_AUTH_TOKEN = os.getenv("API_AUTH_TOKEN")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
