"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Sentence-aware chunking with overlap
- Batched embedding generation with retry/backoff
- Vector storage (local JSON files or Qdrant)
- Retrieval, context assembly and citation extraction
"""
