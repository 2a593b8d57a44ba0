#!/usr/bin/env python
"""Upload a local PDF into a new namespace.

Usage:
    python scripts/ingest_pdf.py report.pdf
    python scripts/ingest_pdf.py report.pdf --strategy characters
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

import structlog

from pdfqa import config
from pdfqa.errors import PdfQAError
from pdfqa.extractor import PDF_CONTENT_TYPE
from pdfqa.llm_client import OpenAIClient
from pdfqa.rag.chunker import TextChunker
from pdfqa.rag.embedder import EmbeddingClient
from pdfqa.rag.ingest import IngestPipeline
from pdfqa.rag.store_factory import create_vector_store

logger = structlog.get_logger()


async def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Chunk, embed and store a PDF for question answering",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest_pdf.py report.pdf
  python scripts/ingest_pdf.py report.pdf --strategy characters
        """,
    )

    parser.add_argument("pdf", type=Path, help="PDF file to ingest")
    parser.add_argument(
        "--strategy",
        choices=["auto", "tokens", "characters"],
        default=None,
        help=f"Chunking strategy (default: {config.CHUNK_STRATEGY})",
    )

    args = parser.parse_args()

    if not config.OPENAI_API_KEY:
        print("\n❌ Error: OPENAI_API_KEY is not set\n")
        sys.exit(1)

    print("\n📋 Configuration:")
    print(f"   File:             {args.pdf}")
    print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
    print(f"   Chunk size:       {config.CHUNK_MAX_TOKENS} tokens")
    print(f"   Chunk overlap:    {config.CHUNK_OVERLAP_TOKENS} tokens")
    print(f"   Vector store:     {'qdrant' if config.QDRANT_URL else config.VECTORS_DIR}")

    started = datetime.now()

    try:
        data = args.pdf.read_bytes()

        store = create_vector_store()
        pipeline = IngestPipeline(
            TextChunker(strategy=args.strategy),
            EmbeddingClient(OpenAIClient()),
            store,
        )
        result = await pipeline.ingest_pdf(data, args.pdf.name, PDF_CONTENT_TYPE)

    except KeyboardInterrupt:
        print("\n\n⚠️  Ingest cancelled by user.\n")
        sys.exit(1)

    except (OSError, PdfQAError) as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ingest_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    elapsed = (datetime.now() - started).total_seconds()

    print(f"\n{'=' * 60}")
    print("  Ingest Complete!")
    print(f"{'=' * 60}\n")
    print(f"  🗂️  Namespace:          {result.namespace}")
    print(f"  📝 Chunks created:      {result.chunk_count}")
    print(f"  🧮 Vectors stored:      {result.vector_count}")
    print(f"  📏 Text length:         {result.metadata['textLength']} chars")
    print(f"  ⏱️  Time elapsed:        {elapsed:.1f}s\n")


if __name__ == "__main__":
    asyncio.run(main())
