#!/usr/bin/env python
"""Ask a question against an ingested namespace.

Usage:
    python scripts/ask.py report-1700000000000 "What is the revenue?"
    python scripts/ask.py report-1700000000000 "Who signed it?" --top-k 3
"""
import argparse
import asyncio
import sys

import structlog

from pdfqa import config
from pdfqa.errors import PdfQAError
from pdfqa.llm_client import OpenAIClient
from pdfqa.rag.embedder import EmbeddingClient
from pdfqa.rag.retriever import Retriever
from pdfqa.rag.store_factory import create_vector_store

logger = structlog.get_logger()


async def main():
    """Main entry point for the ask script."""
    parser = argparse.ArgumentParser(description="Ask a question about an uploaded PDF")
    parser.add_argument("namespace", help="Namespace returned by ingest_pdf.py")
    parser.add_argument("question", help="Question to answer")
    parser.add_argument(
        "--top-k",
        type=int,
        default=config.DEFAULT_TOP_K,
        help=f"Chunks to retrieve, 1-{config.MAX_TOP_K} (default: {config.DEFAULT_TOP_K})",
    )

    args = parser.parse_args()

    if not config.OPENAI_API_KEY:
        print("\n❌ Error: OPENAI_API_KEY is not set\n")
        sys.exit(1)

    provider = OpenAIClient()
    retriever = Retriever(EmbeddingClient(provider), create_vector_store(), completion=provider)

    try:
        result = await retriever.answer(args.namespace, args.question, args.top_k)
    except PdfQAError as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ask_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    print(f"\n{result.answer}\n")

    if result.citations:
        print(f"📚 {result.citations_used} of {result.chunks_found} retrieved chunks cited:")
        for citation in result.citations:
            print(f"   [{citation.id}] {citation.text}")
        print()


if __name__ == "__main__":
    asyncio.run(main())
