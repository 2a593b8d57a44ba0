"""Quart application exposing document upload and question answering."""
import logging
from dataclasses import dataclass
from typing import Optional

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from quart import Quart, jsonify, request

from pdfqa import config
from pdfqa.auth import require_auth
from pdfqa.errors import AuthError, ExtractionError, PdfQAError, ValidationError
from pdfqa.llm_client import OpenAIClient
from pdfqa.rag.chunker import TextChunker
from pdfqa.rag.embedder import EmbeddingClient
from pdfqa.rag.ingest import IngestPipeline
from pdfqa.rag.retriever import Retriever
from pdfqa.rag.store import VectorStore
from pdfqa.rag.store_factory import create_vector_store

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


class AskRequest(BaseModel):
    """Body of POST /api/ask."""

    model_config = ConfigDict(populate_by_name=True)

    namespace: StrictStr
    question: StrictStr
    top_k: StrictInt = Field(default=config.DEFAULT_TOP_K, alias="topK")


def ask_request_error(error: pydantic.ValidationError) -> str:
    """Client-facing message for the first invalid field of an ask body."""
    first = error.errors()[0]
    field_name = first["loc"][0] if first["loc"] else None

    if field_name in ("topK", "top_k"):
        return f"topK must be between 1 and {config.MAX_TOP_K}"

    if first["type"] == "missing":
        return "Missing required fields: namespace and question"

    return f"{field_name} must be a string"


@dataclass
class Services:
    """Long-lived collaborators shared by all requests."""

    ingest: IngestPipeline
    retriever: Retriever
    vector_store: VectorStore
    provider_configured: bool = True


def build_services() -> Services:
    """Construct providers and pipelines once per process."""
    provider = OpenAIClient()
    embedder = EmbeddingClient(provider)
    store = create_vector_store()

    return Services(
        ingest=IngestPipeline(TextChunker(), embedder, store),
        retriever=Retriever(embedder, store, completion=provider),
        vector_store=store,
        provider_configured=bool(config.OPENAI_API_KEY),
    )


def create_app(services: Optional[Services] = None) -> Quart:
    """Create the Quart app; services are built at startup unless given."""
    app = Quart(__name__)
    # Leave headroom so oversized uploads reach our own size check
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES + 1024 * 1024

    state = {"services": services}

    def get_services() -> Services:
        if state["services"] is None:
            state["services"] = build_services()
        return state["services"]

    @app.before_serving
    async def startup():
        get_services()
        logger.info("app_started", store=get_services().vector_store.backend)

    @app.route("/api/upload", methods=["POST"])
    @require_auth
    async def upload():
        """Ingest an uploaded PDF into a fresh namespace.

        Expects multipart form data with a ``file`` field.

        Returns JSON:
        {
            "ok": true,
            "namespace": "report-1700000000000",
            "chunks": 12,
            "vectorCount": 12,
            "metadata": {"filename": "report.pdf", "textLength": 10234}
        }
        """
        files = await request.files
        file = files.get("file")
        if file is None:
            return jsonify({"error": "PDF file required"}), 400

        data = file.read()
        filename = file.filename or "document.pdf"

        logger.info(
            "upload_received",
            filename=filename,
            size=len(data),
            content_type=file.mimetype,
        )

        result = await get_services().ingest.ingest_pdf(data, filename, file.mimetype)
        return jsonify(result.to_dict())

    @app.route("/api/ask", methods=["POST"])
    @require_auth
    async def ask():
        """Answer a question from a namespace's chunks.

        Expects JSON body:
        {
            "namespace": "report-1700000000000",
            "question": "What is the revenue?",
            "topK": 5  // optional, 1-20
        }

        Returns JSON:
        {
            "answer": "... [report-1700000000000-chunk-3]",
            "citations": [{"id": "...", "text": "..."}],
            "metadata": {"chunksFound": 5, "citationsUsed": 1}
        }
        """
        data = await request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON in request body"}), 400

        try:
            body = AskRequest.model_validate(data)
        except pydantic.ValidationError as e:
            logger.info("ask_request_invalid", errors=e.error_count())
            return jsonify({"error": ask_request_error(e)}), 400

        logger.info(
            "ask_request_received",
            namespace=body.namespace,
            question_length=len(body.question),
            top_k=body.top_k,
        )

        answer = await get_services().retriever.answer(body.namespace, body.question, body.top_k)
        return jsonify(answer.to_dict())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - store backend and provider credentials."""
        current = get_services()
        checks = {
            "status": "healthy" if current.provider_configured else "unhealthy",
            "store": current.vector_store.backend,
            "provider_configured": current.provider_configured,
        }
        return jsonify(checks), 200 if current.provider_configured else 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(AuthError)
    async def auth_error(error: AuthError):
        return jsonify({"error": str(error)}), error.status

    @app.errorhandler(ValidationError)
    async def validation_error(error: ValidationError):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(ExtractionError)
    async def extraction_error(error: ExtractionError):
        return jsonify({"error": str(error)}), 422

    @app.errorhandler(PdfQAError)
    async def pipeline_error(error: PdfQAError):
        logger.error("request_failed", error=str(error), error_type=type(error).__name__)
        return jsonify({"error": str(error)}), 500

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
