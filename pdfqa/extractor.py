"""
PDF upload validation and text extraction.

Extraction is best-effort through PyMuPDF. Scanned or image-only PDFs
yield no text and are rejected; there is no OCR.
"""
import fitz  # PyMuPDF
import structlog

from pdfqa import config
from pdfqa.errors import ExtractionError, ValidationError

logger = structlog.get_logger()

PDF_CONTENT_TYPE = "application/pdf"
PDF_SIGNATURE = b"%PDF"
MIN_TEXT_LENGTH = 10


def validate_pdf_upload(filename: str, content_type: str, size: int) -> None:
    """
    Check the declared type and size of an upload.

    Raises:
        ValidationError: Wrong type, empty file or file over the size limit
    """
    if content_type != PDF_CONTENT_TYPE:
        raise ValidationError(
            f"Invalid file type: {content_type}. Only PDF files are supported."
        )

    if size == 0:
        raise ValidationError("File is empty.")

    if size > config.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File too large: {size} bytes. Maximum size is {config.MAX_UPLOAD_BYTES} bytes."
        )

    logger.debug("upload_validated", filename=filename, size=size)


def extract_pdf_text(data: bytes, filename: str = None) -> str:
    """
    Extract text from all pages of a PDF.

    Args:
        data: Raw PDF bytes
        filename: Original file name, for messages only

    Returns:
        Page texts joined by blank lines

    Raises:
        ValidationError: If the bytes are not a PDF
        ExtractionError: If the PDF cannot be read or holds no usable text
    """
    name = filename or "unknown"

    if not data or not data.startswith(PDF_SIGNATURE):
        raise ValidationError("Invalid PDF")

    logger.info("pdf_extraction_started", filename=name, size=len(data))

    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except Exception as e:
        logger.error("pdf_extraction_failed", filename=name, error=str(e))
        raise ExtractionError(f"Failed to extract text from PDF {name}: {e}") from e

    text = "\n\n".join(p.strip() for p in pages if p.strip())

    if len("".join(text.split())) < MIN_TEXT_LENGTH:
        logger.warning("pdf_no_text", filename=name, pages=len(pages))
        raise ExtractionError(
            f"No extractable text found in {name}. "
            "This might be a scanned PDF or image-based content."
        )

    logger.info("pdf_extracted", filename=name, pages=len(pages), text_length=len(text))
    return text
