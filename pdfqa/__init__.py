"""Ask questions about uploaded PDF documents with retrieval-augmented generation."""

__version__ = "0.1.0"
