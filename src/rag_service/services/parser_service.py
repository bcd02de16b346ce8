"""Document parsing for uploaded files (PDF and plain text)."""

import io
from typing import Optional

import PyPDF2

from rag_service.models.document import ParsedDocument
from rag_service.utils.errors import EmptyInputError, IngestionError, UnsupportedTypeError
from rag_service.utils.logging import get_logger

logger = get_logger("parser_service")

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_TYPE = "text/plain"


def detect_file_type(filename: Optional[str], mime_type: Optional[str]) -> Optional[str]:
    """Return "pdf", "text", or None for anything unsupported."""
    if mime_type == PDF_MIME_TYPE:
        return "pdf"
    if mime_type == TEXT_MIME_TYPE or (filename or "").lower().endswith(".txt"):
        return "text"
    return None


class ParserService:
    """
    Extract text from uploaded documents.

    Supports:
    - PDF (`application/pdf`) - PyPDF2
    - TXT (`text/plain` or a `.txt` name) - decoded as UTF-8
    """

    async def parse(
        self, content: bytes, filename: Optional[str], mime_type: Optional[str]
    ) -> ParsedDocument:
        """
        Parse an uploaded file.

        Raises:
            UnsupportedTypeError: If the file is neither PDF nor plain text
            EmptyInputError: If no text could be extracted
            IngestionError: If the PDF cannot be read
        """
        source = filename or "uploaded_file"
        file_type = detect_file_type(filename, mime_type)
        if file_type is None:
            raise UnsupportedTypeError(mime_type=mime_type, filename=filename)

        logger.info(f"Parsing document: type={file_type}, filename={source}")
        if file_type == "pdf":
            return self._parse_pdf(content, source)
        return self._parse_text(content, source)

    def _parse_pdf(self, content: bytes, source: str) -> ParsedDocument:
        try:
            reader = PyPDF2.PdfReader(io.BytesIO(content))
            pages = reader.pages
            text_parts = []
            for page_num, page in enumerate(pages, start=1):
                try:
                    page_text = page.extract_text() or ""
                except Exception as page_error:
                    logger.warning(f"Failed to extract text from page {page_num} in {source}: {page_error}")
                    continue
                if page_text.strip():
                    text_parts.append(page_text)
            page_count = len(pages)
            info = reader.metadata or {}
        except PyPDF2.errors.PdfReadError as e:
            raise IngestionError(
                f"PDF file is corrupted or invalid: {e}",
                details={"filename": source},
            ) from e

        text = "\n\n".join(text_parts)
        if not text.strip():
            raise EmptyInputError(
                "No text could be extracted from PDF. The file may be image-based or corrupted.",
                details={"filename": source},
            )

        title = info.get("/Title")
        metadata = {
            "source": source,
            "type": "pdf",
            "pages": page_count,
            "title": str(title) if title else source,
        }
        logger.info(f"Parsed PDF: {source}, pages={page_count}, chars={len(text)}")
        return ParsedDocument(text=text, metadata=metadata, file_type="pdf")

    def _parse_text(self, content: bytes, source: str) -> ParsedDocument:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"{source} is not valid UTF-8, decoding as latin-1")
            text = content.decode("latin-1")

        if not text.strip():
            raise EmptyInputError("Text file is empty", details={"filename": source})

        return ParsedDocument(
            text=text,
            metadata={"source": source, "type": "text"},
            file_type="text",
        )
