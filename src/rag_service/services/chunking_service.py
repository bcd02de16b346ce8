"""Text chunking service for RAG ingestion."""

import re
from typing import List, Optional, Sequence

from rag_service.config import get_settings
from rag_service.utils.errors import ChunkingError, EmptyInputError
from rag_service.utils.logging import get_logger

logger = get_logger("chunking_service")

DEFAULT_SEPARATORS: Sequence[str] = ("\n\n", "\n", ". ", " ", "")


class ChunkingService:
    """
    Split text into overlapping character-sized chunks.

    Strategy (recursive separators):
    - paragraph breaks first, then line breaks, then sentence ends, then spaces,
      then single characters
    - the coarsest separator present in the text is used; pieces that are still
      larger than the chunk size are split again with the finer separators
    - separators stay attached to the start of the following piece so joined
      chunks are contiguous slices of the source text
    - consecutive chunks share up to `overlap` characters
    """

    def __init__(self, separators: Optional[Sequence[str]] = None):
        self._separators = list(separators or DEFAULT_SEPARATORS)

    def split(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> List[str]:
        """
        Split text into chunks.

        Args:
            text: Input text to chunk
            chunk_size: Maximum characters per chunk (defaults to settings.chunking.chunk_size)
            overlap: Characters shared between consecutive chunks (defaults to settings.chunking.chunk_overlap)

        Returns:
            Ordered list of chunk strings

        Raises:
            EmptyInputError: If the text is empty or whitespace-only
            ChunkingError: If the size/overlap configuration is invalid
        """
        if text is None or not text.strip():
            raise EmptyInputError("No text content provided")

        settings = get_settings()
        chunk_size = chunk_size if chunk_size is not None else settings.chunking.chunk_size
        overlap = overlap if overlap is not None else settings.chunking.chunk_overlap

        if chunk_size <= 0:
            raise ChunkingError("chunk_size must be > 0", details={"chunk_size": chunk_size})
        if overlap < 0:
            raise ChunkingError("overlap must be >= 0", details={"overlap": overlap})
        if overlap >= chunk_size:
            raise ChunkingError(
                "overlap must be less than chunk_size",
                details={"overlap": overlap, "chunk_size": chunk_size},
            )

        chunks = self._split_recursive(text, self._separators, chunk_size, overlap)
        logger.debug(
            "Text chunked",
            extra={"chunks": len(chunks), "chunk_size": chunk_size, "overlap": overlap},
        )
        return chunks

    def _split_recursive(
        self, text: str, separators: List[str], chunk_size: int, overlap: int
    ) -> List[str]:
        # pick the coarsest separator that actually occurs
        separator = separators[-1]
        finer: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                finer = separators[i + 1 :]
                break

        pieces = self._split_keep_separator(text, separator)

        final: List[str] = []
        pending: List[str] = []
        for piece in pieces:
            if len(piece) < chunk_size:
                pending.append(piece)
                continue

            if pending:
                final.extend(self._merge(pending, chunk_size, overlap))
                pending = []
            if finer:
                final.extend(self._split_recursive(piece, finer, chunk_size, overlap))
            else:
                stripped = piece.strip()
                if stripped:
                    final.append(stripped)

        if pending:
            final.extend(self._merge(pending, chunk_size, overlap))
        return final

    @staticmethod
    def _split_keep_separator(text: str, separator: str) -> List[str]:
        if separator == "":
            return list(text)

        parts = re.split(f"({re.escape(separator)})", text)
        # re-attach every separator to the piece that follows it
        pieces = [parts[0]]
        pieces.extend(parts[i] + parts[i + 1] for i in range(1, len(parts) - 1, 2))
        if len(parts) % 2 == 0:
            pieces.append(parts[-1])
        return [p for p in pieces if p]

    @staticmethod
    def _merge(pieces: List[str], chunk_size: int, overlap: int) -> List[str]:
        chunks: List[str] = []
        window: List[str] = []
        total = 0

        for piece in pieces:
            size = len(piece)
            if total + size > chunk_size and window:
                chunk = "".join(window).strip()
                if chunk:
                    chunks.append(chunk)
                # slide the window until only the overlap remains and the new piece fits
                while window and (total > overlap or total + size > chunk_size):
                    total -= len(window[0])
                    window.pop(0)
            window.append(piece)
            total += size

        chunk = "".join(window).strip()
        if chunk:
            chunks.append(chunk)
        return chunks
