"""Lexical confidence heuristic for answers.

The score rewards chunks that contain the question verbatim or share its
longer words. It is not a calibrated probability; compare scores, do not
threshold them.
"""

from typing import Sequence

from rag_service.models.document import ChunkDocument

VERBATIM_WEIGHT = 0.4
WORD_OVERLAP_WEIGHT = 0.3
LENGTH_BONUS = 0.1
LONG_CHUNK_CHARS = 200
MIN_WORD_LENGTH = 4


def score(question: str, chunks: Sequence[ChunkDocument]) -> float:
    """Mean per-chunk score in [0, 1]; 0 when there are no chunks."""
    if not chunks:
        return 0.0

    lowered = question.lower()
    words = [w for w in lowered.split() if len(w) >= MIN_WORD_LENGTH]

    total = 0.0
    for chunk in chunks:
        content = chunk.content.lower()
        chunk_score = 0.0
        if lowered in content:
            chunk_score += VERBATIM_WEIGHT
        if words:
            matched = sum(1 for w in words if w in content)
            chunk_score += WORD_OVERLAP_WEIGHT * matched / len(words)
        if len(chunk.content) > LONG_CHUNK_CHARS:
            chunk_score += LENGTH_BONUS
        total += chunk_score

    return min(total / len(chunks), 1.0)
