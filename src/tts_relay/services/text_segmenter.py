"""
Text Segmenter for the TTS relay pipeline.

Splits a normalized text into ordered segments that each fit within the
speech provider's per-request input limit.

Architecture:
    request text → normalize_text() → segment_text() → one TTS call per Segment

Cut preference inside each window of ``max_length`` characters:
    1. right after the last sentence terminator (``.``, ``!``, ``?``)
    2. right before the last whitespace run
    3. exactly at ``max_length`` (hard break, may split a word)

Usage:
    text = normalize_text(raw)
    for segment in segment_text(text, 4096):
        ...

Joining every ``segment.content`` in order reproduces the input exactly.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

SENTENCE_TERMINATORS = ".!?"

_NEWLINES = re.compile(r"[\r\n]+")


@dataclass(frozen=True)
class Segment:
    """A bounded slice of the original text, keyed by its position."""

    index: int
    content: str

    @property
    def length(self) -> int:
        return len(self.content)


def normalize_text(text: Optional[str]) -> str:
    """Collapse line breaks into single spaces and trim the result."""
    return _NEWLINES.sub(" ", text or "").strip()


def _find_cut(text: str, start: int, end: int) -> int:
    """Return the cut position for the window ``text[start:end]``."""
    window = text[start:end]

    sentence_end = max(window.rfind(mark) for mark in SENTENCE_TERMINATORS)
    if sentence_end >= 0:
        return start + sentence_end + 1

    last_space = len(window) - 1
    while last_space >= 0 and not window[last_space].isspace():
        last_space -= 1
    if last_space >= 0:
        run_start = last_space
        while run_start > 0 and window[run_start - 1].isspace():
            run_start -= 1
        # A run at the window start would produce an empty segment
        if run_start > 0:
            return start + run_start

    return end


def segment_text(text: str, max_length: int) -> List[Segment]:
    """
    Split ``text`` into contiguous segments of at most ``max_length`` chars.

    Args:
        text: Already-normalized text (see ``normalize_text``)
        max_length: Maximum characters per segment, must be positive

    Returns:
        Segments in original order with zero-based indexes. Empty input
        yields an empty list.

    Raises:
        ValueError: If ``max_length`` is not positive
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    segments: List[Segment] = []
    cursor = 0
    total = len(text)

    while cursor < total:
        end = min(cursor + max_length, total)
        if end < total:
            end = _find_cut(text, cursor, end)
        segments.append(Segment(index=len(segments), content=text[cursor:end]))
        cursor = end

    return segments


__all__ = ["SENTENCE_TERMINATORS", "Segment", "normalize_text", "segment_text"]
