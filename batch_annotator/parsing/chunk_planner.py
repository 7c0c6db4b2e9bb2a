"""Paragraph-bounded chunking of text files for quote extraction."""

import logging
import re
from typing import Iterable, List, Tuple

from ..models import WorkUnit

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 2000
DEFAULT_MIN_CHARS = 100

_PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


def split_paragraphs(text: str) -> List[str]:
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]


def plan_chunks(text: str,
                max_chars: int = DEFAULT_MAX_CHARS,
                min_chars: int = DEFAULT_MIN_CHARS) -> List[str]:
    """
    Group consecutive paragraphs into segments of at most ``max_chars``.

    A paragraph longer than ``max_chars`` becomes a segment on its own.
    Segments shorter than ``min_chars`` are dropped: they are too small to hold
    a quote worth extracting.
    """
    segments: List[str] = []
    current = ""

    for paragraph in split_paragraphs(text):
        if not current:
            current = paragraph
        elif len(current) + 2 + len(paragraph) > max_chars:
            segments.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}"
    if current:
        segments.append(current)

    kept = [s for s in segments if len(s.strip()) >= min_chars]
    skipped = len(segments) - len(kept)
    if skipped:
        logger.debug(f"Skipped {skipped} segment(s) shorter than {min_chars} characters")
    return kept


def build_chunk_units(files: Iterable[Tuple[str, str]],
                      max_chars: int = DEFAULT_MAX_CHARS,
                      min_chars: int = DEFAULT_MIN_CHARS) -> List[WorkUnit]:
    """Turn ``(file_name, text)`` pairs into chunk units numbered across all files."""
    units: List[WorkUnit] = []
    for file_name, text in files:
        chunks = plan_chunks(text, max_chars=max_chars, min_chars=min_chars)
        logger.info(f"{file_name}: {len(chunks)} chunk(s) for extraction")
        for chunk in chunks:
            units.append(WorkUnit(index=len(units), payload=chunk, source_name=file_name))
    return units
