"""Aggregation of tesseract TSV output into lines and words, and search.

Tesseract's TSV lists one row per detected element at five levels
(1 page, 2 block, 3 paragraph, 4 line, 5 word). Word rows become OCRWord
records; line and word rows are folded into OCRLine records keyed by
(block, paragraph, line).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Literal

from vmrc.domain.models import BoundingBox, OCRLine, OCRMatch, OCRResult, OCRWord
from vmrc.errors import VMRCError

logger = logging.getLogger(__name__)

LEVEL_LINE = 4
LEVEL_WORD = 5
TSV_COLUMNS = 12

SearchScope = Literal["line", "word", "all"]


class OCRError(VMRCError):
    """Raised when recognition output cannot be produced or parsed."""


def _parse_confidence(raw: str) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        return None
    # tesseract reports -1 for rows without a score
    if value < 0:
        return None
    return min(value, 100.0)


def _merge_word(line: OCRLine, word: OCRWord) -> None:
    """Fold a word row into the line it belongs to.

    The confidence update is a pairwise running average of the line's
    current value and the new word, not a true mean over all words.
    """
    line.text = f"{line.text} {word.text}".strip()
    line.bbox = line.bbox.union(word.bbox)
    if word.confidence is None:
        return
    if line.confidence is None:
        line.confidence = word.confidence
    else:
        line.confidence = (line.confidence + word.confidence) / 2


def parse_tsv(tsv: str, width: int = 0, height: int = 0) -> OCRResult:
    """Build an OCRResult from tesseract TSV text.

    Raises:
        OCRError: If the header row is missing.
    """
    rows = tsv.strip().splitlines()
    if not rows or not rows[0].startswith("level"):
        raise OCRError("Unexpected tesseract TSV output")

    words: list[OCRWord] = []
    lines: dict[tuple[int, int, int], OCRLine] = {}

    for row in rows[1:]:
        if not row.strip():
            continue
        parts = row.split("\t")
        if len(parts) < TSV_COLUMNS:
            continue
        text = "\t".join(parts[11:])
        if not text.strip():
            continue
        try:
            level, _page, block, paragraph, line_num, word_num, left, top, w, h = (
                int(p) for p in parts[:10]
            )
        except ValueError:
            logger.debug("Skipping malformed TSV row: %r", row)
            continue
        if level not in (LEVEL_LINE, LEVEL_WORD):
            continue

        bbox = BoundingBox(x=left, y=top, width=w, height=h)
        confidence = _parse_confidence(parts[10])
        key = (block, paragraph, line_num)

        if level == LEVEL_WORD:
            word = OCRWord(
                text=text,
                bbox=bbox,
                confidence=confidence,
                block=block,
                paragraph=paragraph,
                line=line_num,
                word=word_num,
            )
            words.append(word)

        existing = lines.get(key)
        if existing is None:
            lines[key] = OCRLine(
                text=text,
                bbox=bbox,
                confidence=confidence,
                block=block,
                paragraph=paragraph,
                line=line_num,
            )
        elif level == LEVEL_WORD:
            _merge_word(existing, word)

    ordered = [lines[key] for key in sorted(lines)]
    return OCRResult(
        text="\n".join(line.text for line in ordered),
        lines=ordered,
        words=words,
        width=width,
        height=height,
        timestamp=datetime.now(),
    )


def _matcher(query: str | re.Pattern[str], match_case: bool):
    if isinstance(query, re.Pattern):
        return lambda text: query.search(text) is not None
    if match_case:
        return lambda text: query in text
    needle = query.casefold()
    return lambda text: needle in text.casefold()


def find_text(
    result: OCRResult,
    query: str | re.Pattern[str],
    scope: SearchScope = "line",
    match_case: bool = False,
) -> list[OCRMatch]:
    """Search recognized text.

    Args:
        result: Output of a previous OCR pass. No capture happens here.
        query: Literal substring, or a compiled pattern (searched as-is,
               match_case is ignored).
        scope: ``line``, ``word`` or ``all``. Line matches come first.
        match_case: Compare literal queries case-sensitively.
    """
    if scope not in ("line", "word", "all"):
        raise ValueError(f"Invalid search scope: {scope!r}")
    matches = _matcher(query, match_case)
    found: list[OCRMatch] = []

    if scope in ("line", "all"):
        for line in result.lines:
            if matches(line.text):
                found.append(OCRMatch(
                    text=line.text,
                    bbox=line.bbox,
                    confidence=line.confidence,
                    level="line",
                    block=line.block,
                    paragraph=line.paragraph,
                    line=line.line,
                ))

    if scope in ("word", "all"):
        for word in result.words:
            if matches(word.text):
                found.append(OCRMatch(
                    text=word.text,
                    bbox=word.bbox,
                    confidence=word.confidence,
                    level="word",
                    block=word.block,
                    paragraph=word.paragraph,
                    line=word.line,
                    word=word.word,
                ))

    return found
