"""
Text metrics for the fixed-page renderer.

The PDF renderer decides page breaks before drawing a card, so the height
it estimates must be exactly the height it later draws. Both go through
wrap_text() and line_height() here; nothing else in the codebase wraps text
for the canvas.
"""

from typing import List, Optional

from reportlab.pdfbase.pdfmetrics import stringWidth

PLACEHOLDER = "-"

# Baseline-to-baseline distance as a multiple of the font size
LEADING_FACTOR = 1.2


def normalize_text(text: Optional[object]) -> str:
    """Coerce to str; missing or empty text becomes the placeholder glyph."""
    if text is None:
        return PLACEHOLDER
    value = str(text)
    return value if value else PLACEHOLDER


def line_height(size: float, line_gap: float = 0.0) -> float:
    """Vertical advance of one wrapped line."""
    return size * LEADING_FACTOR + line_gap


def _break_word(word: str, max_width: float, font: str, size: float) -> List[str]:
    """Split a single word that is wider than the line into fitting chunks."""
    chunks = []
    current = ""
    for char in word:
        candidate = current + char
        if current and stringWidth(candidate, font, size) > max_width:
            chunks.append(current)
            current = char
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def wrap_text(text: Optional[object], max_width: float, font: str, size: float) -> List[str]:
    """
    Greedy word wrap using the font's advance widths.

    Hard line breaks in the input are kept. Words wider than max_width are
    broken at character boundaries. Always returns at least one line.
    """
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")

    lines: List[str] = []
    for raw_line in normalize_text(text).replace("\r\n", "\n").split("\n"):
        words = raw_line.split()
        if not words:
            lines.append("")
            continue

        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if stringWidth(candidate, font, size) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = ""

            if stringWidth(word, font, size) <= max_width:
                current = word
            else:
                chunks = _break_word(word, max_width, font, size)
                lines.extend(chunks[:-1])
                current = chunks[-1]

        lines.append(current)

    return lines or [PLACEHOLDER]


def measure(text: Optional[object], max_width: float, font: str, size: float,
            line_gap: float = 0.0) -> float:
    """Rendered height of text wrapped to max_width."""
    lines = wrap_text(text, max_width, font, size)
    return len(lines) * line_height(size, line_gap)
