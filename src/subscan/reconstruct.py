"""Statement line reconstruction.

PDF text layers wrap one transaction over several lines::

    3rd Jan
    Virgin Active Membership DD
    92.00 1,204.17

:func:`reconstruct_rows` merges such fragments back into logical rows. A
row starts at a date-like line and absorbs the following lines until a
money amount closes it or the next date starts a new row.
"""

from __future__ import annotations

import logging
import re

from subscan.models import EngineConfig, StatementRow
from subscan.statement import ends_with_money, is_date_like

logger = logging.getLogger(__name__)

_PAGE_MARKER_RE = re.compile(r"^-{2,}\s*page\s+\d+(?:\s*\(ocr\))?\s*-{2,}$", re.IGNORECASE)

# Lines this long with hardly any digits are legal small print, not rows.
_LONG_LINE = 180
_MIN_DIGITS_IN_LONG_LINE = 6


def split_lines(text: str, config: EngineConfig | None = None) -> list[str]:
    """Split *text* into trimmed, non-empty lines, dropping page furniture.

    Page-break markers (``--- Page 2 ---``), lines containing one of the
    configured boilerplate phrases, and long low-digit lines are removed.
    """
    if config is None:
        config = EngineConfig()

    lines: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or _PAGE_MARKER_RE.match(line):
            continue
        lowered = line.lower()
        if any(phrase in lowered for phrase in config.boilerplate_phrases):
            continue
        digits = sum(ch.isdigit() for ch in line)
        if len(line) > _LONG_LINE and digits < _MIN_DIGITS_IN_LONG_LINE:
            continue
        lines.append(line)
    return lines


def reconstruct_rows(text: str, config: EngineConfig | None = None) -> list[StatementRow]:
    """Merge wrapped statement lines into logical rows.

    Algorithm:

    1. A date-like line flushes the current row and starts a new one.
       Unless the date line already ends in an amount, the next line is
       absorbed when it is not itself date-like; if that
       absorbed line does not end in a money amount and the line after it
       is not date-like either, it is absorbed too (descriptions wrapped
       over two extra lines).
    2. Any other line is appended to the current row, starting one if
       none is active.
    3. A row is flushed as soon as it ends in a money amount, and at the
       end of input.

    Every kept line lands in exactly one row, in input order, and no row
    is empty.

    Args:
        text: Decoded statement text, possibly several pages.
        config: Engine configuration (boilerplate phrases).

    Returns:
        The reconstructed rows in statement order.
    """
    lines = split_lines(text, config)
    rows: list[StatementRow] = []
    parts: list[str] = []

    def flush() -> None:
        if parts:
            rows.append(StatementRow(text=" ".join(parts)))
            parts.clear()

    i = 0
    while i < len(lines):
        line = lines[i]

        if is_date_like(line):
            flush()
            parts.append(line)
            nxt = lines[i + 1] if i + 1 < len(lines) else None
            if nxt is not None and not is_date_like(nxt) and not ends_with_money(line):
                parts.append(nxt)
                i += 1
                after = lines[i + 1] if i + 1 < len(lines) else None
                if not ends_with_money(nxt) and after is not None and not is_date_like(after):
                    parts.append(after)
                    i += 1
            if ends_with_money(parts[-1]):
                flush()
            i += 1
            continue

        parts.append(line)
        if ends_with_money(line):
            flush()
        i += 1

    flush()
    logger.debug("Reconstructed %d row(s) from %d line(s)", len(rows), len(lines))
    return rows
