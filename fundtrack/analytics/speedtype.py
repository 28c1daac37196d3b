"""
Speedtype (accounting code) extraction.

A speedtype is exactly 8 digits with a leading 1. Search order, first valid
hit wins:
  1. the explicitly chosen column
  2. conventionally named columns (config.SPEEDTYPE_HEADERS)
  3. the whole row text: bare token, prefixed token ("ST-", "Acct:"),
     then any 8-digit window inside a longer digit run
  4. the code already stored on the approved record
Invalid candidates are discarded, never returned.
"""
from __future__ import annotations

import re
from typing import Mapping

from fundtrack.config import SPEEDTYPE_HEADERS, SPEEDTYPE_PATTERN, SPEEDTYPE_PREFIXES
from fundtrack.data.schemas import ApprovedRecord, Row

_VALID_RE = re.compile(SPEEDTYPE_PATTERN)
_BARE_RE = re.compile(r"(?<!\d)1\d{7}(?!\d)")
_PREFIXED_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in sorted(SPEEDTYPE_PREFIXES, key=len, reverse=True)) + r")"
    r"[\-\s:#]*((?:\d[\s-]?){7}\d)(?![\s-]?\d)",
    re.IGNORECASE,
)
_RUN_RE = re.compile(r"\d{8,}")
_WINDOW_RE = re.compile(r"1\d{7}")


def is_valid_speedtype(value) -> bool:
    return bool(value) and bool(_VALID_RE.match(str(value)))


def _digits(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def _from_cell(value) -> str:
    """A cell holds a speedtype when its digits alone form one."""
    digits = _digits(value)
    return digits if is_valid_speedtype(digits) else ""


def _from_text(text: str) -> str:
    m = _BARE_RE.search(text)
    if m:
        return m.group(0)

    for m in _PREFIXED_RE.finditer(text):
        digits = _digits(m.group(1))
        if is_valid_speedtype(digits):
            return digits

    for run in _RUN_RE.findall(text):
        m = _WINDOW_RE.search(run)
        if m:
            return m.group(0)
    return ""


def extract_speedtype(
    values: Row | Mapping[str, str],
    approved: ApprovedRecord | None = None,
    column: str | None = None,
) -> str:
    """Best speedtype for a row, or "" when nothing validates."""
    cells = values.values if isinstance(values, Row) else dict(values or {})

    if column and column in cells:
        hit = _from_cell(cells[column])
        if hit:
            return hit

    by_lower = {str(h).strip().lower(): h for h in cells}
    for header in SPEEDTYPE_HEADERS:
        key = by_lower.get(header.lower())
        if key is None:
            continue
        hit = _from_cell(cells[key])
        if hit:
            return hit

    text = " ".join(str(v) for v in cells.values() if v is not None and str(v).strip())
    hit = _from_text(text)
    if hit:
        return hit

    if approved is not None and is_valid_speedtype(str(approved.speedtype or "").strip()):
        return str(approved.speedtype).strip()
    return ""
