"""
Match-column inference — which header holds the proposal name.

Each header is scored over its non-empty cells:
  name hint bonus + submission match ratio + uniqueness + completeness
  minus a heavy penalty for attachment-looking values (filenames / URLs).
Changing the chosen column afterwards goes through the lock and is recorded
as a ColumnChangeEvent.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable

import pandas as pd

from fundtrack.config import (
    CANONICAL_MATCH_HEADER,
    CANONICAL_MIN_UNIQUE,
    COMPLETENESS_WEIGHT,
    FILE_LIKE_ALT_RATIO,
    FILE_LIKE_FALLBACK_RATIO,
    FILE_LIKE_PENALTY,
    MIN_WINNING_SCORE,
    MOSTLY_EMPTY_RATIO,
    NAME_HINT_BONUS,
    NAME_HINTS,
    SUBMISSION_MATCH_WEIGHT,
    UNIQUE_WEIGHT,
)
from fundtrack.data.normalize import is_file_like
from fundtrack.data.schemas import ColumnChangeEvent, Dataset, Submission, ValidationFailure


@dataclass
class ColumnScore:
    header: str
    score: float
    name_hint: bool
    submission_match_ratio: float
    unique_ratio: float
    non_empty_ratio: float
    file_like_ratio: float


@dataclass
class ColumnInference:
    column: str
    scores: list[ColumnScore] = field(default_factory=list)
    fallback_used: bool = False
    low_confidence: bool = False
    reason: str = ""


def has_name_hint(header: str) -> bool:
    lname = str(header or "").lower()
    return any(hint in lname for hint in NAME_HINTS)


def _file_like_ratio(values: pd.Series) -> float:
    if values.empty:
        return 0.0
    return float(values.map(is_file_like).mean())


def score_columns(dataset: Dataset, submissions: Iterable[Submission] = ()) -> list[ColumnScore]:
    """Score every header, highest first (ties keep header order)."""
    df = dataset.frame()
    total = len(df)
    known = {s.project_name.strip().lower() for s in submissions if s.project_name and s.project_name.strip()}

    scores: list[ColumnScore] = []
    for header in dataset.headers:
        values = df[header].str.strip()
        non_empty = values[values != ""]
        n = len(non_empty)

        non_empty_ratio = n / max(1, total)
        unique_ratio = non_empty.nunique() / n if n else 0.0
        submission_ratio = 0.0
        if known and n:
            lower = set(non_empty.str.lower())
            submission_ratio = len(known & lower) / len(known)
        file_like = _file_like_ratio(non_empty)
        hint = has_name_hint(header)

        score = (
            (NAME_HINT_BONUS if hint else 0)
            + submission_ratio * SUBMISSION_MATCH_WEIGHT
            + unique_ratio * UNIQUE_WEIGHT
            + non_empty_ratio * COMPLETENESS_WEIGHT
            - file_like * FILE_LIKE_PENALTY
        )
        scores.append(ColumnScore(
            header=header,
            score=round(score, 4),
            name_hint=hint,
            submission_match_ratio=submission_ratio,
            unique_ratio=unique_ratio,
            non_empty_ratio=non_empty_ratio,
            file_like_ratio=file_like,
        ))

    return sorted(scores, key=lambda s: s.score, reverse=True)


def infer_match_column(
    dataset: Dataset,
    submissions: Iterable[Submission] = (),
) -> ColumnInference | ValidationFailure:
    """Pick the header most likely to hold the canonical proposal name."""
    if not dataset.headers:
        return ValidationFailure("no_headers", "Dataset has no columns to match on.")

    first = dataset.headers[0]
    if not dataset.rows:
        return ColumnInference(column=first, fallback_used=True, low_confidence=True, reason="no rows")

    ranked = score_columns(dataset, submissions)
    by_header = {s.header: s for s in ranked}

    canonical = by_header.get(CANONICAL_MATCH_HEADER)
    if canonical and canonical.non_empty_ratio > 0 and canonical.unique_ratio >= CANONICAL_MIN_UNIQUE:
        return ColumnInference(column=canonical.header, scores=ranked, reason="canonical header")

    best = ranked[0]
    if best.file_like_ratio > FILE_LIKE_FALLBACK_RATIO:
        if canonical:
            column, reason = canonical.header, "attachment column; canonical header"
        else:
            alt = next((s for s in ranked if s.file_like_ratio < FILE_LIKE_ALT_RATIO), None)
            if alt:
                column, reason = alt.header, "attachment column; first non-attachment header"
            else:
                column, reason = first, "every column looks like attachments"
        return ColumnInference(column=column, scores=ranked, fallback_used=True, low_confidence=True, reason=reason)

    if best.score <= MIN_WINNING_SCORE:
        return ColumnInference(column=first, scores=ranked, fallback_used=True, low_confidence=True, reason="no column scored")

    confident = best.name_hint or best.submission_match_ratio > 0
    return ColumnInference(column=best.header, scores=ranked, low_confidence=not confident, reason="best score")


# ---------------------------------------------------------------------------
# Lock / unlock / history
# ---------------------------------------------------------------------------

def _column_ratios(dataset: Dataset, column: str) -> tuple[float, float]:
    """(non-empty ratio, file-like ratio) over all rows of a column."""
    values = [row.get(column) for row in dataset.rows]
    total = max(1, len(values))
    non_empty = [v for v in values if v]
    file_like = sum(1 for v in non_empty if is_file_like(v))
    return len(non_empty) / total, file_like / total


def _record(dataset: Dataset, column: str, user: str) -> ColumnChangeEvent:
    event = ColumnChangeEvent(
        changed_at=dt.datetime.now().isoformat(timespec="seconds"),
        changed_by=user or "unknown",
        previous=dataset.match_column or "",
        column=column,
    )
    dataset.match_history.append(event)
    return event


def set_match_column(
    dataset: Dataset,
    column: str,
    user: str = "system",
    confirm_unlock: bool = False,
    force: bool = False,
) -> ColumnChangeEvent | ValidationFailure | None:
    """Change the match column, honouring the lock.

    Returns the recorded event, a ValidationFailure, or None when the column
    is already selected. `force` skips the content checks and leaves the
    column unlocked afterwards.
    """
    if dataset.match_column == column:
        return None
    if dataset.match_column_locked and not (confirm_unlock or force):
        return ValidationFailure(
            "locked",
            f'The match column for dataset "{dataset.name or dataset.id}" is locked; confirm unlock to change it.',
        )
    if column not in dataset.headers:
        return ValidationFailure("unknown_column", f'Column "{column}" not found in dataset headers.')

    non_empty_ratio, file_like_ratio = _column_ratios(dataset, column)
    if not force:
        if non_empty_ratio < MOSTLY_EMPTY_RATIO:
            return ValidationFailure(
                "mostly_empty",
                f'Column "{column}" is mostly empty ({non_empty_ratio * 100:.1f}% non-empty).',
            )
        if file_like_ratio > FILE_LIKE_FALLBACK_RATIO:
            return ValidationFailure(
                "file_like",
                f'Column "{column}" appears to contain attachments/filenames ({file_like_ratio * 100:.0f}%).',
            )

    event = _record(dataset, column, user)
    dataset.match_column = column
    dataset.match_column_locked = not force
    return event


def lock_match_column(dataset: Dataset) -> None:
    dataset.match_column_locked = True


def unlock_match_column(dataset: Dataset) -> None:
    dataset.match_column_locked = False


def apply_inferred_column(
    dataset: Dataset,
    submissions: Iterable[Submission] = (),
    user: str = "system",
) -> ColumnInference | ValidationFailure:
    """Infer on upload / replace, record the change and lock the result."""
    result = infer_match_column(dataset, submissions)
    if isinstance(result, ValidationFailure):
        return result
    if result.column != dataset.match_column:
        _record(dataset, result.column, user)
        dataset.match_column = result.column
    dataset.match_column_locked = True
    return result
