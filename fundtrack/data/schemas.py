"""
Dataset, submission, approval and meta schemas shared by the engine.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

import pandas as pd


class FundingStatus(str, Enum):
    FULLY = "fully"
    PARTIAL = "partial"
    NONE = "none"
    EMPTY = ""


class ProposalStatus(str, Enum):
    APPROVED = "Approved"
    UNASSIGNED = "Unassigned"
    READY_FOR_REVIEW = "Ready for Review"
    WAITING_APPROVAL = "Waiting Approval"
    UNDER_REVIEW = "Under Review"


@dataclass
class ValidationFailure:
    """Bad caller input. The operation was aborted and nothing was written."""
    code: str
    message: str

    def __bool__(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Tabular row store
# ---------------------------------------------------------------------------

@dataclass
class Row:
    values: dict[str, str] = field(default_factory=dict)
    hidden: bool = False
    links: dict[str, str] = field(default_factory=dict)   # header -> hyperlink

    def get(self, header: str) -> str:
        value = self.values.get(header)
        if value is None:
            return ""
        return str(value).strip()

    def text(self) -> str:
        """All cell values joined with spaces (used for free-text scans)."""
        return " ".join(str(v) for v in self.values.values() if v is not None)

    def to_dict(self) -> dict:
        return {"values": self.values, "hidden": self.hidden, "links": self.links}

    @classmethod
    def from_dict(cls, data: dict) -> "Row":
        return cls(
            values={str(k): "" if v is None else str(v) for k, v in (data.get("values") or {}).items()},
            hidden=bool(data.get("hidden", False)),
            links=dict(data.get("links") or {}),
        )


@dataclass
class ColumnChangeEvent:
    """One append-only entry in a dataset's match-column history."""
    changed_at: str
    changed_by: str
    previous: str
    column: str


@dataclass
class Dataset:
    """One uploaded spreadsheet, i.e. one funding cycle."""
    id: str
    name: str
    headers: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    match_column: str = ""
    match_column_locked: bool = False
    match_history: list[ColumnChangeEvent] = field(default_factory=list)
    pinned_columns: list[str] = field(default_factory=list)
    created: str = field(default_factory=lambda: dt.datetime.now().isoformat())

    @property
    def ordered_headers(self) -> list[str]:
        """Headers with pinned columns first, each group in file order."""
        pinned = [h for h in self.headers if h in self.pinned_columns]
        return pinned + [h for h in self.headers if h not in self.pinned_columns]

    @property
    def key_column(self) -> str:
        """Match column, or the first header when none has been chosen."""
        if self.match_column:
            return self.match_column
        return self.headers[0] if self.headers else ""

    def identity(self, row: Row) -> str:
        col = self.key_column
        return row.get(col) if col else ""

    def proposals(self, include_hidden: bool = False) -> list[str]:
        """Distinct non-empty identities in row order.

        A proposal is visible while at least one of its rows is not hidden.
        """
        order: dict[str, None] = {}
        visible: set[str] = set()
        for row in self.rows:
            ident = self.identity(row)
            if not ident:
                continue
            order.setdefault(ident, None)
            if include_hidden or not row.hidden:
                visible.add(ident)
        return [p for p in order if p in visible]

    def find_row(self, identity: str) -> Optional[tuple[int, Row]]:
        """First row whose identity matches (trimmed, case-insensitive)."""
        target = str(identity or "").strip().lower()
        if not target:
            return None
        for idx, row in enumerate(self.rows):
            if self.identity(row).lower() == target:
                return idx, row
        return None

    def frame(self) -> pd.DataFrame:
        """Cell values as a string DataFrame, one column per header."""
        records = [{h: row.values.get(h, "") for h in self.headers} for row in self.rows]
        df = pd.DataFrame(records, columns=self.headers)
        return df.fillna("").astype(str)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "headers": self.headers,
            "rows": [r.to_dict() for r in self.rows],
            "match_column": self.match_column,
            "match_column_locked": self.match_column_locked,
            "match_history": [asdict(e) for e in self.match_history],
            "pinned_columns": self.pinned_columns,
            "created": self.created,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Dataset":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            headers=list(data.get("headers") or []),
            rows=[Row.from_dict(r) for r in data.get("rows") or []],
            match_column=data.get("match_column", ""),
            match_column_locked=bool(data.get("match_column_locked", False)),
            match_history=[ColumnChangeEvent(**e) for e in data.get("match_history") or []],
            pinned_columns=list(data.get("pinned_columns") or []),
            created=data.get("created") or dt.datetime.now().isoformat(),
        )


# ---------------------------------------------------------------------------
# Reviews, meta, approvals
# ---------------------------------------------------------------------------

NARRATIVE_FIELDS = ("overall", "line_items", "funding")


@dataclass
class Submission:
    id: str
    project_name: str
    reviewer_name: str
    timestamp: str = ""
    year: str = ""
    project_type: str = ""
    impact: str = ""
    overall: str = ""
    line_items: str = ""
    funding: str = ""

    @property
    def is_substantive(self) -> bool:
        """True when at least one narrative field has content."""
        return any(str(getattr(self, f) or "").strip() for f in NARRATIVE_FIELDS)


@dataclass
class ApprovedRecord:
    project_name: str
    email: str = ""
    requested_amount: str = ""
    given_amount: str = ""
    funding_status: str = ""
    notes: str = ""
    speedtype: str = ""


META_FIELDS = {
    "given_amount": "amounts",
    "funding_status": "status",
    "due_date": "due",
    "notes": "notes",
}


@dataclass
class ProposalMeta:
    """Per-proposal admin fields, four parallel maps keyed by identity."""
    amounts: dict[str, str] = field(default_factory=dict)
    status: dict[str, str] = field(default_factory=dict)
    due: dict[str, str] = field(default_factory=dict)
    notes: dict[str, str] = field(default_factory=dict)

    def apply(self, identity: str, patch: dict) -> None:
        for key, value in patch.items():
            attr = META_FIELDS.get(key)
            if attr is None:
                raise KeyError(f"Unknown proposal field: {key}")
            getattr(self, attr)[identity] = "" if value is None else str(value)

    def given_amount(self, identity: str) -> str:
        return self.amounts.get(identity, "") or ""

    def funding_status(self, identity: str) -> str:
        return self.status.get(identity, "") or ""


AssignmentMap = dict[str, list[str]]


@dataclass
class AutoAssignConfig:
    meeting_dates: list[str] = field(default_factory=list)
    reviewer_count: int = 2
    reviewer_pool: list[str] = field(default_factory=list)
