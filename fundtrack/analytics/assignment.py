"""
Assignment balancer — reviewers to proposals, proposals to meeting dates.

Dates: proposals are cut into contiguous chunks of ceil(P / D) in row order;
chunk i is due on meeting date i and the last date absorbs the remainder.

Reviewers: each proposal takes the k least-loaded reviewers, ties broken by a
priority order that rotates after every proposal. Loads are bumped as soon as
a combo is chosen (greedy, no backtracking), which keeps every reviewer within
one assignment of the least-loaded one.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Iterable

from fundtrack.config import DEFAULT_REVIEWER_COUNT, ROTATION_STEP
from fundtrack.data.normalize import split_names, to_ymd
from fundtrack.data.schemas import AssignmentMap, AutoAssignConfig, ValidationFailure


def parse_meeting_dates(raw: str | Iterable[str] | None) -> list[str]:
    """Newline / comma separated (or a list of) dates -> sorted unique ISO dates."""
    if not raw:
        return []
    parts = re.split(r"[\n,]", raw) if isinstance(raw, str) else list(raw)
    return sorted({d for d in (to_ymd(p) for p in parts) if d})


def parse_names(raw: str | Iterable[str] | None) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        return split_names(raw)
    return list(dict.fromkeys(str(n).strip() for n in raw if n and str(n).strip()))


class ReviewerBalancer:
    """Load counters plus a rotating tie-break order over a reviewer pool."""

    def __init__(self, pool: Iterable[str], rotation_step: int = ROTATION_STEP) -> None:
        self.pool = parse_names(pool)
        self.loads: dict[str, int] = {name: 0 for name in self.pool}
        self.rotation_step = rotation_step
        self._offset = 0

    def next_combo(self, k: int) -> list[str]:
        n = len(self.pool)
        if n == 0:
            return []
        order = sorted(
            range(n),
            key=lambda i: (self.loads[self.pool[i]], (i + self._offset) % n),
        )
        chosen = [self.pool[i] for i in order[:k]]
        for name in chosen:
            self.loads[name] += 1
        self._offset = (self._offset + self.rotation_step) % n
        return chosen


def chunk_due_dates(proposals: list[str], dates: list[str]) -> dict[str, str]:
    if not dates:
        return {}
    chunk_size = max(1, math.ceil(len(proposals) / len(dates)))
    due: dict[str, str] = {}
    idx = counter = 0
    for identity in proposals:
        due[identity] = dates[idx]
        counter += 1
        if counter >= chunk_size and idx < len(dates) - 1:
            idx += 1
            counter = 0
    return due


@dataclass
class AssignmentPlan:
    due: dict[str, str] = field(default_factory=dict)
    assignments: AssignmentMap = field(default_factory=dict)
    loads: dict[str, int] = field(default_factory=dict)
    config: AutoAssignConfig = field(default_factory=AutoAssignConfig)

    @property
    def total_assignments(self) -> int:
        return sum(len(v) for v in self.assignments.values())


def balance_assignments(
    proposals: Iterable[str],
    reviewer_pool: str | Iterable[str],
    meeting_dates: str | Iterable[str],
    reviewers_per_proposal: int = DEFAULT_REVIEWER_COUNT,
    rotation_step: int = ROTATION_STEP,
) -> AssignmentPlan | ValidationFailure:
    """Due date and reviewer list for every proposal, or why not."""
    k = int(reviewers_per_proposal or 0)
    if k < 1:
        return ValidationFailure("invalid_count", "Reviewers per proposal must be at least 1.")

    dates = parse_meeting_dates(meeting_dates)
    if not dates:
        return ValidationFailure("no_dates", "Please enter at least one meeting date.")

    balancer = ReviewerBalancer(parse_names(reviewer_pool), rotation_step)
    if len(balancer.pool) < k:
        return ValidationFailure(
            "pool_too_small",
            f"Reviewer pool has {len(balancer.pool)} name(s); {k} needed per proposal.",
        )

    idents = list(dict.fromkeys(p.strip() for p in proposals if p and p.strip()))
    if not idents:
        return ValidationFailure("no_proposals", "No visible projects to assign.")

    assignments = {identity: balancer.next_combo(k) for identity in idents}
    return AssignmentPlan(
        due=chunk_due_dates(idents, dates),
        assignments=assignments,
        loads=dict(balancer.loads),
        config=AutoAssignConfig(meeting_dates=dates, reviewer_count=k, reviewer_pool=list(balancer.pool)),
    )


# ---------------------------------------------------------------------------
# Manual edits
# ---------------------------------------------------------------------------

def edit_assignees(assignments: AssignmentMap, identity: str, raw: str | Iterable[str]) -> AssignmentMap:
    """Replace one proposal's reviewers; an empty list removes the entry."""
    out = dict(assignments)
    names = parse_names(raw)
    if names:
        out[identity] = names
    else:
        out.pop(identity, None)
    return out


def clear_assignments() -> AssignmentMap:
    return {}
