"""
Cross-cycle matching — the same proposal in other funding cycles.

Names are normalised (lowercase, alphanumerics only, single spaces) and
compared by token-set Jaccard similarity. Identical normalised names score
exactly 1.0.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from fundtrack.config import CYCLE_MATCH_THRESHOLD
from fundtrack.data.normalize import parse_amount
from fundtrack.data.schemas import Dataset, ProposalMeta
from fundtrack.analytics.approved import proposal_url, requested_amount


def normalize_name(name) -> str:
    s = re.sub(r"[^a-z0-9\s]", "", str(name or "").lower())
    return re.sub(r"\s+", " ", s).strip()


def similarity(a: str, b: str) -> float:
    na, nb = normalize_name(a), normalize_name(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    ta, tb = set(na.split()), set(nb.split())
    return len(ta & tb) / len(ta | tb)


@dataclass
class CycleSnapshot:
    """Another cycle's dataset plus its proposal meta."""
    dataset: Dataset
    meta: ProposalMeta = field(default_factory=ProposalMeta)


@dataclass
class CycleMatch:
    dataset_id: str
    dataset_name: str
    project: str
    score: float
    requested: str = ""
    given: str = ""
    proposal_url: str = ""

    @property
    def exact(self) -> bool:
        return self.score >= 1.0


@dataclass
class CrossCycleResult:
    identity: str
    searched: bool
    matches: list[CycleMatch] = field(default_factory=list)
    total_requested: float = 0.0
    total_given: float = 0.0
    low_confidence: bool = False


def find_cross_cycle_matches(
    identity: str,
    cycles: list[CycleSnapshot],
    threshold: float = CYCLE_MATCH_THRESHOLD,
) -> CrossCycleResult:
    """Candidates at or above `threshold`, best first, with summed amounts."""
    identity = str(identity or "").strip()
    if not normalize_name(identity):
        return CrossCycleResult(identity=identity, searched=False)

    matches: list[CycleMatch] = []
    for cycle in cycles:
        ds = cycle.dataset
        for project in ds.proposals(include_hidden=True):
            score = similarity(identity, project)
            if score < threshold:
                continue
            found = ds.find_row(project)
            row = found[1] if found else None
            matches.append(CycleMatch(
                dataset_id=ds.id,
                dataset_name=ds.name,
                project=project,
                score=round(score, 4),
                requested=requested_amount(row) if row else "",
                given=cycle.meta.given_amount(project),
                proposal_url=proposal_url(row) if row else "",
            ))

    matches.sort(key=lambda m: m.score, reverse=True)
    total_requested = sum(parse_amount(m.requested) or 0.0 for m in matches)
    total_given = sum(parse_amount(m.given) or 0.0 for m in matches)
    return CrossCycleResult(
        identity=identity,
        searched=True,
        matches=matches,
        total_requested=total_requested,
        total_given=total_given,
        low_confidence=bool(matches) and not any(m.exact for m in matches),
    )
