"""
Proposal status classification and the tracker table built on it.

Status is never stored. It is recomputed from current facts with a strict
decision list; the first matching rule wins:

  Approved > Unassigned > Ready for Review > Waiting Approval > Under Review
"""
from __future__ import annotations

from dataclasses import dataclass, field

from fundtrack.config import DUE_DATE_KEYS
from fundtrack.data.normalize import first_name, parse_amount, to_ymd
from fundtrack.data.schemas import (
    ApprovedRecord,
    AssignmentMap,
    Dataset,
    ProposalMeta,
    ProposalStatus,
    Row,
    Submission,
)
from fundtrack.analytics.approved import is_approved, proposal_url, requested_amount
from fundtrack.analytics.common import sum_amounts


@dataclass
class ProposalFacts:
    identity: str
    reviewers: list[str] = field(default_factory=list)
    submissions: list[Submission] = field(default_factory=list)
    given_amount: str = ""
    funding_status: str = ""
    approved: bool = False

    @property
    def substantive_count(self) -> int:
        return sum(1 for s in self.submissions if s.is_substantive)


def amount_filled(value) -> bool:
    n = parse_amount(value)
    return n is not None and n > 0


def classify(facts: ProposalFacts) -> ProposalStatus:
    if facts.approved:
        return ProposalStatus.APPROVED
    if not facts.reviewers:
        return ProposalStatus.UNASSIGNED

    status_filled = bool(str(facts.funding_status or "").strip())
    # substantive notes >= assignees stands in for "every assignee submitted"
    if (
        not amount_filled(facts.given_amount)
        and not status_filled
        and facts.substantive_count >= len(facts.reviewers)
    ):
        return ProposalStatus.READY_FOR_REVIEW
    if status_filled:
        return ProposalStatus.WAITING_APPROVAL
    return ProposalStatus.UNDER_REVIEW


def submissions_for(identity: str, submissions: list[Submission]) -> list[Submission]:
    key = str(identity or "").strip().lower()
    return [s for s in submissions if str(s.project_name or "").strip().lower() == key]


def gather_facts(
    identity: str,
    assignments: AssignmentMap,
    submissions: list[Submission],
    meta: ProposalMeta,
    approved_records: list[ApprovedRecord],
) -> ProposalFacts:
    return ProposalFacts(
        identity=identity,
        reviewers=list(assignments.get(identity, [])),
        submissions=submissions_for(identity, submissions),
        given_amount=meta.given_amount(identity),
        funding_status=meta.funding_status(identity),
        approved=is_approved(approved_records, identity),
    )


def has_submitted(reviewer: str, subs: list[Submission]) -> bool:
    """Reviewer matched to submissions by first name."""
    target = first_name(reviewer)
    return bool(target) and any(first_name(s.reviewer_name) == target for s in subs)


def due_date(identity: str, row: Row | None, meta: ProposalMeta) -> str:
    """Due date from meta, else from a due-date column on the row."""
    stored = to_ymd(meta.due.get(identity, ""))
    if stored or row is None:
        return stored
    by_lower = {h.strip().lower(): h for h in row.values}
    for key in DUE_DATE_KEYS:
        header = by_lower.get(key.lower())
        if header:
            ymd = to_ymd(row.get(header))
            if ymd:
                return ymd
    return ""


# ---------------------------------------------------------------------------
# Tracker table
# ---------------------------------------------------------------------------

def tracker_rows(
    dataset: Dataset,
    assignments: AssignmentMap,
    submissions: list[Submission],
    meta: ProposalMeta,
    approved_records: list[ApprovedRecord],
) -> list[dict]:
    """One row per visible proposal, in dataset order."""
    rows = []
    for identity in dataset.proposals():
        found = dataset.find_row(identity)
        row = found[1] if found else None
        facts = gather_facts(identity, assignments, submissions, meta, approved_records)
        requested = requested_amount(row) if row else ""

        rows.append({
            "project": identity,
            "requested": requested,
            "requested_value": parse_amount(requested),
            "given": facts.given_amount,
            "given_value": parse_amount(facts.given_amount),
            "funding_status": facts.funding_status,
            "notes": meta.notes.get(identity, ""),
            "assigned": facts.reviewers,
            "assigned_count": len(facts.reviewers),
            "submitted_count": facts.substantive_count,
            "reviewers": [
                {"name": name, "submitted": has_submitted(name, facts.submissions)}
                for name in facts.reviewers
            ],
            "status": classify(facts).value,
            "due_date": due_date(identity, row, meta),
            "proposal_url": proposal_url(row) if row else "",
        })
    return rows


def reviewer_feed(
    dataset: Dataset,
    assignments: AssignmentMap,
    submissions: list[Submission],
    meta: ProposalMeta,
    approved_records: list[ApprovedRecord],
    reviewer: str | None = None,
) -> list[dict]:
    """(reviewer, proposal) work items, optionally for one reviewer (first-name match)."""
    wanted = first_name(reviewer) if reviewer else ""
    items = []
    for row in tracker_rows(dataset, assignments, submissions, meta, approved_records):
        for r in row["reviewers"]:
            if wanted and first_name(r["name"]) != wanted:
                continue
            items.append({
                "reviewer": r["name"],
                "project": row["project"],
                "due_date": row["due_date"],
                "submitted": r["submitted"],
                "status": row["status"],
                "proposal_url": row["proposal_url"],
            })
    return items


def total_given(dataset: Dataset, meta: ProposalMeta) -> float:
    return sum_amounts(meta.given_amount(p) for p in dataset.proposals())
