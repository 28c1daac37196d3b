"""
Approved workflow — approval toggle, remap, and the row lookups it shares
with the tracker and the cross-cycle matcher (requested amount, email,
proposal link).
"""
from __future__ import annotations

import re
from dataclasses import replace

from fundtrack.config import LINK_PREFERENCE, REQUEST_KEYS
from fundtrack.data.normalize import canonicalize_sharepoint_link, looks_like_url
from fundtrack.data.schemas import ApprovedRecord, Dataset, ProposalMeta, Row, ValidationFailure
from fundtrack.analytics.speedtype import extract_speedtype

_REQUEST_RE = re.compile(r"request(ed)?", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"amount|budget", re.IGNORECASE)
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)+")


# ---------------------------------------------------------------------------
# Row lookups
# ---------------------------------------------------------------------------

def requested_amount(row: Row) -> str:
    """Requested amount cell: known headers, then *request*, then *amount* / *budget*."""
    by_lower = {h.strip().lower(): h for h in row.values}
    for key in REQUEST_KEYS:
        header = by_lower.get(key.lower())
        if header and row.get(header):
            return row.get(header)

    for pattern in (_REQUEST_RE, _AMOUNT_RE):
        for header in row.values:
            if pattern.search(header) and row.get(header):
                return row.get(header)
    return ""


def find_email(row: Row) -> str:
    for header in row.values:
        if "email" in header.lower():
            m = _EMAIL_RE.search(row.get(header))
            if m:
                return m.group(0)
    m = _EMAIL_RE.search(row.text())
    return m.group(0) if m else ""


def proposal_url(row: Row) -> str:
    """Best document link for a row, SharePoint links made browsable."""
    links = {h.strip().lower(): url for h, url in row.links.items() if url}
    for header in LINK_PREFERENCE:
        url = links.get(header.lower())
        if url:
            return canonicalize_sharepoint_link(url) or ""
    if links:
        return canonicalize_sharepoint_link(next(iter(links.values()))) or ""
    for value in row.values.values():
        if looks_like_url(value):
            return canonicalize_sharepoint_link(str(value).strip()) or ""
    return ""


# ---------------------------------------------------------------------------
# Approval records
# ---------------------------------------------------------------------------

def find_approved(records: list[ApprovedRecord], identity: str) -> ApprovedRecord | None:
    key = str(identity or "").strip()
    for rec in records:
        if rec.project_name.strip() == key:
            return rec
    return None


def is_approved(records: list[ApprovedRecord], identity: str) -> bool:
    return find_approved(records, identity) is not None


def _new_record(
    dataset: Dataset,
    identity: str,
    meta: ProposalMeta,
    speedtype_column: str | None,
) -> ApprovedRecord:
    found = dataset.find_row(identity)
    row = found[1] if found else Row()
    return ApprovedRecord(
        project_name=identity,
        email=find_email(row),
        requested_amount=requested_amount(row),
        given_amount=meta.given_amount(identity),
        funding_status=meta.funding_status(identity),
        notes=meta.notes.get(identity, ""),
        speedtype=extract_speedtype(row, column=speedtype_column),
    )


def toggle_approval(
    dataset: Dataset,
    identity: str,
    records: list[ApprovedRecord],
    meta: ProposalMeta,
    speedtype_column: str | None = None,
) -> tuple[list[ApprovedRecord], bool] | ValidationFailure:
    """Flip approval for one proposal.

    Returns the new record list and whether the proposal is now approved.
    The input list is not modified.
    """
    key = str(identity or "").strip()
    if not key:
        return ValidationFailure("no_identity", "No proposal selected.")

    if is_approved(records, key):
        return [r for r in records if r.project_name.strip() != key], False
    return records + [_new_record(dataset, key, meta, speedtype_column)], True


def remap_approved(
    dataset: Dataset,
    records: list[ApprovedRecord],
    meta: ProposalMeta,
    speedtype_column: str | None = None,
) -> list[ApprovedRecord]:
    """Refresh every approved record from the current dataset and meta.

    Email, speedtype and requested amount come from the dataset row (kept when
    the row is gone); given amount, funding status and notes from meta.
    """
    out = []
    for rec in records:
        identity = rec.project_name.strip()
        found = dataset.find_row(identity)
        if found:
            row = found[1]
            rec = replace(
                rec,
                email=find_email(row) or rec.email,
                requested_amount=requested_amount(row) or rec.requested_amount,
                speedtype=extract_speedtype(row, approved=rec, column=speedtype_column),
            )
        rec = replace(
            rec,
            given_amount=meta.amounts.get(identity, rec.given_amount),
            funding_status=meta.status.get(identity, rec.funding_status),
            notes=meta.notes.get(identity, rec.notes),
        )
        out.append(rec)
    return out
