"""
Pytest fixtures for fundtrack tests.

Provides dataset factories, a sample funding cycle, and a DataStore rooted in
a per-test temporary directory. FUNDTRACK_DATA_DIR is pointed at a scratch
folder before anything imports fundtrack.config, so no test touches the real
data directory.
"""
import asyncio
import os
import tempfile

os.environ.setdefault("FUNDTRACK_DATA_DIR", tempfile.mkdtemp(prefix="fundtrack-tests-"))

import pytest  # noqa: E402

from fundtrack.data.schemas import Dataset, Row, Submission  # noqa: E402
from fundtrack.data.store import DataStore  # noqa: E402


SPRING_HEADERS = ["Timestamp", "Email", "Project Name", "Requested Amount", "Attachment", "Speed Type"]

SPRING_ROWS = [
    ("2025-01-10", "ana@example.edu", "Campus Garden Expansion", "$12,500", "garden_budget.pdf", "12345678"),
    ("2025-01-11", "ben@example.edu", "Solar Bench Pilot", "4000", "bench.docx", ""),
    ("2025-01-12", "cam@example.edu", "Bike Repair Hub", "$7,250.50", "hub.pdf", "Acct: 1 8765432"),
    ("2025-01-13", "dee@example.edu", "Compost Outreach", "", "compost.pdf", ""),
]


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_dataset(headers, rows, match_column="", name="Test Cycle", dataset_id="dt_test",
                 locked=False, hidden=(), links=None) -> Dataset:
    """Build a Dataset from header names and row tuples.

    `hidden` is a collection of row indexes to mark hidden; `links` maps
    row index -> {header: url}.
    """
    links = links or {}
    return Dataset(
        id=dataset_id,
        name=name,
        headers=list(headers),
        rows=[
            Row(values=dict(zip(headers, values)), hidden=i in hidden, links=dict(links.get(i, {})))
            for i, values in enumerate(rows)
        ],
        match_column=match_column,
        match_column_locked=locked,
    )


def make_submission(project, reviewer, overall="", line_items="", funding="", sub_id=None, timestamp="2025-02-01T10:00:00"):
    return Submission(
        id=sub_id or f"{project}-{reviewer}".replace(" ", "_").lower(),
        project_name=project,
        reviewer_name=reviewer,
        timestamp=timestamp,
        overall=overall,
        line_items=line_items,
        funding=funding,
    )


def run(coro):
    """Drive one DataStore / services coroutine to completion."""
    return asyncio.run(coro)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def spring_dataset():
    return make_dataset(SPRING_HEADERS, SPRING_ROWS, match_column="Project Name",
                        name="Spring 2025", dataset_id="dt_spring_2025", locked=True)


@pytest.fixture()
def store(tmp_path):
    return DataStore(tmp_path / "datasets", tmp_path / "config")


@pytest.fixture()
def spring_csv(tmp_path):
    """The sample cycle written out as a CSV export."""
    import csv

    path = tmp_path / "spring_2025.csv"
    with open(path, "w", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(SPRING_HEADERS)
        writer.writerows(SPRING_ROWS)
    return path
