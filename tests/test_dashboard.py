"""
Tests for fundtrack.analytics.dashboard — dataset KPIs and reviewer progress.
"""
import datetime as dt

import pytest

from conftest import make_submission

from fundtrack.analytics.dashboard import dataset_summary, reviewer_progress
from fundtrack.data.schemas import ApprovedRecord, ProposalMeta


@pytest.fixture()
def cycle_state():
    assignments = {
        "Campus Garden Expansion": ["Ana Lopez", "Ben Ross"],
        "Solar Bench Pilot": ["Ana Lopez"],
        "Bike Repair Hub": ["Ben Ross", "Cam Diaz"],
    }
    submissions = [
        make_submission("Campus Garden Expansion", "Ana", overall="Strong"),
        make_submission("Campus Garden Expansion", "Ben", overall="Agree"),
        make_submission("Bike Repair Hub", "Cam", overall=""),
    ]
    meta = ProposalMeta()
    meta.apply("Campus Garden Expansion", {"due_date": "2025-03-01"})
    meta.apply("Solar Bench Pilot", {"due_date": "2025-03-05"})
    meta.apply("Bike Repair Hub", {"due_date": "2025-03-20"})
    approved = [
        ApprovedRecord("Campus Garden Expansion", given_amount="$10,000", funding_status="partial"),
        ApprovedRecord("Bike Repair Hub", given_amount="7250.50", funding_status="Fully"),
        ApprovedRecord("Solar Bench Pilot", given_amount="", funding_status="none"),
    ]
    return assignments, submissions, meta, approved


class TestDatasetSummary:
    def test_counts(self, spring_dataset, cycle_state):
        summary = dataset_summary(spring_dataset, *cycle_state)
        assert summary["dataset_id"] == "dt_spring_2025"
        assert summary["proposals"] == 4
        assert summary["assigned"] == 3
        assert summary["approved"] == 3
        assert summary["by_status"] == {"Approved": 3, "Unassigned": 1}
        assert summary["notes_submitted"] == 2

    def test_funding_breakdown(self, spring_dataset, cycle_state):
        summary = dataset_summary(spring_dataset, *cycle_state)
        assert summary["fully_funded"] == 1
        assert summary["partially_funded"] == 1
        assert summary["not_funded"] == 1
        assert summary["total_granted"] == pytest.approx(17250.5)

    def test_requested_ignores_blank(self, spring_dataset, cycle_state):
        summary = dataset_summary(spring_dataset, *cycle_state)
        assert summary["total_requested"] == pytest.approx(23750.5)
        assert summary["avg_requested"] == pytest.approx(23750.5 / 3)

    def test_empty_cycle(self, spring_dataset):
        for row in spring_dataset.rows:
            row.hidden = True
        summary = dataset_summary(spring_dataset, {}, [], ProposalMeta(), [])
        assert summary["proposals"] == 0
        assert summary["assigned"] == 0
        assert summary["by_status"] == {}
        assert summary["avg_requested"] == 0.0
        assert summary["total_granted"] == 0.0


class TestReviewerProgress:
    def test_progress_rows(self, spring_dataset, cycle_state):
        assignments, submissions, meta, _ = cycle_state
        rows = reviewer_progress(spring_dataset, assignments, submissions, meta, [], today=dt.date(2025, 2, 27))
        by_name = {r["reviewer"]: r for r in rows}

        ana = by_name["Ana Lopez"]
        assert (ana["assigned"], ana["submitted"], ana["outstanding"]) == (2, 1, 1)
        assert ana["due_soon"] == 1
        assert ana["pct_complete"] == 50.0

        ben = by_name["Ben Ross"]
        assert (ben["assigned"], ben["submitted"], ben["due_soon"]) == (2, 1, 0)

        cam = by_name["Cam Diaz"]
        assert (cam["assigned"], cam["submitted"], cam["pct_complete"]) == (1, 1, 100.0)

    def test_sorted_by_outstanding(self, spring_dataset, cycle_state):
        assignments, submissions, meta, _ = cycle_state
        rows = reviewer_progress(spring_dataset, assignments, submissions, meta, [], today=dt.date(2025, 2, 27))
        assert [r["reviewer"] for r in rows] == ["Ana Lopez", "Ben Ross", "Cam Diaz"]

    def test_no_assignments(self, spring_dataset):
        assert reviewer_progress(spring_dataset, {}, [], ProposalMeta(), []) == []
