"""
Tests for fundtrack.services — engine + DataStore workflows.
"""
import asyncio

import pytest

from conftest import SPRING_HEADERS, SPRING_ROWS, make_dataset, run

from fundtrack import services
from fundtrack.analytics.assignment import AssignmentPlan
from fundtrack.data.schemas import AutoAssignConfig, ColumnChangeEvent, ValidationFailure
from fundtrack.data.store import StorageError


@pytest.fixture()
def saved(store, spring_dataset):
    run(store.save_dataset(spring_dataset))
    return store


async def _failing_write(*_args, **_kwargs):
    raise StorageError("disk full")


# ── Datasets / match column ───────────────────────────────────────────────────

class TestDatasets:
    def test_import_infers_and_locks(self, store, spring_csv):
        dataset, inference = run(services.import_dataset(store, spring_csv, name="Spring 2025", user="ana"))
        assert inference.column == "Project Name"
        loaded = run(store.load_dataset(dataset.id))
        assert loaded.match_column == "Project Name"
        assert loaded.match_column_locked
        assert loaded.match_history[0].changed_by == "ana"

    def test_missing_dataset(self, store):
        with pytest.raises(services.DatasetNotFound):
            run(services.load_context(store, "dt_missing"))

    def test_replace_keeps_locked_column(self, saved, spring_csv):
        dataset, inference = run(services.replace_dataset_rows(saved, "dt_spring_2025", spring_csv))
        assert inference is None
        assert dataset.id == "dt_spring_2025"
        assert dataset.name == "Spring 2025"
        assert dataset.match_column == "Project Name"

    def test_replace_reinfers_when_column_gone(self, store, tmp_path):
        ds = make_dataset(["Title", "Amount"], [("Garden", "5")], match_column="Title",
                          dataset_id="dt_old", locked=True)
        run(store.save_dataset(ds))
        path = tmp_path / "new.csv"
        path.write_text("Project Name,Amount\nGarden,5\nBikes,7\n")
        dataset, inference = run(services.replace_dataset_rows(store, "dt_old", path))
        assert inference.column == "Project Name"
        assert [(e.previous, e.column) for e in dataset.match_history] == [("Title", "Project Name")]

    def test_change_match_column_persists(self, saved):
        result = run(services.change_match_column(saved, "dt_spring_2025", "Email", confirm_unlock=True))
        assert isinstance(result, ColumnChangeEvent)
        assert run(saved.load_dataset("dt_spring_2025")).match_column == "Email"

    def test_change_match_column_locked(self, saved):
        result = run(services.change_match_column(saved, "dt_spring_2025", "Email"))
        assert result.code == "locked"
        assert run(saved.load_dataset("dt_spring_2025")).match_column == "Project Name"

    def test_set_column_lock(self, saved):
        run(services.set_column_lock(saved, "dt_spring_2025", False))
        assert not run(saved.load_dataset("dt_spring_2025")).match_column_locked

    def test_toggle_row_hidden(self, saved):
        assert run(services.toggle_row_hidden(saved, "dt_spring_2025", 1)) is True
        rows = run(services.tracker(saved, "dt_spring_2025"))
        assert "Solar Bench Pilot" not in [r["project"] for r in rows]
        assert run(services.toggle_row_hidden(saved, "dt_spring_2025", 1)) is False
        assert run(services.toggle_row_hidden(saved, "dt_spring_2025", 99)).code == "unknown_row"

    def test_toggle_pinned_column(self, saved):
        assert run(services.toggle_pinned_column(saved, "dt_spring_2025", "Speed Type")) == ["Speed Type"]
        ordered = run(saved.load_dataset("dt_spring_2025")).ordered_headers
        assert ordered == ["Speed Type"] + [h for h in SPRING_HEADERS if h != "Speed Type"]
        assert run(services.toggle_pinned_column(saved, "dt_spring_2025", "Speed Type")) == []
        assert run(services.toggle_pinned_column(saved, "dt_spring_2025", "Colour")).code == "unknown_column"


# ── Auto-assign ───────────────────────────────────────────────────────────────

class TestAutoAssign:
    def test_persists_plan_and_defaults(self, saved):
        plan = run(services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01\n2025-03-15", "Ana, Ben, Cam", 2))
        assert isinstance(plan, AssignmentPlan)
        assert plan.total_assignments == 8

        assignments = run(saved.load_assignments("dt_spring_2025"))
        assert assignments == plan.assignments
        meta = run(saved.load_proposal_meta("dt_spring_2025"))
        assert meta.due["Campus Garden Expansion"] == "2025-03-01"
        assert meta.due["Compost Outreach"] == "2025-03-15"
        cfg = run(saved.load_auto_assign_config())
        assert cfg == AutoAssignConfig(["2025-03-01", "2025-03-15"], 2, ["Ana", "Ben", "Cam"])

    def test_uses_saved_defaults(self, saved):
        run(saved.save_auto_assign_config(AutoAssignConfig(["2025-04-01"], 1, ["Ana", "Ben"])))
        plan = run(services.run_auto_assign(saved, "dt_spring_2025"))
        assert set(plan.due.values()) == {"2025-04-01"}
        assert all(len(v) == 1 for v in plan.assignments.values())

    def test_skips_hidden_and_merges(self, saved):
        run(services.update_assignees(saved, "dt_spring_2025", "Solar Bench Pilot", "Zed"))
        run(services.toggle_row_hidden(saved, "dt_spring_2025", 1))
        plan = run(services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "Ana, Ben", 1))
        assert "Solar Bench Pilot" not in plan.assignments
        assert run(saved.load_assignments("dt_spring_2025"))["Solar Bench Pilot"] == ["Zed"]

    def test_validation_writes_nothing(self, saved):
        result = run(services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "Ana", 2))
        assert result.code == "pool_too_small"
        assert run(saved.load_assignments("dt_spring_2025")) == {}

    def test_busy_while_locked(self, saved):
        async def scenario():
            async with saved.lock("dt_spring_2025"):
                return await services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "Ana, Ben", 1)

        result = run(scenario())
        assert isinstance(result, ValidationFailure)
        assert result.code == "busy"
        assert run(saved.load_assignments("dt_spring_2025")) == {}

    def test_manual_edit_during_run_is_kept(self, saved):
        run(services.toggle_row_hidden(saved, "dt_spring_2025", 1))

        async def scenario():
            return await asyncio.gather(
                services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "Ana, Ben", 1),
                services.update_assignees(saved, "dt_spring_2025", "Solar Bench Pilot", "Zed"),
            )

        plan, _ = run(scenario())
        assert isinstance(plan, AssignmentPlan)
        assignments = run(saved.load_assignments("dt_spring_2025"))
        assert assignments["Solar Bench Pilot"] == ["Zed"]
        assert all(assignments[identity] == names for identity, names in plan.assignments.items())

    def test_failed_assignment_write_saves_no_due_dates(self, saved, monkeypatch):
        monkeypatch.setattr(saved, "save_assignments", _failing_write)
        with pytest.raises(StorageError):
            run(services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "X, Y", 1))
        monkeypatch.undo()
        assert run(saved.load_proposal_meta("dt_spring_2025")).due == {}
        assert run(saved.load_assignments("dt_spring_2025")) == {}

    def test_failed_due_date_write_restores_assignments(self, saved, monkeypatch):
        run(services.update_assignees(saved, "dt_spring_2025", "Bike Repair Hub", "Zed"))
        monkeypatch.setattr(saved, "save_proposal_fields", _failing_write)
        with pytest.raises(StorageError):
            run(services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "X, Y", 1))
        monkeypatch.undo()
        assert run(saved.load_assignments("dt_spring_2025")) == {"Bike Repair Hub": ["Zed"]}
        assert run(saved.load_proposal_meta("dt_spring_2025")).due == {}

    def test_failed_config_write_restores_both(self, saved, monkeypatch):
        run(services.update_proposal_field(saved, "dt_spring_2025", "Bike Repair Hub", {"due_date": "2025-02-01"}))
        monkeypatch.setattr(saved, "save_auto_assign_config", _failing_write)
        with pytest.raises(StorageError):
            run(services.run_auto_assign(saved, "dt_spring_2025", "2025-03-01", "X, Y", 1))
        monkeypatch.undo()
        assert run(saved.load_assignments("dt_spring_2025")) == {}
        due = run(saved.load_proposal_meta("dt_spring_2025")).due
        assert due["Bike Repair Hub"] == "2025-02-01"
        assert due.get("Campus Garden Expansion", "") == ""


# ── Proposal fields, submissions ──────────────────────────────────────────────

class TestProposalFields:
    def test_saved_and_normalised(self, saved):
        clean = run(services.update_proposal_field(
            saved, "dt_spring_2025", " Bike Repair Hub ",
            {"funding_status": "Partial", "due_date": "03/20/2025", "given_amount": " 500 "},
        ))
        assert clean == {"funding_status": "partial", "due_date": "2025-03-20", "given_amount": "500"}
        rows = run(services.tracker(saved, "dt_spring_2025"))
        bike = next(r for r in rows if r["project"] == "Bike Repair Hub")
        assert bike["funding_status"] == "partial"

    @pytest.mark.parametrize("identity,patch,code", [
        ("", {"notes": "x"}, "no_identity"),
        ("Bike Repair Hub", {"colour": "red"}, "unknown_field"),
        ("Bike Repair Hub", {"funding_status": "most"}, "invalid_status"),
        ("Bike Repair Hub", {"due_date": "whenever"}, "invalid_date"),
    ])
    def test_rejected(self, saved, identity, patch, code):
        result = run(services.update_proposal_field(saved, "dt_spring_2025", identity, patch))
        assert result.code == code
        assert run(saved.load_proposal_meta("dt_spring_2025")).amounts == {}

    def test_clearing_status(self, saved):
        clean = run(services.update_proposal_field(saved, "dt_spring_2025", "Bike Repair Hub", {"funding_status": ""}))
        assert clean == {"funding_status": ""}


class TestSubmissions:
    def test_record_and_remove(self, saved):
        sub = run(services.record_submission(saved, "dt_spring_2025", {
            "project_name": " Bike Repair Hub ", "reviewer_name": "Ana", "overall": "Fund it",
        }))
        assert sub.project_name == "Bike Repair Hub"
        assert sub.id
        assert sub.timestamp
        assert [s.id for s in run(saved.load_submissions("dt_spring_2025"))] == [sub.id]
        assert run(services.remove_submission(saved, "dt_spring_2025", sub.id))

    def test_incomplete(self, saved):
        result = run(services.record_submission(saved, "dt_spring_2025", {"project_name": "Bike Repair Hub"}))
        assert result.code == "incomplete"


# ── Approved ──────────────────────────────────────────────────────────────────

class TestApproved:
    def test_toggle_and_speedtype_override(self, saved):
        assert run(services.toggle_approved(saved, "dt_spring_2025", "Campus Garden Expansion")) is True
        rec = run(services.set_approved_speedtype(saved, "dt_spring_2025", "Campus Garden Expansion", "19999999"))
        assert rec.speedtype == "19999999"
        assert run(saved.load_approved_records("dt_spring_2025"))[0].speedtype == "19999999"
        assert run(services.toggle_approved(saved, "dt_spring_2025", "Campus Garden Expansion")) is False
        assert run(saved.load_approved_records("dt_spring_2025")) == []

    def test_speedtype_validation(self, saved):
        run(services.toggle_approved(saved, "dt_spring_2025", "Campus Garden Expansion"))
        bad = run(services.set_approved_speedtype(saved, "dt_spring_2025", "Campus Garden Expansion", "02345678"))
        assert bad.code == "invalid_speedtype"
        missing = run(services.set_approved_speedtype(saved, "dt_spring_2025", "Bike Repair Hub", "12345678"))
        assert missing.code == "not_approved"

    def test_remap_picks_up_meta(self, saved):
        run(services.toggle_approved(saved, "dt_spring_2025", "Solar Bench Pilot"))
        run(services.update_proposal_field(saved, "dt_spring_2025", "Solar Bench Pilot", {"given_amount": "3500"}))
        records = run(services.remap_approved_records(saved, "dt_spring_2025"))
        assert records[0].given_amount == "3500"


# ── Cross-cycle / dashboards ──────────────────────────────────────────────────

class TestCrossCycle:
    def test_other_datasets_only(self, saved):
        fall = make_dataset(SPRING_HEADERS, SPRING_ROWS[:2], match_column="Project Name",
                            name="Fall 2024", dataset_id="dt_fall_2024")
        run(saved.save_dataset(fall))
        run(saved.save_proposal_field("dt_fall_2024", "Campus Garden Expansion", {"given_amount": "9000"}))

        result = run(services.find_matches(saved, "dt_spring_2025", "Campus Garden Expansion"))
        assert [m.dataset_id for m in result.matches] == ["dt_fall_2024"]
        assert result.total_given == 9000.0


def test_summary_and_progress(saved):
    run(services.update_assignees(saved, "dt_spring_2025", "Bike Repair Hub", "Ana Lopez"))
    run(services.record_submission(saved, "dt_spring_2025", {
        "project_name": "Bike Repair Hub", "reviewer_name": "Ana", "overall": "ok",
    }))
    summary = run(services.summary(saved, "dt_spring_2025"))
    assert summary["by_status"]["Ready for Review"] == 1
    progress = run(services.progress(saved, "dt_spring_2025"))
    assert progress == [{
        "reviewer": "Ana Lopez", "assigned": 1, "submitted": 1, "outstanding": 0,
        "due_soon": 0, "pct_complete": 100.0,
    }]
    assert run(services.reviewer_items(saved, "dt_spring_2025", "ana"))[0]["project"] == "Bike Repair Hub"


def test_clear_assignments(saved):
    run(services.update_assignees(saved, "dt_spring_2025", "Bike Repair Hub", "Ana"))
    run(services.clear_all_assignments(saved, "dt_spring_2025"))
    assert run(saved.load_assignments("dt_spring_2025")) == {}
