#!/usr/bin/env python3
"""
Fundtrack CLI — import cycles, inspect the match column, assign reviewers,
check status, search other cycles, export reports, run the API server.

USAGE:
  python -m fundtrack.cli import proposals_2025.xlsx --name "Spring 2025"
  python -m fundtrack.cli list
  python -m fundtrack.cli infer <dataset_id>                       # Column scores
  python -m fundtrack.cli infer <dataset_id> --set "Project Title" --confirm-unlock
  python -m fundtrack.cli status <dataset_id>                      # Tracker table
  python -m fundtrack.cli assign <dataset_id> --dates 2025-03-01,2025-03-15 --count 2
  python -m fundtrack.cli match <dataset_id> "Campus Garden Expansion"
  python -m fundtrack.cli approved <dataset_id> --remap --excel
  python -m fundtrack.cli report <dataset_id>                      # Tracker Excel

  python -m fundtrack.cli serve                                    # Start API server
  python -m fundtrack.cli serve --port 8000
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import datetime

from fundtrack import services
from fundtrack.config import CYCLE_MATCH_THRESHOLD, REPORTS_FOLDER
from fundtrack.data.store import DataStore, StorageError
from fundtrack.data.schemas import ValidationFailure
from fundtrack.analytics.columns import infer_match_column


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(f"  FUNDTRACK — {title}")
    print("=" * 70)


def _fail(result: ValidationFailure) -> None:
    print(f"\n  [{result.code}] {result.message}\n")
    sys.exit(1)


def _money(value) -> str:
    return f"${value:,.0f}" if value else "-"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def cmd_import(args):
    """Import a spreadsheet as a new cycle."""
    _banner("IMPORT")
    store = DataStore()
    dataset, inference = await services.import_dataset(store, args.file, args.name, args.user)
    print(f"  Dataset id: {dataset.id}")
    if isinstance(inference, ValidationFailure):
        print(f"  Match column not set: {inference.message}")
        return
    flag = "  (low confidence — check it)" if inference.low_confidence else ""
    print(f"  Match column: {inference.column} [{inference.reason}]{flag}")
    print(f"  Proposals: {len(dataset.proposals())}\n")


async def cmd_list(args):
    store = DataStore()
    datasets = await store.list_datasets()
    if not datasets:
        print("\n  No datasets yet. Run `fundtrack import <file>`.\n")
        return
    print(f"\nDATASETS ({len(datasets)}):\n")
    for ds in datasets:
        lock = "locked" if ds.match_column_locked else "unlocked"
        print(f"  {ds.id:<48}{ds.name[:30]:<32}{len(ds.proposals()):>5} proposals  "
              f"[{ds.key_column} / {lock}]")
    print()


async def cmd_infer(args):
    """Show column scores, or change the match column."""
    store = DataStore()
    if args.set:
        result = await services.change_match_column(
            store, args.dataset_id, args.set, args.user,
            confirm_unlock=args.confirm_unlock, force=args.force,
        )
        if isinstance(result, ValidationFailure):
            _fail(result)
        print(f"\n  Match column {'unchanged' if result is None else 'set to ' + args.set}\n")
        return

    dataset = await services.require_dataset(store, args.dataset_id)
    submissions = await store.load_submissions(args.dataset_id)
    result = infer_match_column(dataset, submissions)
    if isinstance(result, ValidationFailure):
        _fail(result)

    _banner(f"MATCH COLUMN — {dataset.name}")
    print(f"  Current: {dataset.key_column} ({'locked' if dataset.match_column_locked else 'unlocked'})")
    print(f"  Inferred: {result.column} [{result.reason}]"
          f"{'  LOW CONFIDENCE' if result.low_confidence else ''}\n")
    print(f"  {'Header':<36}{'Score':>9}{'Hint':>6}{'Uniq':>7}{'Full':>7}{'File':>7}{'Subs':>7}")
    for s in result.scores:
        print(f"  {s.header[:34]:<36}{s.score:>9.1f}{'y' if s.name_hint else '':>6}"
              f"{s.unique_ratio:>7.2f}{s.non_empty_ratio:>7.2f}{s.file_like_ratio:>7.2f}"
              f"{s.submission_match_ratio:>7.2f}")
    if dataset.match_history:
        print("\n  History:")
        for e in dataset.match_history:
            print(f"    {e.changed_at}  {e.changed_by:<12}{e.previous or '(none)'} -> {e.column}")
    print()


async def cmd_status(args):
    store = DataStore()
    rows = await services.tracker(store, args.dataset_id)
    _banner("TRACKER")
    print(f"\n  {'Project':<40}{'Status':<18}{'Requested':>12}{'Given':>10}  {'Due':<11}Reviewers")
    for r in rows:
        reviewers = ", ".join(f"{x['name']}*" if x["submitted"] else x["name"] for x in r["reviewers"])
        print(f"  {r['project'][:38]:<40}{r['status']:<18}{_money(r['requested_value']):>12}"
              f"{_money(r['given_value']):>10}  {r['due_date'] or '-':<11}{reviewers}")
    print(f"\n  {len(rows)} proposals  (* = notes submitted)\n")


async def cmd_assign(args):
    """Balance reviewers and meeting dates across visible proposals."""
    store = DataStore()
    plan = await services.run_auto_assign(store, args.dataset_id, args.dates, args.reviewers, args.count)
    if isinstance(plan, ValidationFailure):
        _fail(plan)
    _banner("AUTO-ASSIGN")
    for identity, names in plan.assignments.items():
        print(f"  {identity[:40]:<42}{plan.due[identity]:<12}{', '.join(names)}")
    print("\n  Loads: " + ", ".join(f"{n}={c}" for n, c in plan.loads.items()) + "\n")


async def cmd_match(args):
    store = DataStore()
    result = await services.find_matches(store, args.dataset_id, args.identity, args.threshold)
    if not result.searched:
        print("\n  Nothing to match: empty proposal name.\n")
        return
    _banner(f"OTHER CYCLES — {result.identity}")
    if not result.matches:
        print("  No matches in other cycles.\n")
        return
    for m in result.matches:
        print(f"  {m.score:>5.2f}  {m.dataset_name[:24]:<26}{m.project[:40]:<42}"
              f"req {m.requested or '-':<12}given {m.given or '-'}")
    print(f"\n  Total requested {_money(result.total_requested)}  |  total given {_money(result.total_given)}")
    if result.low_confidence:
        print("  No exact name match — verify these are the same proposal.")
    print()


async def cmd_approved(args):
    from fundtrack.reports import approved_report

    store = DataStore()
    if args.remap:
        records = await services.remap_approved_records(store, args.dataset_id, args.speedtype_column)
        print(f"\n  Remapped {len(records)} approved record(s)")

    ctx = await services.load_context(store, args.dataset_id)
    data = approved_report.generate_json(ctx)
    _banner(f"APPROVED — {data['dataset_name']}")
    for r in data["records"]:
        print(f"  {r['project_name'][:40]:<42}{_money(r['given_value']):>10}  {r['speedtype'] or 'NO SPEEDTYPE'}")
    print(f"\n  {data['count']} approved  |  requested {_money(data['total_requested'])}"
          f"  |  given {_money(data['total_given'])}")

    if args.excel:
        out = REPORTS_FOLDER / f"Approved_{ctx.dataset.id}_{datetime.now():%Y%m%d_%H%M%S}.xlsx"
        approved_report.generate_excel(ctx, out)
        print(f"  Saved: {out}")
    print()


async def cmd_report(args):
    from fundtrack.reports import tracker_report

    store = DataStore()
    ctx = await services.load_context(store, args.dataset_id)
    out = REPORTS_FOLDER / f"Tracker_{ctx.dataset.id}_{datetime.now():%Y%m%d_%H%M%S}.xlsx"
    tracker_report.generate_excel(ctx, out)
    print(f"\n  Tracker report saved to: {out}\n")


def cmd_serve(args):
    """Start the API server."""
    import uvicorn
    print(f"\nStarting Fundtrack API on port {args.port}...")
    uvicorn.run("fundtrack.main:app", host="0.0.0.0", port=args.port, reload=args.reload,
                timeout_keep_alive=65)


def _run(coro_fn):
    def runner(args):
        try:
            asyncio.run(coro_fn(args))
        except services.DatasetNotFound as exc:
            print(f"\n  {exc}\n")
            sys.exit(1)
        except StorageError as exc:
            print(f"\n  Storage error: {exc}\n")
            sys.exit(2)
    return runner


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Fundtrack — funding proposal review tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    import_parser = subparsers.add_parser("import", help="Import a .csv/.xlsx as a new cycle")
    import_parser.add_argument("file", help="Spreadsheet path")
    import_parser.add_argument("--name", help="Dataset name (default: sheet name)")
    import_parser.add_argument("--user", default="cli", help="Recorded in the column history")
    import_parser.set_defaults(func=_run(cmd_import))

    list_parser = subparsers.add_parser("list", help="List datasets")
    list_parser.set_defaults(func=_run(cmd_list))

    infer_parser = subparsers.add_parser("infer", help="Show or change the match column")
    infer_parser.add_argument("dataset_id")
    infer_parser.add_argument("--set", help="Header to use as the match column")
    infer_parser.add_argument("--user", default="cli")
    infer_parser.add_argument("--confirm-unlock", action="store_true", help="Change a locked column")
    infer_parser.add_argument("--force", action="store_true", help="Accept a mostly-empty / attachment column")
    infer_parser.set_defaults(func=_run(cmd_infer))

    status_parser = subparsers.add_parser("status", help="Tracker table with derived statuses")
    status_parser.add_argument("dataset_id")
    status_parser.set_defaults(func=_run(cmd_status))

    assign_parser = subparsers.add_parser("assign", help="Auto-assign reviewers and due dates")
    assign_parser.add_argument("dataset_id")
    assign_parser.add_argument("--dates", help="Comma separated meeting dates (default: last run)")
    assign_parser.add_argument("--reviewers", help="Comma separated reviewer pool (default: last run)")
    assign_parser.add_argument("--count", type=int, help="Reviewers per proposal (default: last run)")
    assign_parser.set_defaults(func=_run(cmd_assign))

    match_parser = subparsers.add_parser("match", help="Find a proposal in other cycles")
    match_parser.add_argument("dataset_id")
    match_parser.add_argument("identity", help="Proposal name")
    match_parser.add_argument("--threshold", type=float, default=CYCLE_MATCH_THRESHOLD)
    match_parser.set_defaults(func=_run(cmd_match))

    approved_parser = subparsers.add_parser("approved", help="Approved proposals and speedtypes")
    approved_parser.add_argument("dataset_id")
    approved_parser.add_argument("--remap", action="store_true", help="Refresh records from the dataset first")
    approved_parser.add_argument("--speedtype-column", help="Column holding speedtypes")
    approved_parser.add_argument("--excel", action="store_true", help="Also write an Excel export")
    approved_parser.set_defaults(func=_run(cmd_approved))

    report_parser = subparsers.add_parser("report", help="Tracker Excel report")
    report_parser.add_argument("dataset_id")
    report_parser.set_defaults(func=_run(cmd_report))

    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")), help="Port (default 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
