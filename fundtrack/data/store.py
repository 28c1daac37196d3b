"""
DataStore — JSON-file persistence for datasets and everything scoped to them.

One folder per dataset under DATASETS_FOLDER:
    dataset.json, submissions.json, assignments.json, proposals.json, approved.json
Auto-assign defaults live in CONFIG_FOLDER/auto_assign.json.

All methods are coroutines; blocking file I/O runs in a worker thread.
Each file is replaced atomically, and read-merge-write updates of one
dataset's files run one at a time. Failures surface as StorageError and
are never retried here.
"""
from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
from dataclasses import asdict, fields
from pathlib import Path

from fundtrack.config import CONFIG_FOLDER, DATASETS_FOLDER, DEFAULT_REVIEWER_COUNT, DEFAULT_REVIEWERS
from fundtrack.data.schemas import (
    ApprovedRecord,
    AssignmentMap,
    AutoAssignConfig,
    Dataset,
    ProposalMeta,
    Submission,
)


class StorageError(RuntimeError):
    """Transient read/write failure; state on disk is unchanged."""


def _read_json(path: Path, default):
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text())
    except (OSError, ValueError) as exc:
        raise StorageError(f"Failed to read {path.name}: {exc}") from exc


def _write_json(path: Path, data) -> None:
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp", delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(json.dumps(data, default=str, indent=1))
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise StorageError(f"Failed to write {path.name}: {exc}") from exc


def _known_fields(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class DataStore:
    """Dataset-scoped persistence backed by JSON files."""

    def __init__(self, root: Path = DATASETS_FOLDER, config_dir: Path = CONFIG_FOLDER) -> None:
        self.root = Path(root)
        self.config_dir = Path(config_dir)
        self._locks: dict[str, asyncio.Lock] = {}
        self._file_locks: dict[str, asyncio.Lock] = {}

    def _dir(self, dataset_id: str) -> Path:
        if not dataset_id or "/" in dataset_id or "\\" in dataset_id or dataset_id in (".", ".."):
            raise StorageError(f"Invalid dataset id: {dataset_id!r}")
        return self.root / dataset_id

    def lock(self, dataset_id: str) -> asyncio.Lock:
        """Per-dataset lock held by workflows that mutate the dataset's state."""
        if dataset_id not in self._locks:
            self._locks[dataset_id] = asyncio.Lock()
        return self._locks[dataset_id]

    def _file_lock(self, dataset_id: str) -> asyncio.Lock:
        # Separate from lock() so workflows holding it can still call the store.
        if dataset_id not in self._file_locks:
            self._file_locks[dataset_id] = asyncio.Lock()
        return self._file_locks[dataset_id]

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    async def list_datasets(self) -> list[Dataset]:
        def _load_all() -> list[Dataset]:
            if not self.root.exists():
                return []
            out = []
            for path in sorted(self.root.glob("*/dataset.json")):
                out.append(Dataset.from_dict(_read_json(path, {})))
            return sorted(out, key=lambda d: d.created)
        return await asyncio.to_thread(_load_all)

    async def load_dataset(self, dataset_id: str) -> Dataset | None:
        path = self._dir(dataset_id) / "dataset.json"
        data = await asyncio.to_thread(_read_json, path, None)
        return Dataset.from_dict(data) if data else None

    async def save_dataset(self, dataset: Dataset) -> None:
        path = self._dir(dataset.id) / "dataset.json"
        await asyncio.to_thread(_write_json, path, dataset.to_dict())

    async def delete_dataset(self, dataset_id: str) -> None:
        target = self._dir(dataset_id)

        def _remove() -> None:
            try:
                shutil.rmtree(target)
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise StorageError(f"Failed to delete dataset {dataset_id}: {exc}") from exc
        await asyncio.to_thread(_remove)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def load_submissions(self, dataset_id: str) -> list[Submission]:
        path = self._dir(dataset_id) / "submissions.json"
        raw = await asyncio.to_thread(_read_json, path, [])
        subs = [Submission(**_known_fields(Submission, s)) for s in raw]
        return sorted(subs, key=lambda s: s.timestamp, reverse=True)

    async def save_submission(self, dataset_id: str, submission: Submission) -> None:
        """Insert or replace by id."""
        path = self._dir(dataset_id) / "submissions.json"
        async with self._file_lock(dataset_id):
            subs = await self.load_submissions(dataset_id)
            subs = [s for s in subs if s.id != submission.id] + [submission]
            await asyncio.to_thread(_write_json, path, [asdict(s) for s in subs])

    async def delete_submission(self, dataset_id: str, submission_id: str) -> bool:
        path = self._dir(dataset_id) / "submissions.json"
        async with self._file_lock(dataset_id):
            subs = await self.load_submissions(dataset_id)
            kept = [s for s in subs if s.id != submission_id]
            if len(kept) == len(subs):
                return False
            await asyncio.to_thread(_write_json, path, [asdict(s) for s in kept])
        return True

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    async def load_assignments(self, dataset_id: str) -> AssignmentMap:
        path = self._dir(dataset_id) / "assignments.json"
        raw = await asyncio.to_thread(_read_json, path, {})
        return {str(k): [str(n) for n in v] for k, v in raw.items()}

    async def save_assignments(self, dataset_id: str, assignments: AssignmentMap) -> None:
        """Replace the whole assignment map."""
        path = self._dir(dataset_id) / "assignments.json"
        await asyncio.to_thread(_write_json, path, assignments)

    # ------------------------------------------------------------------
    # Proposal meta (given amount, funding status, due date, notes)
    # ------------------------------------------------------------------

    async def load_proposal_meta(self, dataset_id: str) -> ProposalMeta:
        path = self._dir(dataset_id) / "proposals.json"
        raw = await asyncio.to_thread(_read_json, path, {})
        meta = ProposalMeta()
        for identity, patch in raw.items():
            meta.apply(identity, patch)
        return meta

    async def save_proposal_field(self, dataset_id: str, identity: str, patch: dict) -> None:
        """Merge `patch` into the stored fields of one proposal."""
        await self.save_proposal_fields(dataset_id, {identity: patch})

    async def save_proposal_fields(self, dataset_id: str, patches: dict[str, dict]) -> None:
        """Merge several proposals' patches in a single write."""
        path = self._dir(dataset_id) / "proposals.json"

        def _merge() -> None:
            raw = _read_json(path, {})
            for identity, patch in patches.items():
                ProposalMeta().apply(identity, patch)   # validates field names
                raw.setdefault(identity, {}).update({k: "" if v is None else str(v) for k, v in patch.items()})
            _write_json(path, raw)

        async with self._file_lock(dataset_id):
            await asyncio.to_thread(_merge)

    # ------------------------------------------------------------------
    # Approved records
    # ------------------------------------------------------------------

    async def load_approved_records(self, dataset_id: str) -> list[ApprovedRecord]:
        path = self._dir(dataset_id) / "approved.json"
        raw = await asyncio.to_thread(_read_json, path, {"rows": []})
        return [ApprovedRecord(**_known_fields(ApprovedRecord, r)) for r in raw.get("rows", [])]

    async def save_approved_records(self, dataset_id: str, records: list[ApprovedRecord]) -> None:
        path = self._dir(dataset_id) / "approved.json"
        dataset = await self.load_dataset(dataset_id)
        payload = {
            "rows": [asdict(r) for r in records],
            "dataset_name": dataset.name if dataset else "(unknown dataset)",
        }
        await asyncio.to_thread(_write_json, path, payload)

    # ------------------------------------------------------------------
    # Auto-assign defaults (global)
    # ------------------------------------------------------------------

    async def load_auto_assign_config(self) -> AutoAssignConfig:
        path = self.config_dir / "auto_assign.json"
        raw = await asyncio.to_thread(_read_json, path, {})
        cfg = AutoAssignConfig(**_known_fields(AutoAssignConfig, raw))
        if not cfg.reviewer_pool:
            cfg.reviewer_pool = list(DEFAULT_REVIEWERS)
        if not cfg.reviewer_count:
            cfg.reviewer_count = DEFAULT_REVIEWER_COUNT
        return cfg

    async def save_auto_assign_config(self, cfg: AutoAssignConfig) -> None:
        path = self.config_dir / "auto_assign.json"
        await asyncio.to_thread(_write_json, path, asdict(cfg))
