"""
Pydantic request / response schemas for the API.
"""
from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    datasets: int
    data_dir: str


class DatasetInfo(BaseModel):
    id: str
    name: str
    rows: int
    proposals: int
    match_column: str
    match_column_locked: bool
    created: str


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class MatchColumnRequest(BaseModel):
    column: str
    user: str = "system"
    confirm_unlock: bool = False
    force: bool = False


class LockRequest(BaseModel):
    locked: bool


class PinColumnRequest(BaseModel):
    column: str


class AutoAssignRequest(BaseModel):
    # Omitted fields fall back to the remembered defaults
    meeting_dates: Optional[Union[str, list[str]]] = None
    reviewer_pool: Optional[Union[str, list[str]]] = None
    reviewer_count: Optional[int] = Field(None, ge=1)


class AssigneesRequest(BaseModel):
    identity: str
    reviewers: Union[str, list[str]] = ""


class ProposalFieldRequest(BaseModel):
    identity: str
    given_amount: Optional[str] = None
    funding_status: Optional[str] = None
    due_date: Optional[str] = None
    notes: Optional[str] = None

    def patch(self) -> dict:
        return {
            k: v for k, v in self.model_dump(exclude={"identity"}).items()
            if v is not None
        }


class SubmissionRequest(BaseModel):
    id: Optional[str] = None
    project_name: str
    reviewer_name: str
    year: str = ""
    project_type: str = ""
    impact: str = ""
    overall: str = ""
    line_items: str = ""
    funding: str = ""


class ApprovalToggleRequest(BaseModel):
    identity: str
    speedtype_column: Optional[str] = None


class RemapRequest(BaseModel):
    speedtype_column: Optional[str] = None


class SpeedtypeRequest(BaseModel):
    identity: str
    speedtype: str = ""
