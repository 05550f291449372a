# raceledger/schemas/results.py
"""Result, edit, backup and orphan schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from raceledger.models.enums import EditType
from raceledger.schemas.session import SessionPayload


class ImportRequest(SessionPayload):
    """Session payload plus optional routing hints."""
    race_id: int | None = None
    season_id: int | None = None


class ImportResultSchema(BaseModel):
    race_id: int
    session_result_id: int


class PenaltySchema(BaseModel):
    id: int
    driver_session_result_id: int
    seconds: int
    reason: str | None
    created_by: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DriverSessionResultSchema(BaseModel):
    """Current classification row."""
    id: int
    session_result_id: int
    member_id: int | None
    position: int | None
    grid_position: int | None
    points: int
    num_laps: int
    best_lap_time_ms: int | None
    sector1_time_ms: int | None
    sector2_time_ms: int | None
    sector3_time_ms: int | None
    total_race_time_ms: int | None
    penalties: int
    post_race_penalty_seconds: int
    warnings: int
    result_status: str
    dnf_reason: str | None
    fastest_lap: bool
    pole_position: bool
    sim_driver_name: str | None
    sim_car_number: int | None
    sim_team_name: str | None
    network_id: int | None
    steam_id: str | None

    model_config = ConfigDict(from_attributes=True)


class EditHistorySchema(BaseModel):
    id: int
    session_result_id: int
    driver_session_result_id: int | None
    member_id: int | None
    edit_type: str
    old_value: Any
    new_value: Any
    reason: str | None
    edited_by: str | None
    reverts_edit_id: int | None
    created_at: datetime
    session_name: str | None = None
    session_type: int | None = None

    model_config = ConfigDict(from_attributes=True)


class MappingUpdateSchema(BaseModel):
    """One entry touched by a member reassignment."""
    driver_session_result_id: int
    session_result_id: int
    old_member_id: int | None
    new_member_id: int | None


class BackupSchema(BaseModel):
    id: int
    session_result_id: int
    created_at: datetime
    row_count: int


class OrphanedSessionSchema(BaseModel):
    id: int
    track_name: str
    session_type: int
    session_time: datetime
    status: str
    processed_race_id: int | None

    model_config = ConfigDict(from_attributes=True)


# === Request bodies ===

class PenaltyRequest(BaseModel):
    seconds: int = Field(..., gt=0)
    reason: str | None = None
    edited_by: str


class PositionChangeRequest(BaseModel):
    new_position: int
    reason: str | None = None
    edited_by: str


class DisqualifyRequest(BaseModel):
    reason: str
    edited_by: str


class MappingRequest(BaseModel):
    member_id: int | None
    edited_by: str
    reason: str | None = None


class EditorRequest(BaseModel):
    edited_by: str


class ValidateEditRequest(BaseModel):
    edit_type: EditType
    data: dict[str, Any] = {}


class ValidateEditResponse(BaseModel):
    valid: bool
    errors: list[str] = []


class ProcessOrphanRequest(BaseModel):
    race_id: int
