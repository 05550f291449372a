# raceledger/schemas/session.py
"""Session payload schemas delivered by the telemetry or file-import collaborators."""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from raceledger.models.enums import ResultStatus, SessionType
from raceledger.services.lookups import parse_result_status, session_type_name


class PayloadModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionInfo(PayloadModel):
    """Metadata of one finished session."""
    track_name: str = "Unknown"
    session_type: int = SessionType.RACE
    session_type_name: str | None = None
    session_uid: str | None = Field(default=None, alias="sessionUID")

    @field_validator("session_uid", mode="before")
    @classmethod
    def _uid_as_text(cls, value):
        # 64-bit UIDs overflow JSON numbers in some clients
        return None if value is None else str(value)

    @property
    def display_name(self) -> str:
        return self.session_type_name or session_type_name(self.session_type)


class DriverResultPayload(PayloadModel):
    """Final classification row of one car."""
    position: int | None = None
    grid_position: int | None = None
    points: int = 0
    num_laps: int = 0
    best_lap_time_ms: int | None = None
    sector1_time_ms: int | None = None
    sector2_time_ms: int | None = None
    sector3_time_ms: int | None = None
    total_race_time_ms: int | None = None
    penalties: int = 0
    warnings: int = 0
    result_status: ResultStatus = ResultStatus.FINISHED
    dnf_reason: str | None = None
    fastest_lap: bool = False
    pole_position: bool = False
    driver_name: str | None = None
    car_number: int | None = None
    team_name: str | None = None
    network_id: int | None = None
    steam_id: str | None = None

    @field_validator("result_status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return parse_result_status(value)

    @field_validator("steam_id", mode="before")
    @classmethod
    def _steam_id_as_text(cls, value):
        return None if value in (None, "") else str(value)


class SessionPayload(PayloadModel):
    """A complete session: metadata plus every driver's result."""
    session_info: SessionInfo
    driver_results: list[DriverResultPayload]

    @model_validator(mode="after")
    def _check_results(self) -> "SessionPayload":
        if not self.driver_results:
            raise ValueError("No final results provided")
        check_unique_positions(self.driver_results)
        return self


def check_unique_positions(driver_results: list[DriverResultPayload]) -> None:
    """Positions must be unique among entries that were not disqualified."""
    seen: set[int] = set()
    for result in driver_results:
        if result.position is None or result.result_status == ResultStatus.DSQ:
            continue
        if result.position in seen:
            raise ValueError(f"Duplicate classified position {result.position}")
        seen.add(result.position)
