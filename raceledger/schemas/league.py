# raceledger/schemas/league.py
"""Season, race, member and driver mapping schemas."""
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, model_validator


class SeasonBase(BaseModel):
    name: str
    year: int
    start_date: date | None = None
    end_date: date | None = None


class SeasonCreate(SeasonBase):
    is_active: bool = False


class SeasonSchema(SeasonBase):
    """Season response."""
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class RaceCreate(BaseModel):
    track_name: str
    race_date: date | None = None


class RaceSchema(BaseModel):
    id: int
    season_id: int
    track_id: int
    track_name: str
    race_date: date | None
    status: str


class MemberCreate(BaseModel):
    name: str
    steam_id: str | None = None


class MemberSchema(BaseModel):
    id: int
    name: str
    steam_id: str | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class DriverMappingCreate(BaseModel):
    """A simulator identity to bind to a member for one season."""
    member_id: int
    sim_driver_name: str | None = None
    sim_car_number: int | None = None
    sim_team_name: str | None = None
    network_id: int | None = None
    steam_id: str | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    @model_validator(mode="after")
    def _require_identity(self) -> "DriverMappingCreate":
        if self.network_id is None and not self.steam_id and not self.sim_driver_name:
            raise ValueError("A mapping needs a network id, steam id or driver name")
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        return self


class DriverMappingSchema(BaseModel):
    id: int
    season_id: int
    member_id: int
    sim_driver_name: str | None
    sim_car_number: int | None
    sim_team_name: str | None
    network_id: int | None
    steam_id: str | None
    is_active: bool
    valid_from: datetime | None
    valid_until: datetime | None

    model_config = ConfigDict(from_attributes=True)
