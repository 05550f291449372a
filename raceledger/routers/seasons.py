# raceledger/routers/seasons.py
"""
Seasons, races, driver mappings and standings.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from raceledger.core.deps import get_db_session, get_league_service
from raceledger.core.exceptions import RaceLedgerException, to_http_exception
from raceledger.schemas.league import (
    DriverMappingCreate,
    DriverMappingSchema,
    RaceCreate,
    RaceSchema,
    SeasonCreate,
    SeasonSchema,
)
from raceledger.schemas.standings import StandingSchema
from raceledger.services import queries
from raceledger.services.league import LeagueService
from raceledger.services.standings import calculate_season_standings

router = APIRouter(prefix="/seasons", tags=["Seasons"])


@router.post("", response_model=SeasonSchema, status_code=status.HTTP_201_CREATED)
def create_season(
    request: SeasonCreate,
    league: LeagueService = Depends(get_league_service),
) -> SeasonSchema:
    return league.create_season(request)


@router.get("/active", response_model=SeasonSchema)
def get_active_season(league: LeagueService = Depends(get_league_service)) -> SeasonSchema:
    season = league.get_active_season()
    if season is None:
        raise HTTPException(status_code=404, detail="No active season")
    return season


@router.post("/{season_id}/activate", response_model=SeasonSchema)
def set_active_season(
    season_id: int,
    league: LeagueService = Depends(get_league_service),
) -> SeasonSchema:
    try:
        return league.set_active_season(season_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.delete("/{season_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_season(
    season_id: int,
    league: LeagueService = Depends(get_league_service),
) -> None:
    """Delete a season with everything imported into it."""
    try:
        league.delete_season(season_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/{season_id}/races", response_model=RaceSchema, status_code=status.HTTP_201_CREATED)
def create_race(
    season_id: int,
    request: RaceCreate,
    league: LeagueService = Depends(get_league_service),
) -> RaceSchema:
    try:
        return league.create_race(season_id, request.track_name, request.race_date)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.get("/{season_id}/races", response_model=list[RaceSchema])
def list_races(
    season_id: int,
    league: LeagueService = Depends(get_league_service),
) -> list[RaceSchema]:
    try:
        return league.list_races(season_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.post("/{season_id}/mappings", response_model=DriverMappingSchema, status_code=status.HTTP_201_CREATED)
def create_driver_mapping(
    season_id: int,
    request: DriverMappingCreate,
    league: LeagueService = Depends(get_league_service),
) -> DriverMappingSchema:
    """Bind a simulator identity to a member, superseding any active mapping of the same ids."""
    try:
        return league.create_driver_mapping(season_id, request)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.delete("/mappings/{mapping_id}", response_model=DriverMappingSchema)
def deactivate_driver_mapping(
    mapping_id: int,
    league: LeagueService = Depends(get_league_service),
) -> DriverMappingSchema:
    try:
        return league.deactivate_driver_mapping(mapping_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e


@router.get("/{season_id}/standings", response_model=list[StandingSchema])
def get_standings(
    season_id: int,
    db: Session = Depends(get_db_session),
) -> list[StandingSchema]:
    """
    Season standings from Race sessions, computed on demand.
    """
    try:
        queries.get_season_by_id(db, season_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e
    return calculate_season_standings(db, season_id)
