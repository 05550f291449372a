# raceledger/routers/members.py
"""
League members.
"""
from fastapi import APIRouter, Depends, status

from raceledger.core.deps import get_league_service
from raceledger.core.exceptions import RaceLedgerException, to_http_exception
from raceledger.schemas.league import MemberCreate, MemberSchema
from raceledger.services.league import LeagueService

router = APIRouter(prefix="/members", tags=["Members"])


@router.post("", response_model=MemberSchema, status_code=status.HTTP_201_CREATED)
def create_member(
    request: MemberCreate,
    league: LeagueService = Depends(get_league_service),
) -> MemberSchema:
    try:
        return league.create_member(request.name, request.steam_id)
    except RaceLedgerException as e:
        raise to_http_exception(e) from e
