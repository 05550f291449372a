"""
Season standings, aggregated on demand from race sessions.
"""
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from raceledger.core.logging import get_logger
from raceledger.models.enums import ResultStatus, SessionType
from raceledger.models.league import Member, Race
from raceledger.models.results import DriverSessionResult, SessionResult
from raceledger.schemas.standings import StandingSchema

logger = get_logger(__name__)


def calculate_season_standings(db: Session, season_id: int) -> list[StandingSchema]:
    """
    Aggregate every member's race results for a season.

    Only Race sessions with a resolved member count. Disqualified entries
    still count as a start but never as a win, podium or best finish.
    """
    dsr = DriverSessionResult
    not_dsq = dsr.result_status != ResultStatus.DSQ.value
    classified_position = case((not_dsq, dsr.position), else_=None)

    stmt = (
        select(
            dsr.member_id,
            Member.name,
            func.count(func.distinct(dsr.session_result_id)).label("races"),
            func.coalesce(func.sum(dsr.points), 0).label("total_points"),
            func.sum(case((not_dsq & (dsr.position == 1), 1), else_=0)).label("wins"),
            func.sum(case((not_dsq & (dsr.position <= 3), 1), else_=0)).label("podiums"),
            func.sum(case((dsr.fastest_lap.is_(True), 1), else_=0)).label("fastest_laps"),
            func.sum(case((dsr.pole_position.is_(True), 1), else_=0)).label("pole_positions"),
            func.min(classified_position).label("best_finish"),
            func.coalesce(func.sum(dsr.penalties), 0).label("total_penalties"),
            func.coalesce(func.sum(dsr.warnings), 0).label("total_warnings"),
        )
        .join(SessionResult, SessionResult.id == dsr.session_result_id)
        .join(Race, Race.id == SessionResult.race_id)
        .join(Member, Member.id == dsr.member_id)
        .where(Race.season_id == season_id)
        .where(SessionResult.session_type == SessionType.RACE.value)
        .where(dsr.member_id.is_not(None))
        .group_by(dsr.member_id, Member.name)
    )

    rows = db.execute(stmt).all()
    standings = [
        StandingSchema(
            member_id=row.member_id,
            member_name=row.name,
            races=row.races,
            total_points=int(row.total_points or 0),
            wins=int(row.wins or 0),
            podiums=int(row.podiums or 0),
            fastest_laps=int(row.fastest_laps or 0),
            pole_positions=int(row.pole_positions or 0),
            best_finish=row.best_finish,
            total_penalties=int(row.total_penalties or 0),
            total_warnings=int(row.total_warnings or 0),
        )
        for row in rows
    ]
    standings.sort(key=lambda s: (-s.total_points, -s.wins, -s.podiums, s.member_name))
    return standings


def log_standings(standings: list[StandingSchema], top: int = 5) -> None:
    """Log the leading members."""
    logger.info(f"📊 Calculated standings for {len(standings)} member(s)")
    for place, standing in enumerate(standings[:top], start=1):
        logger.info(
            f"  {place}. {standing.member_name} - {standing.total_points} pts "
            f"({standing.wins} wins, {standing.podiums} podiums)"
        )
