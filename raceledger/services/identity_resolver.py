"""
Identity resolution: map simulator driver records to league members.

Strategies are tried in order and the first match wins:
network id, steam id, driver name with team name, driver name alone.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from raceledger.core.logging import get_logger
from raceledger.models.base import utcnow
from raceledger.models.league import DriverMapping
from raceledger.models.results import DriverSessionResult
from raceledger.schemas.session import DriverResultPayload

logger = get_logger(__name__)


def _key(text: str | None) -> str | None:
    if not text:
        return None
    return " ".join(text.split()).casefold() or None


@dataclass(frozen=True)
class RawIdentity:
    """Identifiers the simulator reported for one car."""
    driver_name: str | None = None
    team_name: str | None = None
    car_number: int | None = None
    network_id: int | None = None
    steam_id: str | None = None

    @classmethod
    def from_payload(cls, result: DriverResultPayload) -> "RawIdentity":
        return cls(
            driver_name=result.driver_name,
            team_name=result.team_name,
            car_number=result.car_number,
            network_id=result.network_id,
            steam_id=result.steam_id,
        )

    @classmethod
    def from_result(cls, result: DriverSessionResult) -> "RawIdentity":
        return cls(
            driver_name=result.sim_driver_name,
            team_name=result.sim_team_name,
            car_number=result.sim_car_number,
            network_id=result.network_id,
            steam_id=result.steam_id,
        )


@dataclass(frozen=True)
class ResolvedIdentity:
    """Outcome of resolution; member_id is None for an unknown driver."""
    member_id: int | None
    mapped_driver_name: str | None
    mapped_car_number: int | None
    matched_by: str | None = None


class MappingIndex:
    """In-memory lookup tables over one season's active mappings."""

    def __init__(self, mappings: Iterable[DriverMapping]):
        self.by_network_id: dict[int, DriverMapping] = {}
        self.by_steam_id: dict[str, DriverMapping] = {}
        self.by_name_and_team: dict[tuple[str, str], DriverMapping] = {}
        self.by_name: dict[str, DriverMapping] = {}

        for mapping in mappings:
            if mapping.network_id is not None:
                self.by_network_id.setdefault(mapping.network_id, mapping)
            if mapping.steam_id:
                self.by_steam_id.setdefault(mapping.steam_id, mapping)
            name = _key(mapping.sim_driver_name)
            team = _key(mapping.sim_team_name)
            if name and team:
                self.by_name_and_team.setdefault((name, team), mapping)
            if name:
                self.by_name.setdefault(name, mapping)


IdentityStrategy = Callable[[MappingIndex, RawIdentity], DriverMapping | None]


def match_network_id(index: MappingIndex, identity: RawIdentity) -> DriverMapping | None:
    if identity.network_id is None:
        return None
    return index.by_network_id.get(identity.network_id)


def match_steam_id(index: MappingIndex, identity: RawIdentity) -> DriverMapping | None:
    if not identity.steam_id:
        return None
    return index.by_steam_id.get(identity.steam_id)


def match_name_and_team(index: MappingIndex, identity: RawIdentity) -> DriverMapping | None:
    name, team = _key(identity.driver_name), _key(identity.team_name)
    if not (name and team):
        return None
    return index.by_name_and_team.get((name, team))


def match_name(index: MappingIndex, identity: RawIdentity) -> DriverMapping | None:
    name = _key(identity.driver_name)
    if not name:
        return None
    return index.by_name.get(name)


IDENTITY_STRATEGIES: tuple[tuple[str, IdentityStrategy], ...] = (
    ("network_id", match_network_id),
    ("steam_id", match_steam_id),
    ("name_and_team", match_name_and_team),
    ("name", match_name),
)


def resolve_identity(index: MappingIndex, identity: RawIdentity) -> ResolvedIdentity:
    """Run the strategy waterfall for a single record."""
    for label, strategy in IDENTITY_STRATEGIES:
        mapping = strategy(index, identity)
        if mapping is not None:
            return ResolvedIdentity(
                member_id=mapping.member_id,
                mapped_driver_name=mapping.sim_driver_name or identity.driver_name,
                mapped_car_number=(
                    mapping.sim_car_number if mapping.sim_car_number is not None else identity.car_number
                ),
                matched_by=label,
            )

    return ResolvedIdentity(
        member_id=None,
        mapped_driver_name=identity.driver_name,
        mapped_car_number=identity.car_number,
    )


_STRATEGY_RANK = {label: rank for rank, (label, _) in enumerate(IDENTITY_STRATEGIES)}


def drop_duplicate_members(
    identities: list[RawIdentity],
    resolved: list[ResolvedIdentity]
) -> list[ResolvedIdentity]:
    """
    Keep each member on at most one record of a batch.

    The record matched by the strongest strategy keeps the member, earlier
    records winning ties. The others fall back to their raw identity.
    """
    winners: dict[int, int] = {}
    for position, identity in enumerate(resolved):
        if identity.member_id is None:
            continue
        current = winners.get(identity.member_id)
        if current is None or _STRATEGY_RANK[identity.matched_by] < _STRATEGY_RANK[resolved[current].matched_by]:
            winners[identity.member_id] = position

    deduplicated = []
    for position, (raw, identity) in enumerate(zip(identities, resolved)):
        if identity.member_id is not None and winners[identity.member_id] != position:
            logger.warning(
                f"⚠️ Member {identity.member_id} matched {raw.driver_name!r} by {identity.matched_by} "
                f"but is already taken in this session, leaving it unmapped"
            )
            identity = ResolvedIdentity(
                member_id=None,
                mapped_driver_name=raw.driver_name,
                mapped_car_number=raw.car_number,
            )
        deduplicated.append(identity)
    return deduplicated


def load_season_mappings(
    db: Session,
    season_id: int,
    as_of: datetime | None = None
) -> list[DriverMapping]:
    """Fetch every mapping valid for the season at the given time in one query."""
    as_of = as_of or utcnow()
    stmt = (
        select(DriverMapping)
        .where(DriverMapping.season_id == season_id)
        .where(DriverMapping.is_active.is_(True))
        .where(or_(DriverMapping.valid_from.is_(None), DriverMapping.valid_from <= as_of))
        .where(or_(DriverMapping.valid_until.is_(None), DriverMapping.valid_until > as_of))
        .order_by(DriverMapping.id)
    )
    return list(db.execute(stmt).scalars().all())


def resolve_identities(
    db: Session,
    season_id: int,
    identities: list[RawIdentity],
    as_of: datetime | None = None
) -> list[ResolvedIdentity]:
    """
    Resolve a whole session's drivers against the season's mappings.

    Args:
        db: Database session
        season_id: Season whose mappings apply
        identities: Raw identities in payload order
        as_of: Point in time for mapping validity windows (default now)

    Returns:
        One ResolvedIdentity per input, same order; no member appears twice
    """
    index = MappingIndex(load_season_mappings(db, season_id, as_of))
    resolved = drop_duplicate_members(
        identities, [resolve_identity(index, identity) for identity in identities]
    )

    unresolved = [r.mapped_driver_name for r in resolved if r.member_id is None]
    if unresolved:
        logger.warning(
            f"{len(unresolved)} of {len(resolved)} driver(s) unmapped in season {season_id}: "
            f"{', '.join(name or '?' for name in unresolved)}"
        )
    else:
        logger.debug(f"Resolved all {len(resolved)} driver(s) in season {season_id}")

    return resolved
