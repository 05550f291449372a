from raceledger.models.base import Base, TimestampMixin
from raceledger.models.league import Season, Track, Race, Member, DriverMapping
from raceledger.models.results import (
    SessionResult,
    OriginalSessionResult,
    DriverSessionResult,
    Penalty,
    RaceEditHistory,
    RaceBackup,
    OrphanedSession,
    SessionError,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Season",
    "Track",
    "Race",
    "Member",
    "DriverMapping",
    "SessionResult",
    "OriginalSessionResult",
    "DriverSessionResult",
    "Penalty",
    "RaceEditHistory",
    "RaceBackup",
    "OrphanedSession",
    "SessionError",
]
