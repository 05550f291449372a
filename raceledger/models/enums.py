"""Enumerations shared by models, schemas and services."""
import enum


class SessionType(enum.IntEnum):
    """Session type codes as reported by the simulator."""
    UNKNOWN = 0
    PRACTICE_1 = 1
    PRACTICE_2 = 2
    PRACTICE_3 = 3
    SHORT_PRACTICE = 4
    QUALIFYING_1 = 5
    QUALIFYING_2 = 6
    QUALIFYING_3 = 7
    SHORT_QUALIFYING = 8
    ONE_SHOT_QUALIFYING = 9
    RACE = 10
    RACE_2 = 11
    RACE_3 = 12
    TIME_TRIAL = 13


class ResultStatus(str, enum.Enum):
    """Final classification status of a driver entry."""
    INVALID = "invalid"
    INACTIVE = "inactive"
    ACTIVE = "active"
    FINISHED = "finished"
    DNF = "dnf"
    DSQ = "dsq"
    NOT_CLASSIFIED = "ncl"
    RETIRED = "retired"


class RaceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class OrphanStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    IGNORED = "ignored"


class EditType(str, enum.Enum):
    PENALTY = "penalty"
    POSITION_CHANGE = "position_change"
    DISQUALIFICATION = "disqualification"
    USER_MAPPING = "user_mapping"
    RESET_TO_ORIGINAL = "reset_to_original"
    BACKUP_RESTORE = "backup_restore"
