"""
Plain-dict views of result rows for snapshots, backups, history and notifications.
"""
from typing import Any

from raceledger.models.results import (
    CLASSIFICATION_FIELDS,
    RESULT_FIELDS,
    DriverSessionResult,
    Penalty,
)


def serialize_penalty(penalty: Penalty) -> dict[str, Any]:
    return {
        "id": penalty.id,
        "seconds": penalty.seconds,
        "reason": penalty.reason,
        "created_by": penalty.created_by,
        "created_at": penalty.created_at.isoformat() if penalty.created_at else None,
    }


def serialize_driver_result(result: DriverSessionResult, include_penalties: bool = True) -> dict[str, Any]:
    """Every persisted column of a current row, plus its post-race penalties."""
    data: dict[str, Any] = {
        "id": result.id,
        "session_result_id": result.session_result_id,
        "original_result_id": result.original_result_id,
        **result.result_values(),
    }
    if include_penalties:
        data["post_race_penalties"] = [serialize_penalty(p) for p in result.post_race_penalties]
    return data


def classification_values(row: Any) -> dict[str, Any]:
    """The columns a reset to original restores."""
    return {field: getattr(row, field) for field in CLASSIFICATION_FIELDS}


def result_field_values(data: dict[str, Any]) -> dict[str, Any]:
    """Pick model columns out of a serialized row."""
    return {field: data.get(field) for field in RESULT_FIELDS}
