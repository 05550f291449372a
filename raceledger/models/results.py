from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from raceledger.models.base import Base, TimestampMixin, JSONType, utcnow
from raceledger.models.enums import OrphanStatus, ResultStatus

if TYPE_CHECKING:
    from raceledger.models.league import Race


# Columns copied verbatim between current rows, snapshots and backups
RESULT_FIELDS: tuple[str, ...] = (
    "member_id",
    "position",
    "grid_position",
    "points",
    "num_laps",
    "best_lap_time_ms",
    "sector1_time_ms",
    "sector2_time_ms",
    "sector3_time_ms",
    "total_race_time_ms",
    "penalties",
    "warnings",
    "result_status",
    "dnf_reason",
    "fastest_lap",
    "pole_position",
    "sim_driver_name",
    "sim_car_number",
    "sim_team_name",
    "network_id",
    "steam_id",
)

# Subset restored by a reset to original; identity fields are left alone
CLASSIFICATION_FIELDS: tuple[str, ...] = tuple(
    f for f in RESULT_FIELDS
    if f not in ("member_id", "sim_driver_name", "sim_car_number", "sim_team_name", "network_id", "steam_id")
)


class ResultColumnsMixin:
    """Classification and raw simulator identity of one driver entry."""

    member_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grid_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    num_laps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_lap_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sector1_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sector2_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sector3_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_race_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    penalties: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # in-race seconds
    warnings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    result_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ResultStatus.FINISHED.value
    )
    dnf_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    fastest_lap: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pole_position: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Raw simulator identity, kept for later re-resolution
    sim_driver_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sim_car_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sim_team_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    network_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    steam_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def result_values(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in RESULT_FIELDS}


class SessionResult(Base, TimestampMixin):
    """One completed session (practice, qualifying or race) of a race weekend."""

    __tablename__ = "session_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_id: Mapped[int] = mapped_column(
        ForeignKey("races.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_type: Mapped[int] = mapped_column(Integer, nullable=False)
    session_name: Mapped[str] = mapped_column(String(50), nullable=False)
    session_uid: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    # Relationships
    race: Mapped["Race"] = relationship("Race", back_populates="sessions")
    driver_results: Mapped[list["DriverSessionResult"]] = relationship(
        "DriverSessionResult",
        back_populates="session_result",
        cascade="all, delete-orphan",
        order_by="DriverSessionResult.position",
    )
    original_results: Mapped[list["OriginalSessionResult"]] = relationship(
        "OriginalSessionResult",
        back_populates="session_result",
        cascade="all, delete-orphan",
    )
    backups: Mapped[list["RaceBackup"]] = relationship(
        "RaceBackup",
        back_populates="session_result",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_session_results_race_type", "race_id", "session_type"),
    )

    def __repr__(self) -> str:
        return f"<SessionResult(race_id={self.race_id}, type={self.session_type})>"


class OriginalSessionResult(Base, ResultColumnsMixin):
    """Immutable snapshot of a driver entry as imported."""

    __tablename__ = "original_session_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_result_id: Mapped[int] = mapped_column(
        ForeignKey("session_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    session_result: Mapped["SessionResult"] = relationship("SessionResult", back_populates="original_results")

    def __repr__(self) -> str:
        return f"<OriginalSessionResult(session_result_id={self.session_result_id}, position={self.position})>"


class DriverSessionResult(Base, ResultColumnsMixin, TimestampMixin):
    """Current, editable classification of a driver in a session."""

    __tablename__ = "driver_session_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_result_id: Mapped[int] = mapped_column(
        ForeignKey("session_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_result_id: Mapped[int | None] = mapped_column(
        ForeignKey("original_session_results.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    session_result: Mapped["SessionResult"] = relationship("SessionResult", back_populates="driver_results")
    original: Mapped["OriginalSessionResult"] = relationship("OriginalSessionResult")
    post_race_penalties: Mapped[list["Penalty"]] = relationship(
        "Penalty",
        back_populates="driver_result",
        cascade="all, delete-orphan",
        order_by="Penalty.id",
    )

    __table_args__ = (
        Index("ix_results_session_position", "session_result_id", "position"),
        Index("ix_results_session_member", "session_result_id", "member_id"),
    )

    @property
    def is_classified(self) -> bool:
        return self.result_status != ResultStatus.DSQ.value

    @property
    def post_race_penalty_seconds(self) -> int:
        return sum(p.seconds for p in self.post_race_penalties)

    def __repr__(self) -> str:
        return (
            f"<DriverSessionResult(session_result_id={self.session_result_id}, "
            f"member_id={self.member_id}, position={self.position})>"
        )


class Penalty(Base):
    """Post-race time penalty; several may stack on one entry."""

    __tablename__ = "driver_penalties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    driver_session_result_id: Mapped[int] = mapped_column(
        ForeignKey("driver_session_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    driver_result: Mapped["DriverSessionResult"] = relationship(
        "DriverSessionResult", back_populates="post_race_penalties"
    )

    __table_args__ = (
        CheckConstraint("seconds > 0", name="ck_penalty_seconds_positive"),
    )


class RaceEditHistory(Base):
    """Append-only audit entry. Reverts are new entries pointing at the reverted one."""

    __tablename__ = "race_edit_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_result_id: Mapped[int] = mapped_column(
        ForeignKey("session_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # No foreign key: entries must outlive row replacement on restore
    driver_session_result_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    member_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edit_type: Mapped[str] = mapped_column(String(30), nullable=False)
    old_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    new_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    edited_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reverts_edit_id: Mapped[int | None] = mapped_column(
        ForeignKey("race_edit_history.id"),
        nullable=True,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<RaceEditHistory(id={self.id}, type={self.edit_type}, session={self.session_result_id})>"


class RaceBackup(Base):
    """Point-in-time copy of a session's current rows."""

    __tablename__ = "race_backups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_result_id: Mapped[int] = mapped_column(
        ForeignKey("session_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    backup_data: Mapped[Any] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    session_result: Mapped["SessionResult"] = relationship("SessionResult", back_populates="backups")


class OrphanedSession(Base, TimestampMixin):
    """Session that matched no event, kept for admin disposition."""

    __tablename__ = "orphaned_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    track_name: Mapped[str] = mapped_column(String(200), nullable=False)
    session_type: Mapped[int] = mapped_column(Integer, nullable=False)
    session_data: Mapped[Any] = mapped_column(JSONType, nullable=False)
    session_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=OrphanStatus.PENDING.value)
    processed_race_id: Mapped[int | None] = mapped_column(
        ForeignKey("races.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_orphaned_sessions_status", "status"),
    )


class SessionError(Base):
    """Diagnostic record of a failed import."""

    __tablename__ = "session_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    session_data: Mapped[Any] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
