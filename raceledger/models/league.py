from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    String,
    Integer,
    Float,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from raceledger.models.base import Base, TimestampMixin
from raceledger.models.enums import RaceStatus

if TYPE_CHECKING:
    from raceledger.models.results import SessionResult


class Season(Base, TimestampMixin):
    """League season. At most one is active at a time."""

    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    races: Mapped[list["Race"]] = relationship(
        "Race",
        back_populates="season",
        cascade="all, delete-orphan",
    )
    driver_mappings: Mapped[list["DriverMapping"]] = relationship(
        "DriverMapping",
        back_populates="season",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Season(name={self.name!r}, year={self.year}, active={self.is_active})>"


class Track(Base, TimestampMixin):
    """Circuit, created on first reference by name."""

    __tablename__ = "tracks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    length_km: Mapped[float | None] = mapped_column(Float, nullable=True)

    races: Mapped[list["Race"]] = relationship("Race", back_populates="track")

    def __repr__(self) -> str:
        return f"<Track(name={self.name!r})>"


class Race(Base, TimestampMixin):
    """One track visit within a season; groups practice, qualifying and race sessions."""

    __tablename__ = "races"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    track_id: Mapped[int] = mapped_column(
        ForeignKey("tracks.id"),
        nullable=False,
        index=True,
    )
    race_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RaceStatus.SCHEDULED.value)

    # Relationships
    season: Mapped["Season"] = relationship("Season", back_populates="races")
    track: Mapped["Track"] = relationship("Track", back_populates="races")
    sessions: Mapped[list["SessionResult"]] = relationship(
        "SessionResult",
        back_populates="race",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_races_season_status", "season_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Race(season={self.season_id}, track={self.track_id}, status={self.status})>"


class Member(Base, TimestampMixin):
    """Persistent league participant, independent of any in-game identity."""

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    steam_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    driver_mappings: Mapped[list["DriverMapping"]] = relationship(
        "DriverMapping",
        back_populates="member",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Member(name={self.name!r})>"


class DriverMapping(Base, TimestampMixin):
    """Links a simulator identity to a member for one season."""

    __tablename__ = "driver_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    season_id: Mapped[int] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sim_driver_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sim_car_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sim_team_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    network_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    steam_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    valid_from: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    season: Mapped["Season"] = relationship("Season", back_populates="driver_mappings")
    member: Mapped["Member"] = relationship("Member", back_populates="driver_mappings")

    __table_args__ = (
        Index(
            "uq_mapping_season_network_active",
            "season_id",
            "network_id",
            unique=True,
            sqlite_where=text("is_active = 1 AND network_id IS NOT NULL"),
            postgresql_where=text("is_active AND network_id IS NOT NULL"),
        ),
        Index(
            "uq_mapping_season_steam_active",
            "season_id",
            "steam_id",
            unique=True,
            sqlite_where=text("is_active = 1 AND steam_id IS NOT NULL"),
            postgresql_where=text("is_active AND steam_id IS NOT NULL"),
        ),
        Index("ix_mappings_season_active", "season_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<DriverMapping(season={self.season_id}, member={self.member_id}, "
            f"name={self.sim_driver_name!r})>"
        )
