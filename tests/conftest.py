"""
Shared fixtures: a fresh SQLite database per test, services bound to it and payload builders.
"""
import os

# Settings are read at import time; keep the module-level engine off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker

from raceledger.config import Settings
from raceledger.db import build_engine
from raceledger.models import Base
from raceledger.schemas.league import DriverMappingCreate, SeasonCreate
from raceledger.schemas.results import DriverSessionResultSchema
from raceledger.schemas.session import DriverResultPayload, SessionInfo
from raceledger.services import queries
from raceledger.services.backups import BackupService
from raceledger.services.edit_ledger import EditLedger
from raceledger.services.league import LeagueService
from raceledger.services.orphans import OrphanHandler
from raceledger.services.session_importer import SessionImporter


class RecordingNotifier:
    """Notification sink that keeps every published event."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def publish(self, event, payload):
        self.events.append((event, payload))

    def of_type(self, event: str) -> list[dict]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race_ledger.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", reject_duplicate_sessions=True)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def league(session_factory):
    return LeagueService(session_factory)


@pytest.fixture
def orphan_handler(session_factory, notifier):
    return OrphanHandler(session_factory, notifier)


@pytest.fixture
def importer(session_factory, notifier, orphan_handler, settings):
    return SessionImporter(session_factory, notifier, orphan_handler, settings)


@pytest.fixture
def ledger(session_factory):
    return EditLedger(session_factory)


@pytest.fixture
def backups(session_factory):
    return BackupService(session_factory)


# === League data ===

@pytest.fixture
def season(league):
    return league.create_season(SeasonCreate(name="Season 1", year=2024, is_active=True))


@pytest.fixture
def members(league):
    return {
        "alice": league.create_member("Alice"),
        "bob": league.create_member("Bob"),
        "carol": league.create_member("Carol"),
    }


@pytest.fixture
def mappings(league, season, members):
    """Alice and Bob are known by network id; Carol has no mapping yet."""
    return {
        "alice": league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["alice"].id, sim_driver_name="Alice Racer", sim_car_number=7, network_id=1,
        )),
        "bob": league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["bob"].id, sim_driver_name="Bob Racer", sim_car_number=22, network_id=2,
        )),
    }


@pytest.fixture
def race(league, season):
    return league.create_race(season.id, "Red Bull Ring")


# === Payload builders ===

def driver_result(position, name, network_id=None, **overrides) -> DriverResultPayload:
    values = {
        "position": position,
        "grid_position": position,
        "points": {1: 25, 2: 18, 3: 15}.get(position, 0),
        "num_laps": 20,
        "best_lap_time_ms": 65000 + (position or 0) * 100,
        "total_race_time_ms": 1_300_000 + (position or 0) * 1000,
        "result_status": "finished",
        "driver_name": name,
        "car_number": network_id,
        "team_name": "Team " + name.split()[0],
        "network_id": network_id,
    }
    values.update(overrides)
    return DriverResultPayload(**values)


@pytest.fixture
def make_driver():
    return driver_result


@pytest.fixture
def make_session():
    """Build (SessionInfo, driver results) for the importer."""
    def _make(track_name="Red Bull Ring", drivers=None, session_type=10, session_uid=None):
        if drivers is None:
            drivers = [
                driver_result(1, "Alice Racer", network_id=1),
                driver_result(2, "Bob Racer", network_id=2),
                driver_result(3, "Carol Racer", network_id=3),
            ]
        info = SessionInfo(track_name=track_name, session_type=session_type, session_uid=session_uid)
        return info, drivers
    return _make


@pytest.fixture
def imported(importer, race, mappings, make_session):
    """A three-driver race session: Alice P1, Bob P2, Carol P3 (unmapped)."""
    info, drivers = make_session()
    return importer.import_session(info, drivers, race_id=race.id)


@pytest.fixture
def load_rows(session_factory):
    """Read a session's current rows through a fresh session."""
    def _load(session_result_id) -> dict[str, DriverSessionResultSchema]:
        with session_factory() as db:
            rows = queries.get_session_driver_results(db, session_result_id)
            return {r.sim_driver_name.split()[0].lower(): DriverSessionResultSchema.model_validate(r) for r in rows}
    return _load
