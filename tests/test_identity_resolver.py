"""
Tests for identity resolution
"""
from datetime import timedelta

from raceledger.models import DriverMapping
from raceledger.models.base import utcnow
from raceledger.schemas.league import DriverMappingCreate, SeasonCreate
from raceledger.services.identity_resolver import (
    MappingIndex,
    RawIdentity,
    drop_duplicate_members,
    load_season_mappings,
    resolve_identities,
    resolve_identity,
)


def _index(*mappings):
    return MappingIndex(mappings)


class TestStrategyWaterfall:
    """Tests for strategy order on in-memory mappings"""

    def test_network_id_beats_name(self):
        """A network id match wins over a name match pointing at another member"""
        index = _index(
            DriverMapping(member_id=1, sim_driver_name="Max", network_id=10),
            DriverMapping(member_id=2, sim_driver_name="Lewis", network_id=20),
        )
        resolved = resolve_identity(index, RawIdentity(driver_name="Lewis", network_id=10))

        assert resolved.member_id == 1
        assert resolved.matched_by == "network_id"
        assert resolved.mapped_driver_name == "Max"

    def test_steam_id_used_without_network_id(self):
        index = _index(DriverMapping(member_id=3, sim_driver_name="Seb", steam_id="7656"))
        resolved = resolve_identity(index, RawIdentity(driver_name="Unknown", steam_id="7656"))

        assert resolved.member_id == 3
        assert resolved.matched_by == "steam_id"

    def test_name_and_team_beats_plain_name(self):
        index = _index(
            DriverMapping(member_id=4, sim_driver_name="Player", sim_team_name=None),
            DriverMapping(member_id=5, sim_driver_name="Player", sim_team_name="Ferrari"),
        )
        resolved = resolve_identity(index, RawIdentity(driver_name="Player", team_name="Ferrari"))

        assert resolved.member_id == 5
        assert resolved.matched_by == "name_and_team"

    def test_name_match_ignores_case_and_spacing(self):
        index = _index(DriverMapping(member_id=6, sim_driver_name="Alice  Racer"))
        resolved = resolve_identity(index, RawIdentity(driver_name="alice racer"))

        assert resolved.member_id == 6
        assert resolved.matched_by == "name"

    def test_unknown_driver_degrades(self):
        """No mapping: member is None and the raw name and number are kept"""
        resolved = resolve_identity(_index(), RawIdentity(driver_name="Ghost", car_number=99))

        assert resolved.member_id is None
        assert resolved.mapped_driver_name == "Ghost"
        assert resolved.mapped_car_number == 99
        assert resolved.matched_by is None

    def test_mapping_car_number_overrides_raw(self):
        index = _index(DriverMapping(member_id=1, sim_driver_name="Max", sim_car_number=1, network_id=10))
        resolved = resolve_identity(index, RawIdentity(driver_name="Max", car_number=33, network_id=10))

        assert resolved.mapped_car_number == 1


class TestSeasonMappings:
    """Tests for loading mappings from the database"""

    def test_only_active_mappings_in_window(self, session_factory, league, season, members):
        now = utcnow()
        league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["alice"].id, sim_driver_name="Alice Racer", network_id=1,
        ))
        expired = league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["bob"].id, sim_driver_name="Bob Racer", network_id=2,
            valid_from=now - timedelta(days=30), valid_until=now - timedelta(days=1),
        ))
        inactive = league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["carol"].id, sim_driver_name="Carol Racer", network_id=3,
        ))
        league.deactivate_driver_mapping(inactive.id)

        with session_factory() as db:
            loaded = load_season_mappings(db, season.id)

        assert [m.network_id for m in loaded] == [1]
        assert expired.id not in [m.id for m in loaded]

    def test_other_season_mappings_ignored(self, session_factory, league, season, members):
        other = league.create_season(SeasonCreate(name="Season 0", year=2023))
        league.create_driver_mapping(other.id, DriverMappingCreate(
            member_id=members["alice"].id, sim_driver_name="Alice Racer", network_id=1,
        ))

        with session_factory() as db:
            resolved = resolve_identities(db, season.id, [RawIdentity(driver_name="Alice Racer", network_id=1)])

        assert resolved[0].member_id is None

    def test_batch_keeps_input_order(self, session_factory, season, mappings, members):
        identities = [
            RawIdentity(driver_name="Nobody", network_id=99),
            RawIdentity(driver_name="Bob Racer", network_id=2),
            RawIdentity(driver_name="Alice Racer", network_id=1),
        ]
        with session_factory() as db:
            resolved = resolve_identities(db, season.id, identities)

        assert [r.member_id for r in resolved] == [None, members["bob"].id, members["alice"].id]


class TestDuplicateMembers:
    """Tests for one member claimed by several records of a batch"""

    def test_later_name_match_is_left_unmapped(self):
        index = _index(DriverMapping(member_id=3, sim_driver_name="Player"))
        identities = [RawIdentity(driver_name="Player", car_number=4), RawIdentity(driver_name="Player", car_number=9)]

        resolved = drop_duplicate_members(identities, [resolve_identity(index, i) for i in identities])

        assert [r.member_id for r in resolved] == [3, None]
        assert resolved[1].mapped_driver_name == "Player"
        assert resolved[1].mapped_car_number == 9
        assert resolved[1].matched_by is None

    def test_stronger_strategy_wins_over_payload_order(self):
        index = _index(DriverMapping(member_id=3, sim_driver_name="Player", network_id=30))
        identities = [RawIdentity(driver_name="Player"), RawIdentity(driver_name="Someone", network_id=30)]

        resolved = drop_duplicate_members(identities, [resolve_identity(index, i) for i in identities])

        assert [r.member_id for r in resolved] == [None, 3]
        assert resolved[1].matched_by == "network_id"

    def test_batch_never_repeats_a_member(self, session_factory, league, season, members):
        league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["carol"].id, sim_driver_name="Player",
        ))
        identities = [RawIdentity(driver_name="Player"), RawIdentity(driver_name="player")]

        with session_factory() as db:
            resolved = resolve_identities(db, season.id, identities)

        assert [r.member_id for r in resolved] == [members["carol"].id, None]
