"""
Tests for league administration
"""
import pytest
from pydantic import ValidationError as SchemaValidationError

from raceledger.core.exceptions import NotFoundError, ValidationError
from raceledger.schemas.league import DriverMappingCreate, SeasonCreate


class TestSeasons:
    def test_single_active_season(self, league, season):
        second = league.create_season(SeasonCreate(name="Season 2", year=2025, is_active=True))

        assert league.get_active_season().id == second.id

        league.set_active_season(season.id)
        assert league.get_active_season().id == season.id

    def test_no_active_season(self, league):
        league.create_season(SeasonCreate(name="Draft", year=2026))
        assert league.get_active_season() is None

    def test_delete_season_removes_races(self, league, season, race):
        league.delete_season(season.id)

        with pytest.raises(NotFoundError):
            league.list_races(season.id)

    def test_activate_unknown_season(self, league):
        with pytest.raises(NotFoundError):
            league.set_active_season(999)


class TestRaces:
    def test_races_share_track_by_alias(self, league, season, race):
        second = league.create_race(season.id, "Spielberg")

        assert second.track_id == race.track_id
        assert second.track_name == "Red Bull Ring"
        assert second.status == "scheduled"
        assert [r.id for r in league.list_races(season.id)] == [race.id, second.id]


class TestMembersAndMappings:
    def test_blank_member_name(self, league):
        with pytest.raises(ValidationError):
            league.create_member("   ")

    def test_new_mapping_supersedes_same_network_id(self, league, season, members, mappings):
        replacement = league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["carol"].id, sim_driver_name="Alice Racer", network_id=1,
        ))

        assert replacement.is_active
        with pytest.raises(NotFoundError):
            league.deactivate_driver_mapping(999)
        assert league.deactivate_driver_mapping(mappings["alice"].id).is_active is False

    def test_mapping_needs_an_identity(self, members):
        with pytest.raises(SchemaValidationError):
            DriverMappingCreate(member_id=members["alice"].id)

    def test_mapping_for_unknown_member(self, league, season):
        with pytest.raises(NotFoundError):
            league.create_driver_mapping(season.id, DriverMappingCreate(member_id=999, network_id=5))
