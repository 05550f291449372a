"""
Tests for season standings
"""
from raceledger.services.standings import calculate_season_standings


def _by_name(standings):
    return {s.member_name: s for s in standings}


class TestSeasonStandings:
    def test_race_results_are_aggregated(self, session_factory, season, imported):
        with session_factory() as db:
            standings = calculate_season_standings(db, season.id)

        assert [s.member_name for s in standings] == ["Alice", "Bob"]
        alice = standings[0]
        assert alice.total_points == 25
        assert alice.wins == 1
        assert alice.podiums == 1
        assert alice.best_finish == 1
        assert alice.races == 1

    def test_qualifying_does_not_count(self, session_factory, importer, season, race, mappings, make_session):
        info, drivers = make_session(session_type=5)
        importer.import_session(info, drivers, race_id=race.id)

        with session_factory() as db:
            assert calculate_season_standings(db, season.id) == []

    def test_disqualified_entry_is_not_a_win(self, session_factory, ledger, season, imported, load_rows):
        sid = imported.session_result_id
        ledger.disqualify_driver(sid, load_rows(sid)["alice"].id, "Underweight", "steward")

        with session_factory() as db:
            alice = _by_name(calculate_season_standings(db, season.id))["Alice"]

        assert alice.wins == 0
        assert alice.podiums == 0
        assert alice.best_finish is None
        assert alice.races == 1

    def test_edits_are_reflected(self, session_factory, ledger, season, imported, load_rows, members):
        sid = imported.session_result_id
        ledger.update_driver_user_mapping(load_rows(sid)["carol"].id, members["carol"].id, "admin")

        with session_factory() as db:
            standings = _by_name(calculate_season_standings(db, season.id))

        assert standings["Carol"].total_points == 15
        assert standings["Carol"].best_finish == 3
