"""
Tests for the edit ledger: penalties, positions, disqualifications, mappings and reverts
"""
import pytest
from sqlalchemy import func, select

from raceledger.core.exceptions import ConflictError, NotFoundError, ValidationError
from raceledger.models import DriverSessionResult, Penalty, RaceEditHistory
from raceledger.schemas.league import DriverMappingCreate


def _history_count(session_factory):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(RaceEditHistory)).scalar_one()


def _penalty_count(session_factory):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(Penalty)).scalar_one()


def _rows_by_position(session_factory, session_result_id):
    with session_factory() as db:
        return db.execute(
            select(DriverSessionResult)
            .where(DriverSessionResult.session_result_id == session_result_id)
            .order_by(DriverSessionResult.position)
        ).scalars().all()


def _positions(rows):
    return {name: row.position for name, row in rows.items()}


class TestPenalties:
    """Tests for post-race time penalties"""

    def test_add_then_revert(self, ledger, session_factory, imported, load_rows):
        """Adding and reverting leaves no penalty and two history entries"""
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]

        added = ledger.add_penalty(carol.id, 5, "Track limits", "steward")
        assert added.edit_type == "penalty"
        assert added.old_value == {"total_seconds": 0}
        assert added.new_value["total_seconds"] == 5
        assert added.new_value["penalty"]["seconds"] == 5
        assert load_rows(sid)["carol"].post_race_penalty_seconds == 5

        reverted = ledger.revert_edit(added.id, "steward")

        assert reverted.reverts_edit_id == added.id
        assert reverted.new_value == {"total_seconds": 0}
        assert _penalty_count(session_factory) == 0
        assert _history_count(session_factory) == 2
        assert load_rows(sid)["carol"].post_race_penalty_seconds == 0

    def test_penalties_stack(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]

        ledger.add_penalty(bob.id, 5, None, "steward")
        second = ledger.add_penalty(bob.id, 10, "Unsafe rejoin", "steward")

        assert second.old_value == {"total_seconds": 5}
        assert second.new_value["total_seconds"] == 15
        assert load_rows(sid)["bob"].post_race_penalty_seconds == 15

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_non_positive_seconds_rejected(self, ledger, session_factory, imported, load_rows, seconds):
        alice = load_rows(imported.session_result_id)["alice"]

        with pytest.raises(ValidationError):
            ledger.add_penalty(alice.id, seconds, None, "steward")

        assert _history_count(session_factory) == 0
        assert _penalty_count(session_factory) == 0

    def test_remove_then_revert_restores_penalty(self, ledger, session_factory, imported, load_rows):
        sid = imported.session_result_id
        alice = load_rows(sid)["alice"]
        added = ledger.add_penalty(alice.id, 3, "Speeding in pit lane", "steward")
        penalty_id = added.new_value["penalty"]["id"]

        removed = ledger.remove_penalty(alice.id, penalty_id, "steward")
        assert removed.old_value["penalty"]["id"] == penalty_id
        assert removed.new_value == {"total_seconds": 0}
        assert _penalty_count(session_factory) == 0

        restored = ledger.revert_edit(removed.id, "steward")

        assert restored.new_value["total_seconds"] == 3
        assert restored.new_value["penalty"]["reason"] == "Speeding in pit lane"
        assert load_rows(sid)["alice"].post_race_penalty_seconds == 3

    def test_remove_unknown_penalty(self, ledger, imported, load_rows):
        alice = load_rows(imported.session_result_id)["alice"]
        with pytest.raises(NotFoundError):
            ledger.remove_penalty(alice.id, 999, "steward")

    def test_penalty_of_another_entry_not_removed(self, ledger, imported, load_rows):
        rows = load_rows(imported.session_result_id)
        added = ledger.add_penalty(rows["alice"].id, 3, None, "steward")

        with pytest.raises(NotFoundError):
            ledger.remove_penalty(rows["bob"].id, added.new_value["penalty"]["id"], "steward")


class TestPositionChanges:
    """Tests for moving entries and shifting the rest"""

    def test_move_up_shifts_entries_between(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]

        entry = ledger.change_position(sid, carol.id, 1, "Penalty to others", "steward")

        assert entry.old_value == {"position": 3}
        assert entry.new_value == {"position": 1}
        assert _positions(load_rows(sid)) == {"carol": 1, "alice": 2, "bob": 3}

    def test_move_down_shifts_entries_between(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        alice = load_rows(sid)["alice"]

        ledger.change_position(sid, alice.id, 3, None, "steward")

        assert _positions(load_rows(sid)) == {"bob": 1, "carol": 2, "alice": 3}

    def test_revert_restores_every_position(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]
        entry = ledger.change_position(sid, carol.id, 1, None, "steward")

        reverted = ledger.revert_edit(entry.id, "steward")

        assert reverted.old_value == {"position": 1}
        assert reverted.new_value == {"position": 3}
        assert _positions(load_rows(sid)) == {"alice": 1, "bob": 2, "carol": 3}

    def test_second_revert_conflicts(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]
        entry = ledger.change_position(sid, carol.id, 1, None, "steward")
        first = ledger.revert_edit(entry.id, "steward")

        with pytest.raises(ConflictError) as exc_info:
            ledger.revert_edit(entry.id, "steward")

        assert exc_info.value.conflicting_entry_id == first.id

    def test_reverting_a_revert_reapplies(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]
        entry = ledger.change_position(sid, carol.id, 1, None, "steward")
        revert = ledger.revert_edit(entry.id, "steward")

        ledger.revert_edit(revert.id, "steward")

        assert _positions(load_rows(sid)) == {"carol": 1, "alice": 2, "bob": 3}

    @pytest.mark.parametrize("position", [0, -1])
    def test_position_below_one_rejected(self, ledger, session_factory, imported, load_rows, position):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]

        with pytest.raises(ValidationError):
            ledger.change_position(sid, bob.id, position, None, "steward")

        assert _history_count(session_factory) == 0
        assert _positions(load_rows(sid)) == {"alice": 1, "bob": 2, "carol": 3}

    def test_entry_of_another_session_not_found(self, ledger, importer, race, imported, make_session, load_rows):
        info, drivers = make_session(session_type=5)
        other = importer.import_session(info, drivers, race_id=race.id)
        bob_in_other = load_rows(other.session_result_id)["bob"]

        with pytest.raises(NotFoundError):
            ledger.change_position(imported.session_result_id, bob_in_other.id, 1, None, "steward")


class TestDisqualification:
    """Tests for disqualification and its revert"""

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_is_required(self, ledger, session_factory, imported, load_rows, reason):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]

        with pytest.raises(ValidationError):
            ledger.disqualify_driver(sid, bob.id, reason, "steward")

        assert _history_count(session_factory) == 0
        assert load_rows(sid)["bob"].result_status == "finished"

    def test_disqualify_keeps_position(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]

        entry = ledger.disqualify_driver(sid, bob.id, "Illegal floor", "steward")

        row = load_rows(sid)["bob"]
        assert row.result_status == "dsq"
        assert row.position == 2
        assert row.dnf_reason == "Illegal floor"
        assert entry.old_value == {"result_status": "finished", "position": 2, "dnf_reason": None}

    def test_already_disqualified_rejected(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]
        ledger.disqualify_driver(sid, bob.id, "Illegal floor", "steward")

        with pytest.raises(ValidationError):
            ledger.disqualify_driver(sid, bob.id, "Again", "steward")

    def test_revert_restores_status(self, ledger, imported, load_rows):
        sid = imported.session_result_id
        bob = load_rows(sid)["bob"]
        entry = ledger.disqualify_driver(sid, bob.id, "Illegal floor", "steward")

        ledger.revert_edit(entry.id, "steward")

        row = load_rows(sid)["bob"]
        assert row.result_status == "finished"
        assert row.position == 2
        assert row.dnf_reason is None

    def test_revert_conflicts_when_position_taken(self, ledger, imported, load_rows):
        """Carol moved into Bob's place after his disqualification"""
        sid = imported.session_result_id
        rows = load_rows(sid)
        dsq = ledger.disqualify_driver(sid, rows["bob"].id, "Illegal floor", "steward")
        ledger.change_position(sid, rows["carol"].id, 2, None, "steward")

        with pytest.raises(ConflictError) as exc_info:
            ledger.revert_edit(dsq.id, "steward")

        assert exc_info.value.conflicting_entry_id == rows["carol"].id
        assert load_rows(sid)["bob"].result_status == "dsq"


class TestUserMapping:
    """Tests for member reassignment"""

    def test_member_already_in_session_conflicts(self, ledger, session_factory, imported, load_rows, members):
        rows = load_rows(imported.session_result_id)

        with pytest.raises(ConflictError) as exc_info:
            ledger.update_driver_user_mapping(rows["carol"].id, members["alice"].id, "admin")

        assert exc_info.value.conflicting_entry_id == rows["alice"].id
        assert load_rows(imported.session_result_id)["carol"].member_id is None
        assert _history_count(session_factory) == 0

    def test_map_and_clear(self, ledger, imported, load_rows, members):
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]

        updates = ledger.update_driver_user_mapping(carol.id, members["carol"].id, "admin")
        assert [(u.old_member_id, u.new_member_id) for u in updates] == [(None, members["carol"].id)]
        assert load_rows(sid)["carol"].member_id == members["carol"].id

        cleared = ledger.update_driver_user_mapping(carol.id, None, "admin")
        assert cleared[0].new_member_id is None
        assert load_rows(sid)["carol"].member_id is None

    def test_unknown_member(self, ledger, imported, load_rows):
        carol = load_rows(imported.session_result_id)["carol"]
        with pytest.raises(NotFoundError):
            ledger.update_driver_user_mapping(carol.id, 999, "admin")

    def test_change_cascades_to_other_sessions_of_race(
        self, ledger, importer, race, imported, make_session, load_rows, members
    ):
        info, drivers = make_session(session_type=5)
        qualifying = importer.import_session(info, drivers, race_id=race.id)
        carol = load_rows(imported.session_result_id)["carol"]

        updates = ledger.update_driver_user_mapping(carol.id, members["carol"].id, "admin")

        assert {u.session_result_id for u in updates} == {imported.session_result_id, qualifying.session_result_id}
        assert load_rows(qualifying.session_result_id)["carol"].member_id == members["carol"].id

    def test_same_name_entry_in_session_is_not_cascaded(
        self, ledger, importer, session_factory, race, members, make_session, make_driver
    ):
        """Two cars named 'Player' in one session never end up with the same member"""
        info, _ = make_session()
        drivers = [make_driver(1, "Player"), make_driver(2, "Player"), make_driver(3, "Carol Racer")]
        sid = importer.import_session(info, drivers, race_id=race.id).session_result_id
        first, second, _ = _rows_by_position(session_factory, sid)

        updates = ledger.update_driver_user_mapping(first.id, members["carol"].id, "admin")

        assert [u.driver_session_result_id for u in updates] == [first.id]
        assert [r.member_id for r in _rows_by_position(session_factory, sid)] == [members["carol"].id, None, None]

        with pytest.raises(ConflictError) as exc_info:
            ledger.update_driver_user_mapping(second.id, members["carol"].id, "admin")
        assert exc_info.value.conflicting_entry_id == first.id

    def test_ambiguous_session_is_skipped(
        self, ledger, importer, session_factory, race, members, make_session, make_driver
    ):
        info, _ = make_session(session_type=5)
        qualifying = importer.import_session(
            info, [make_driver(1, "Player"), make_driver(2, "Player")], race_id=race.id
        ).session_result_id
        info, _ = make_session()
        sid = importer.import_session(info, [make_driver(1, "Player")], race_id=race.id).session_result_id
        entry = _rows_by_position(session_factory, sid)[0]

        updates = ledger.update_driver_user_mapping(entry.id, members["carol"].id, "admin")

        assert [u.session_result_id for u in updates] == [sid]
        assert [r.member_id for r in _rows_by_position(session_factory, qualifying)] == [None, None]

    def test_revert_mapping(self, ledger, imported, load_rows, members):
        sid = imported.session_result_id
        carol = load_rows(sid)["carol"]
        ledger.update_driver_user_mapping(carol.id, members["carol"].id, "admin")
        entry = ledger.get_driver_edit_history(carol.id)[0]

        ledger.revert_edit(entry.id, "admin")

        assert load_rows(sid)["carol"].member_id is None

    def test_reresolve_picks_up_new_mapping(self, ledger, league, season, imported, load_rows, members):
        sid = imported.session_result_id
        league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["carol"].id, sim_driver_name="Carol Racer", network_id=3,
        ))

        updates = ledger.reresolve_identities(sid, "admin")

        assert len(updates) == 1
        assert updates[0].new_member_id == members["carol"].id
        history = ledger.get_edit_history(sid)
        assert history[0].reason == "Re-resolved identity by network_id"

    def test_reresolve_skips_member_already_in_session(self, ledger, league, season, imported, members):
        """A mapping that points Carol's network id at Alice leaves Carol unmapped"""
        league.create_driver_mapping(season.id, DriverMappingCreate(
            member_id=members["alice"].id, sim_driver_name="Carol Racer", network_id=3,
        ))

        assert ledger.reresolve_identities(imported.session_result_id, "admin") == []


class TestValidateEdit:
    """Tests for pre-checks that write nothing"""

    def test_valid_penalty(self, ledger, imported, load_rows):
        alice = load_rows(imported.session_result_id)["alice"]
        assert ledger.validate_edit(imported.session_result_id, "penalty", {
            "driver_result_id": alice.id, "seconds": 5,
        })

    @pytest.mark.parametrize("edit_type, data, message", [
        ("bogus", {}, "Unknown edit type"),
        ("position_change", {"new_position": 0}, "Position must be 1 or higher"),
        ("disqualification", {"reason": ""}, "Disqualification reason is required"),
        ("penalty", {"seconds": 0}, "greater than zero"),
    ])
    def test_invalid_edits(self, ledger, session_factory, imported, edit_type, data, message):
        with pytest.raises(ValidationError, match=message):
            ledger.validate_edit(imported.session_result_id, edit_type, data)
        assert _history_count(session_factory) == 0

    def test_unknown_session(self, ledger, imported):
        with pytest.raises(NotFoundError):
            ledger.validate_edit(999, "penalty", {"seconds": 5})


class TestHistory:
    """Tests for history queries and revert restrictions"""

    def test_race_history_most_recent_first(self, ledger, race, imported, load_rows):
        sid = imported.session_result_id
        rows = load_rows(sid)
        first = ledger.add_penalty(rows["alice"].id, 5, None, "steward")
        second = ledger.change_position(sid, rows["carol"].id, 2, None, "steward")

        history = ledger.get_race_edit_history(race.id)

        assert [e.id for e in history] == [second.id, first.id]
        assert history[0].session_name == "Race"
        assert history[0].session_type == 10

    def test_driver_history_only_that_entry(self, ledger, imported, load_rows):
        rows = load_rows(imported.session_result_id)
        ledger.add_penalty(rows["alice"].id, 5, None, "steward")
        ledger.add_penalty(rows["bob"].id, 5, None, "steward")

        history = ledger.get_driver_edit_history(rows["bob"].id)

        assert len(history) == 1
        assert history[0].driver_session_result_id == rows["bob"].id

    def test_unknown_edit(self, ledger, imported):
        with pytest.raises(NotFoundError):
            ledger.revert_edit(999, "steward")
