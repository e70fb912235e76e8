"""Tests for the local store and the typed fallback collections."""

import json
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from academy.constants import ATTENDANCE_KEY, MIGRATION_FLAG_KEY, PLAYERS_KEY, SESSIONS_KEY
from academy.fallback_store import FallbackStore
from academy.schemas import AttendanceRecord, Player, Session
from academy.store import LocalStore

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_player(player_id, age_group='U12', name=None):
    return Player(id=player_id, name=name or f'Player {player_id}', age_group=age_group, created_at=NOW)


def make_session(session_id, day=date(2025, 3, 1), slot='morning', age_group='U12'):
    return Session(id=session_id, date=day, time_slot=slot, age_group=age_group, created_at=NOW)


def make_record(session_id, player_id, status='present_regular'):
    return AttendanceRecord(
        id=f'{session_id}-{player_id}',
        session_id=session_id,
        player_id=player_id,
        status=status,
        timestamp=NOW,
    )


class TestLocalStore:
    """Tests for the JSON-file backed key/value store."""

    def test_in_memory_store(self):
        """Test that a store without a path works purely in memory."""
        store = LocalStore()
        store.set('key', [1, 2])
        assert store.get('key') == [1, 2]
        assert store.keys() == ['key']

    def test_persists_across_handles(self, tmp_path):
        """Test that values written by one handle are read by the next."""
        path = tmp_path / 'store.json'
        LocalStore(path).set('players_v2', [{'id': 'p1'}])

        assert LocalStore(path).get('players_v2') == [{'id': 'p1'}]
        assert json.loads(path.read_text())['players_v2'] == [{'id': 'p1'}]

    def test_get_returns_copy(self):
        """Test that mutating a returned value does not change the store."""
        store = LocalStore()
        store.set('items', [{'a': 1}])
        items = store.get('items')
        items.append({'b': 2})
        assert store.get('items') == [{'a': 1}]

    def test_get_default(self):
        """Test default for a missing key."""
        assert LocalStore().get('missing', []) == []

    def test_update_sets_and_removes_together(self, tmp_path):
        """Test multi-key update with removals."""
        store = LocalStore(tmp_path / 'store.json')
        store.update({'a': 1, 'b': 2})
        store.update({'c': 3}, remove=['a'])

        assert not store.has('a')
        assert store.get('b') == 2
        assert store.get('c') == 3

    def test_failed_write_leaves_store_unchanged(self, tmp_path):
        """Test that a failed file write does not change memory or disk."""
        path = tmp_path / 'store.json'
        store = LocalStore(path)
        store.set('a', 1)

        with patch('academy.store.save_json', side_effect=OSError('disk full')):
            with pytest.raises(OSError):
                store.update({'a': 2, 'b': 3})

        assert store.get('a') == 1
        assert not store.has('b')
        assert LocalStore(path).get('a') == 1

    def test_unreadable_file_starts_empty(self, tmp_path):
        """Test that a corrupt store file is treated as empty."""
        path = tmp_path / 'store.json'
        path.write_text('{not json')
        assert LocalStore(path).keys() == []

    def test_non_object_file_starts_empty(self, tmp_path):
        """Test that a JSON file holding a list is treated as empty."""
        path = tmp_path / 'store.json'
        path.write_text('[1, 2, 3]')
        assert LocalStore(path).keys() == []

    def test_reload(self, tmp_path):
        """Test that reload picks up changes made through another handle."""
        path = tmp_path / 'store.json'
        first = LocalStore(path)
        LocalStore(path).set('x', 'y')

        assert not first.has('x')
        first.reload()
        assert first.get('x') == 'y'

    def test_migration_completed_flag(self):
        """Test the migration guard property."""
        store = LocalStore()
        assert store.migration_completed is False
        store.set(MIGRATION_FLAG_KEY, True)
        assert store.migration_completed is True


class TestFallbackStore:
    """Tests for the typed session/attendance/player collections."""

    def test_save_and_load_round_trip_uses_camel_case(self):
        """Test that collections are stored with camelCase keys."""
        store = LocalStore()
        fallback = FallbackStore(store)
        fallback.save(players=[make_player('p1')], sessions=[make_session('s1')])

        raw_player = store.get(PLAYERS_KEY)[0]
        assert raw_player['ageGroup'] == 'U12'
        assert raw_player['bookedSessions'] == 12
        assert store.get(SESSIONS_KEY)[0]['timeSlot'] == 'morning'
        assert fallback.players()[0].id == 'p1'
        assert fallback.sessions()[0].time_slot == 'morning'

    def test_malformed_entries_are_skipped(self):
        """Test that entries failing validation are dropped on read."""
        store = LocalStore()
        store.set(
            SESSIONS_KEY,
            [
                make_session('s1').to_json(),
                {'id': 's2', 'date': 'not-a-date', 'timeSlot': 'morning', 'ageGroup': 'U12'},
                {'id': 's3', 'date': '2025-03-01', 'timeSlot': 'noon', 'ageGroup': 'U12'},
            ],
        )
        assert [s.id for s in FallbackStore(store).sessions()] == ['s1']

    def test_non_list_collection_is_empty(self):
        """Test that a collection key holding the wrong type reads as empty."""
        store = LocalStore()
        store.set(ATTENDANCE_KEY, {'oops': True})
        assert FallbackStore(store).attendance() == []

    def test_delete_player_cascades(self):
        """Test that deleting a player removes their attendance records too."""
        fallback = FallbackStore(LocalStore())
        fallback.save(
            players=[make_player('p1'), make_player('p2')],
            attendance=[
                make_record('s1', 'p1'),
                make_record('s2', 'p1', 'absent'),
                make_record('s1', 'p2'),
            ],
        )

        removed_player, removed_records = fallback.delete_player('p1')

        assert removed_player is True
        assert removed_records == 2
        assert [p.id for p in fallback.players()] == ['p2']
        assert [(r.session_id, r.player_id) for r in fallback.attendance()] == [('s1', 'p2')]

    def test_delete_unknown_player(self):
        """Test that deleting an unknown player changes nothing."""
        fallback = FallbackStore(LocalStore())
        fallback.save(players=[make_player('p1')])
        assert fallback.delete_player('ghost') == (False, 0)
        assert len(fallback.players()) == 1

    def test_mirror_players_replaces_age_group(self):
        """Test that a remote roster replaces the local roster for that group only."""
        fallback = FallbackStore(LocalStore())
        fallback.save(
            players=[make_player('p1'), make_player('p2'), make_player('x1', age_group='U14')]
        )

        fallback.mirror_players([make_player('p3')], age_group='U12')

        assert sorted(p.id for p in fallback.players()) == ['p3', 'x1']

    def test_mirror_players_upserts_without_age_group(self):
        """Test upsert by id when no age group is given."""
        fallback = FallbackStore(LocalStore())
        fallback.save(players=[make_player('p1', name='Old'), make_player('p2')])

        fallback.mirror_players([make_player('p1', name='New')])

        players = {p.id: p for p in fallback.players()}
        assert players['p1'].name == 'New'
        assert 'p2' in players

    def test_mirror_sessions_drops_local_session_for_same_slot(self):
        """Test that a remote session replaces a locally created one for the same slot."""
        fallback = FallbackStore(LocalStore())
        fallback.save(sessions=[make_session('2025-03-01-morning-U12')])

        fallback.mirror_sessions([make_session('42')])

        assert [s.id for s in fallback.sessions()] == ['42']

    def test_mirror_attendance_upserts_by_pair(self):
        """Test that mirrored attendance replaces the record for the same pair."""
        fallback = FallbackStore(LocalStore())
        fallback.save(attendance=[make_record('s1', 'p1', 'absent'), make_record('s1', 'p2')])

        fallback.mirror_attendance([make_record('s1', 'p1', 'present_complimentary')])

        records = {(r.session_id, r.player_id): r.status for r in fallback.attendance()}
        assert records == {('s1', 'p1'): 'present_complimentary', ('s1', 'p2'): 'present_regular'}
