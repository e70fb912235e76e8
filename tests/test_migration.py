"""Tests for the legacy data migration."""

import json
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from academy.constants import (
    ATTENDANCE_KEY,
    LEGACY_ATTENDANCE_KEY,
    MIGRATION_FLAG_KEY,
    PLAYERS_KEY,
    SESSIONS_KEY,
)
from academy.errors import MigrationError
from academy.fallback_store import FallbackStore
from academy.migration import SchemaMigrator
from academy.schemas import AcademyConfig, Player
from academy.store import LocalStore

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

LEGACY_PLAYERS = [
    {
        'id': 'p1',
        'name': 'Alex',
        'ageGroup': 'U12',
        'bookedSessions': 10,
        'usedSessions': 2,
        'complimentarySessions': 0,
        'joinDate': '2025-01-15',
    },
    {'id': 'p2', 'name': 'Bea', 'ageGroup': 'U12', 'bookedSessions': 0},
    {'name': 'No Id', 'ageGroup': 'U14'},
]

LEGACY_ATTENDANCE = [
    {'id': 'a1', 'studentId': 'p1', 'date': '2025-03-01', 'status': 'present'},
    {'id': 'a2', 'studentId': 'p2', 'date': '2025-03-01', 'status': 'Late'},
    {'id': 'a3', 'studentId': 'p1', 'date': '2025-03-02', 'status': 'absent', 'notes': 'ill'},
]


@pytest.fixture
def store():
    store = LocalStore()
    store.update(
        {
            'players': json.dumps(LEGACY_PLAYERS),
            LEGACY_ATTENDANCE_KEY: json.dumps(LEGACY_ATTENDANCE),
        }
    )
    return store


@pytest.fixture
def migrator(store):
    return SchemaMigrator(store, AcademyConfig(coach_id='coach-1'), clock=lambda: NOW)


class TestMigrateOnce:
    """Tests for a first migration pass."""

    def test_players_migrated_with_defaults(self, migrator, store):
        report = migrator.migrate_once()

        assert report.players_migrated == 3
        players = {p.name: p for p in FallbackStore(store).players()}
        assert players['Alex'].booked_sessions == 10
        assert players['Alex'].join_date == date(2025, 1, 15)
        assert players['Bea'].booked_sessions == 12
        assert players['Bea'].max_complimentary == 3
        assert players['Bea'].training_completed == 0
        assert players['Bea'].join_date == NOW.date()
        assert players['No Id'].id.startswith('migrated-')
        assert players['No Id'].age_group == 'U14'

    def test_attendance_becomes_morning_sessions(self, migrator, store):
        """Test one completed morning session per (date, age group)."""
        report = migrator.migrate_once()

        sessions = FallbackStore(store).sessions()
        assert report.sessions_created == 2
        assert sorted(s.id for s in sessions) == ['2025-03-01-morning-U12', '2025-03-02-morning-U12']
        assert all(s.status == 'completed' for s in sessions)
        assert all(s.coach_id == 'coach-1' for s in sessions)

    def test_status_mapping(self, migrator, store):
        report = migrator.migrate_once()

        records = {(r.session_id, r.player_id): r for r in FallbackStore(store).attendance()}
        assert report.attendance_migrated == 3
        assert records[('2025-03-01-morning-U12', 'p1')].status == 'present_regular'
        assert records[('2025-03-01-morning-U12', 'p2')].status == 'present_regular'
        absent = records[('2025-03-02-morning-U12', 'p1')]
        assert absent.status == 'absent'
        assert absent.notes == 'ill'
        assert absent.timestamp == datetime(2025, 3, 2, tzinfo=timezone.utc)

    def test_flag_set_and_legacy_keys_removed(self, migrator, store):
        migrator.migrate_once()

        assert store.migration_completed is True
        assert not store.has('players')
        assert not store.has(LEGACY_ATTENDANCE_KEY)

    def test_idempotent(self, migrator, store):
        """Test that a second run is a no-op."""
        migrator.migrate_once()
        snapshot = {key: store.get(key) for key in (PLAYERS_KEY, SESSIONS_KEY, ATTENDANCE_KEY)}

        report = migrator.migrate_once()

        assert report.already_completed is True
        assert {key: store.get(key) for key in snapshot} == snapshot

    def test_legacy_lists_already_decoded(self):
        """Test that legacy values stored as lists are accepted."""
        store = LocalStore()
        store.set('academy-players', [{'id': 'p1', 'name': 'Alex', 'ageGroup': 'U12'}])

        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert report.players_migrated == 1
        assert not store.has('academy-players')

    def test_same_player_in_both_legacy_keys(self):
        store = LocalStore()
        legacy = [{'id': 'p1', 'name': 'Alex', 'ageGroup': 'U12'}]
        store.update({'players': legacy, 'academy-players': legacy})

        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert report.players_migrated == 1
        assert report.skipped == []
        assert len(FallbackStore(store).players()) == 1

    def test_existing_players_not_overwritten(self):
        """Test that a current-shape player wins over a legacy one with the same id."""
        store = LocalStore()
        FallbackStore(store).save(players=[Player(id='p1', name='Current', age_group='U12')])
        store.set('players', [{'id': 'p1', 'name': 'Legacy', 'ageGroup': 'U12'}])

        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert report.players_migrated == 0
        assert [p.name for p in FallbackStore(store).players()] == ['Current']
        assert len(report.skipped) == 1

    def test_missing_age_group_uses_configured_default(self):
        store = LocalStore()
        store.set('players', [{'id': 'p1', 'name': 'Alex'}])

        SchemaMigrator(store, AcademyConfig(legacy_age_group='U10'), clock=lambda: NOW).migrate_once()

        assert FallbackStore(store).players()[0].age_group == 'U10'

    def test_null_counters_are_accepted(self):
        """Test that legacy counters stored as null do not drop the player."""
        store = LocalStore()
        store.set(
            'players',
            [{'id': 'p1', 'name': 'Alex', 'ageGroup': 'U12', 'usedSessions': None, 'complimentarySessions': None}],
        )

        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert report.players_migrated == 1
        assert report.skipped == []
        assert [p.id for p in FallbackStore(store).players()] == ['p1']

    def test_no_legacy_data(self):
        store = LocalStore()
        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()
        assert report.players_migrated == 0
        assert store.migration_completed is True


class TestMigrationFailures:
    """Tests for skipped records and fatal failures."""

    def test_malformed_records_are_skipped(self):
        store = LocalStore()
        store.update(
            {
                'players': [{'id': 'p1', 'name': 'Alex', 'ageGroup': 'U12'}, {'id': 'p2'}],
                LEGACY_ATTENDANCE_KEY: [
                    {'studentId': 'p1', 'date': 'yesterday'},
                    {'studentId': 'ghost', 'date': '2025-03-01'},
                    {'studentId': 'p1', 'date': '2025-03-01', 'status': 'present'},
                ],
            }
        )

        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert report.players_migrated == 1
        assert report.attendance_migrated == 1
        assert len(report.skipped) == 3
        assert any('ghost' in line for line in report.skipped)
        assert store.migration_completed is True

    def test_player_invalid_in_current_shape_is_skipped(self):
        """Test that a legacy player the current schema rejects is skipped, not fatal."""
        store = LocalStore()
        store.set(
            'players',
            [
                {'id': 'p1', 'name': 'Alex', 'ageGroup': 'U12'},
                {'id': 'p2', 'name': 'Bea', 'ageGroup': 'U12', 'bookedSessions': -1},
            ],
        )

        report = SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert report.players_migrated == 1
        assert report.skipped == ['players[1]: 1 validation error(s)']
        assert [p.id for p in FallbackStore(store).players()] == ['p1']
        assert store.migration_completed is True

    def test_unparseable_legacy_json_is_fatal(self):
        """Test that undecodable legacy data leaves everything for a retry."""
        store = LocalStore()
        store.set('players', '[{"name": "Alex"')

        with pytest.raises(MigrationError):
            SchemaMigrator(store, clock=lambda: NOW).migrate_once()

        assert store.migration_completed is False
        assert store.get('players') == '[{"name": "Alex"'
        assert not store.has(PLAYERS_KEY)

    def test_non_list_legacy_value_is_fatal(self):
        store = LocalStore()
        store.set(LEGACY_ATTENDANCE_KEY, {'a': 1})
        with pytest.raises(MigrationError):
            SchemaMigrator(store, clock=lambda: NOW).migrate_once()
        assert store.migration_completed is False

    def test_save_failure_leaves_legacy_data(self, migrator, store):
        """Test that a failed write keeps legacy keys and leaves the flag unset."""
        with patch.object(store, 'update', side_effect=OSError('disk full')):
            with pytest.raises(MigrationError):
                migrator.migrate_once()

        assert store.migration_completed is False
        assert store.has('players')
        assert store.get(MIGRATION_FLAG_KEY) is None

    def test_retry_after_failure(self, migrator, store):
        with patch.object(store, 'update', side_effect=OSError('disk full')):
            with pytest.raises(MigrationError):
                migrator.migrate_once()

        report = migrator.migrate_once()

        assert report.players_migrated == 3
        assert store.migration_completed is True
