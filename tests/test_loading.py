"""Tests for latest-wins load sequencing."""

from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest

from academy.loading import LoadSequencer, load_snapshot, reload
from academy.models import AcademySnapshot
from academy.schemas import PlayerWithStats, Session

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_services(offline_players=False, offline_sessions=False):
    players = Mock()
    players.get_players_with_stats.return_value = [
        PlayerWithStats(id='p1', name='Alex', age_group='U12')
    ]
    players.offline = offline_players

    sessions = Mock()
    sessions.get_todays_sessions.return_value = [
        Session(id='s1', date=date(2025, 3, 1), time_slot='morning', age_group='U12', created_at=NOW),
        Session(id='s2', date=date(2025, 3, 1), time_slot='evening', age_group='U12', created_at=NOW),
    ]
    sessions.offline = offline_sessions
    return players, sessions


class TestLoadSequencer:
    """Tests for request tokens."""

    def test_tokens_increase(self):
        sequencer = LoadSequencer()
        assert sequencer.begin() < sequencer.begin()

    def test_latest_wins(self):
        """Test that a result from a superseded load is discarded."""
        sequencer = LoadSequencer()
        first = sequencer.begin()
        second = sequencer.begin()

        assert sequencer.resolve(second, 'fresh') is True
        assert sequencer.resolve(first, 'stale') is False
        assert sequencer.current == 'fresh'

    def test_stale_result_arriving_first_is_discarded(self):
        sequencer = LoadSequencer()
        first = sequencer.begin()
        second = sequencer.begin()

        assert sequencer.resolve(first, 'stale') is False
        assert sequencer.current is None
        assert sequencer.loading is True

        sequencer.resolve(second, 'fresh')
        assert sequencer.current == 'fresh'
        assert sequencer.loading is False

    def test_full_replace(self):
        """Test that each published value replaces the previous one outright."""
        sequencer = LoadSequencer()
        sequencer.resolve(sequencer.begin(), ['a', 'b'])
        sequencer.resolve(sequencer.begin(), ['c'])
        assert sequencer.current == ['c']

    def test_loading_flag(self):
        sequencer = LoadSequencer()
        assert sequencer.loading is False
        token = sequencer.begin()
        assert sequencer.loading is True
        sequencer.abandon(token)
        assert sequencer.loading is False

    def test_is_current(self):
        sequencer = LoadSequencer()
        token = sequencer.begin()
        assert sequencer.is_current(token)
        sequencer.begin()
        assert not sequencer.is_current(token)


class TestLoadSnapshot:
    """Tests for loading a coach's full view."""

    def test_snapshot(self):
        players, sessions = make_services()

        snapshot = load_snapshot(players, sessions, 'U12')

        assert isinstance(snapshot, AcademySnapshot)
        assert [p.id for p in snapshot.players] == ['p1']
        assert [s.time_slot for s in snapshot.todays_sessions] == ['morning', 'evening']
        assert snapshot.offline is False
        players.get_players_with_stats.assert_called_once_with('U12')
        sessions.get_todays_sessions.assert_called_once_with('U12')

    @pytest.mark.parametrize('offline_players, offline_sessions', [(True, False), (False, True)])
    def test_offline_if_either_part_is_local(self, offline_players, offline_sessions):
        players, sessions = make_services(offline_players, offline_sessions)
        assert load_snapshot(players, sessions, 'U12').offline is True

    def test_reload_publishes_snapshot(self):
        players, sessions = make_services()
        sequencer = LoadSequencer()

        assert reload(sequencer, players, sessions, 'U12') is True
        assert sequencer.current.age_group == 'U12'

    def test_reload_failure_clears_loading(self):
        players, sessions = make_services()
        players.get_players_with_stats.side_effect = RuntimeError('boom')
        sequencer = LoadSequencer()

        with pytest.raises(RuntimeError):
            reload(sequencer, players, sessions, 'U12')
        assert sequencer.loading is False
        assert sequencer.current is None
