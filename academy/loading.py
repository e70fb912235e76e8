"""Latest-wins sequencing for overlapping "reload everything" calls.

A screen may start a full reload while an earlier one (or a mark-then-reload)
is still in flight. Each load takes a token from a ``LoadSequencer``; only the
most recently issued token may publish its result, and a published result
replaces the whole view.
"""

import itertools
import logging
from typing import Generic, Optional, TypeVar

from .models import AcademySnapshot

T = TypeVar('T')
logger = logging.getLogger('academy.loading')


class LoadSequencer(Generic[T]):
    """Hands out monotonically increasing tokens and keeps the latest result."""

    def __init__(self):
        self._tokens = itertools.count(1)
        self._latest = 0
        self._pending: set[int] = set()
        self.current: Optional[T] = None

    def begin(self) -> int:
        """Start a load and return its token; earlier tokens become stale."""
        token = next(self._tokens)
        self._latest = token
        self._pending.add(token)
        return token

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def resolve(self, token: int, value: T) -> bool:
        """
        Publish a load result if its token is still the latest.

        Args:
            token: Token returned by begin()
            value: Complete replacement for the current view

        Returns:
            True if the value was published, False if it was discarded as stale
        """
        self._pending.discard(token)
        if not self.is_current(token):
            logger.debug(f'Discarding stale load {token} (latest is {self._latest})')
            return False
        self.current = value
        return True

    def abandon(self, token: int) -> None:
        """Forget a load that failed without a result."""
        self._pending.discard(token)

    @property
    def loading(self) -> bool:
        """True while the latest load has not resolved."""
        return self._latest in self._pending


def load_snapshot(player_service, session_service, age_group: str) -> AcademySnapshot:
    """
    Load the roster with stats and today's sessions for one age group.

    Args:
        player_service: PlayerService
        session_service: SessionService
        age_group: Age group key

    Returns:
        AcademySnapshot; offline is True if either part came from the local store
    """
    players = player_service.get_players_with_stats(age_group)
    players_offline = player_service.offline
    sessions = session_service.get_todays_sessions(age_group)

    return AcademySnapshot(
        age_group=age_group,
        players=players,
        todays_sessions=sessions,
        offline=players_offline or session_service.offline,
    )


def reload(sequencer: LoadSequencer[AcademySnapshot], player_service, session_service, age_group: str) -> bool:
    """
    Run a full reload under a sequencer token.

    Returns:
        True if this reload's snapshot became the current view
    """
    token = sequencer.begin()
    try:
        snapshot = load_snapshot(player_service, session_service, age_group)
    except Exception:
        sequencer.abandon(token)
        raise
    return sequencer.resolve(token, snapshot)
