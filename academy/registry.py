"""Session registry: one session per (date, time slot, age group).

Session ids are derived from that triple, so creating the same session twice
is detectable without a lookup table. Lookups still match on the triple
itself, because sessions mirrored from the backend carry the backend's ids.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from .constants import DEFAULT_COACH_ID, TIME_SLOTS
from .errors import DuplicateSessionError, SessionNotFoundError
from .fallback_store import FallbackStore
from .schemas import Session
from .utils import utcnow

logger = logging.getLogger('academy.registry')


def session_id_for(session_date: date, time_slot: str, age_group: str) -> str:
    """Deterministic session id, e.g. '2025-03-01-morning-U12'."""
    return f'{session_date.isoformat()}-{time_slot}-{age_group}'


def build_session(
    session_date: date,
    time_slot: str,
    age_group: str,
    coach_id: str,
    now: datetime,
) -> Session:
    """Create a new scheduled Session (not persisted)."""
    return Session(
        id=session_id_for(session_date, time_slot, age_group),
        date=session_date,
        time_slot=time_slot,
        age_group=age_group,
        coach_id=coach_id,
        status='scheduled',
        created_at=now,
        updated_at=now,
    )


def slot_key(session: Session) -> tuple[date, str, str]:
    return session.date, session.time_slot, session.age_group


def newest_first(sessions: list[Session]) -> list[Session]:
    """Order by date descending, evening before morning (history order)."""
    return sorted(
        sessions, key=lambda s: (s.date, TIME_SLOTS.index(s.time_slot)), reverse=True
    )


class SessionRegistry:
    """Creates and looks up sessions in the local fallback store."""

    def __init__(
        self,
        store: FallbackStore,
        coach_id: str = DEFAULT_COACH_ID,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.coach_id = coach_id
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    def todays_sessions(self, age_group: str) -> list[Session]:
        """Today's stored sessions for an age group, morning first, without creating any."""
        today = self.today()
        sessions = [s for s in self.store.sessions() if s.date == today and s.age_group == age_group]
        return sorted(sessions, key=lambda s: TIME_SLOTS.index(s.time_slot))

    def get_or_create_todays_sessions(self, age_group: str) -> list[Session]:
        """
        Return today's morning and evening sessions for an age group.

        Missing slots are created as 'scheduled'. Slots that already exist,
        including a lone slot left by an interrupted earlier run, are
        returned as they are.

        Args:
            age_group: Age group key (e.g. 'U12')

        Returns:
            [morning_session, evening_session]
        """
        today = self.today()
        sessions = self.store.sessions()
        existing = {
            s.time_slot: s for s in sessions if s.date == today and s.age_group == age_group
        }

        missing = [slot for slot in TIME_SLOTS if slot not in existing]
        if missing:
            now = self.clock()
            created = [build_session(today, slot, age_group, self.coach_id, now) for slot in missing]
            self.store.save(sessions=sessions + created)
            for session in created:
                existing[session.time_slot] = session
            logger.info(f'Created {", ".join(missing)} session(s) for {age_group} on {today}')

        return [existing[slot] for slot in TIME_SLOTS]

    def create_session(
        self,
        session_date: date,
        time_slot: str,
        age_group: str,
        coach_id: Optional[str] = None,
    ) -> Session:
        """
        Create one session explicitly.

        Raises:
            DuplicateSessionError: If the (date, time slot, age group) exists
        """
        session = build_session(
            session_date, time_slot, age_group, coach_id or self.coach_id, self.clock()
        )
        sessions = self.store.sessions()
        if any(slot_key(s) == slot_key(session) for s in sessions):
            raise DuplicateSessionError(
                f'Session already exists for {age_group} on {session_date} ({time_slot})'
            )

        self.store.save(sessions=sessions + [session])
        logger.info(f'Created session {session.id}')
        return session

    def find_session(self, session_id: str) -> Optional[Session]:
        return next((s for s in self.store.sessions() if s.id == session_id), None)

    def get_session(self, session_id: str) -> Session:
        """Look up a session or raise SessionNotFoundError."""
        session = self.find_session(session_id)
        if session is None:
            raise SessionNotFoundError(f'Session not found: {session_id}')
        return session

    def sessions_by_age_group(self, age_group: str) -> list[Session]:
        """All sessions for an age group, newest date first, morning before evening."""
        sessions = [s for s in self.store.sessions() if s.age_group == age_group]
        return sorted(sessions, key=lambda s: (-s.date.toordinal(), TIME_SLOTS.index(s.time_slot)))

    def session_history(self, age_group: str, limit: int = 50, offset: int = 0) -> list[Session]:
        sessions = [s for s in self.store.sessions() if s.age_group == age_group]
        return newest_first(sessions)[offset : offset + limit]

    def set_group_photo(self, session_id: str, photo_ref: str) -> Session:
        """Attach an opaque group photo reference to a session."""
        sessions = self.store.sessions()
        for index, session in enumerate(sessions):
            if session.id == session_id:
                updated = session.model_copy(
                    update={'group_photo_url': photo_ref, 'updated_at': self.clock()}
                )
                sessions[index] = updated
                self.store.save(sessions=sessions)
                return updated
        raise SessionNotFoundError(f'Session not found: {session_id}')
