"""Attendance ledger: current outcome per (session, player).

Marking attendance again for the same pair replaces the earlier record
rather than adding a second one. Statistics are always derived from this
ledger; nothing here stores counters.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from .constants import TIME_SLOTS
from .errors import AccessDeniedError, AttendanceValidationError, SessionNotFoundError
from .fallback_store import FallbackStore
from .schemas import (
    AttendanceEntry,
    AttendanceHistoryEntry,
    AttendanceRecord,
    Player,
    Session,
    SessionWithAttendance,
)
from .utils import utcnow
from .validators import validate_attendance_batch

logger = logging.getLogger('academy.ledger')


def record_id_for(session_id: str, player_id: str, timestamp: datetime) -> str:
    return f'{session_id}-{player_id}-{int(timestamp.timestamp() * 1000)}'


def parse_entries(entries: Iterable[AttendanceEntry | Mapping[str, Any]]) -> list[AttendanceEntry]:
    """
    Coerce raw entry dicts into AttendanceEntry objects and pre-validate.

    Raises:
        AttendanceValidationError: If any entry is malformed or the batch is inconsistent
    """
    batch = []
    for index, entry in enumerate(entries):
        if isinstance(entry, AttendanceEntry):
            batch.append(entry)
            continue
        try:
            batch.append(AttendanceEntry.model_validate(entry))
        except ValidationError as e:
            raise AttendanceValidationError(f'Entry {index} is invalid: {e}') from e

    errors = validate_attendance_batch(batch)
    if errors:
        raise AttendanceValidationError('; '.join(errors))
    return batch


def upsert_records(
    existing: Sequence[AttendanceRecord],
    session_id: str,
    entries: Sequence[AttendanceEntry],
    now: datetime,
) -> tuple[list[AttendanceRecord], list[AttendanceRecord]]:
    """
    Apply a batch to a ledger without touching storage.

    Returns:
        Tuple of (full_ledger, records_written)
    """
    written = [
        AttendanceRecord(
            id=record_id_for(session_id, entry.player_id, now),
            session_id=session_id,
            player_id=entry.player_id,
            status=entry.status,
            notes=entry.notes,
            timestamp=now,
        )
        for entry in entries
    ]
    replaced = {(r.session_id, r.player_id) for r in written}
    kept = [r for r in existing if (r.session_id, r.player_id) not in replaced]
    return kept + written, written


def session_summary(
    session: Session, records: Sequence[AttendanceRecord]
) -> SessionWithAttendance:
    """Combine a session with its attendance records and head counts."""
    own = [r for r in records if r.session_id == session.id]
    present = sum(1 for r in own if r.is_present)
    return SessionWithAttendance(
        **session.model_dump(),
        attendance=own,
        total_players=len(own),
        present_count=present,
        absent_count=len(own) - present,
    )


def _by_player_name(records: list[AttendanceRecord]) -> list[AttendanceRecord]:
    return sorted(records, key=lambda r: ((r.player_name or '').lower(), r.player_id))


class AttendanceLedger:
    """Attendance records kept in the local fallback store."""

    def __init__(self, store: FallbackStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def mark_attendance(
        self,
        session_id: str,
        entries: Iterable[AttendanceEntry | Mapping[str, Any]],
        age_group: Optional[str] = None,
    ) -> list[AttendanceRecord]:
        """
        Record attendance for a session and mark the session completed.

        The whole batch is validated before anything is written, and the
        records and the session status change are persisted in one store
        update, so a rejected or failed call leaves the ledger unchanged.

        Args:
            session_id: Session to record against
            entries: AttendanceEntry objects or dicts with playerId/status/notes
            age_group: When given, the session must belong to this age group

        Returns:
            The records written by this call

        Raises:
            AttendanceValidationError: If the batch is invalid
            SessionNotFoundError: If the session does not exist
            AccessDeniedError: If the session belongs to another age group
        """
        batch = parse_entries(entries)

        sessions = self.store.sessions()
        index = next((i for i, s in enumerate(sessions) if s.id == session_id), None)
        if index is None:
            raise SessionNotFoundError(f'Session not found: {session_id}')
        session = sessions[index]
        if age_group is not None and session.age_group != age_group:
            raise AccessDeniedError(f'Session {session_id} does not belong to {age_group}')

        now = self.clock()
        ledger, written = upsert_records(self.store.attendance(), session_id, batch, now)
        sessions[index] = session.model_copy(update={'status': 'completed', 'updated_at': now})

        self.store.save(sessions=sessions, attendance=ledger)
        logger.info(f'Recorded {len(written)} attendance record(s) for session {session_id}')
        return written

    def _with_names(
        self, records: list[AttendanceRecord], players: Optional[Iterable[Player]] = None
    ) -> list[AttendanceRecord]:
        names = {p.id: p.name for p in (players if players is not None else self.store.players())}
        return [
            r.model_copy(update={'player_name': names.get(r.player_id, r.player_name)})
            for r in records
        ]

    def get_session_attendance(
        self, session_id: str, players: Optional[Iterable[Player]] = None
    ) -> list[AttendanceRecord]:
        """Current records for a session, ordered by player name."""
        records = [r for r in self.store.attendance() if r.session_id == session_id]
        return _by_player_name(self._with_names(records, players))

    def records_for_player(self, player_id: str) -> list[AttendanceRecord]:
        return [r for r in self.store.attendance() if r.player_id == player_id]

    def attendance_by_age_group(self, age_group: str) -> list[AttendanceRecord]:
        """Every record whose session belongs to the age group."""
        session_ids = {s.id for s in self.store.sessions() if s.age_group == age_group}
        return [r for r in self.store.attendance() if r.session_id in session_ids]

    def attendance_history(
        self,
        age_group: str,
        player_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AttendanceHistoryEntry]:
        """
        Attendance joined with session details, filtered and paged.

        Ordered by session date (newest first), evening before morning,
        then player name.
        """
        sessions = {s.id: s for s in self.store.sessions() if s.age_group == age_group}
        names = {p.id: p.name for p in self.store.players()}

        entries = []
        for record in self.store.attendance():
            session = sessions.get(record.session_id)
            if session is None:
                continue
            if player_id is not None and record.player_id != player_id:
                continue
            if start_date is not None and session.date < start_date:
                continue
            if end_date is not None and session.date > end_date:
                continue
            entries.append(
                AttendanceHistoryEntry(
                    **record.model_dump(exclude={'player_name'}),
                    player_name=names.get(record.player_id, record.player_name),
                    session_date=session.date,
                    time_slot=session.time_slot,
                    group_photo_url=session.group_photo_url,
                )
            )

        # Stable sorts: name ascending first, then date/slot descending
        entries.sort(key=lambda e: ((e.player_name or '').lower(), e.player_id))
        entries.sort(key=lambda e: (e.session_date, TIME_SLOTS.index(e.time_slot)), reverse=True)
        return entries[offset : offset + limit]
