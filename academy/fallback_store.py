"""Typed collections of sessions, attendance and players in the local store.

Each collection is a JSON list under a versioned key. Reads validate every
entry and skip the ones that no longer parse; writes replace whole
collections through a single store update.
"""

import logging
from typing import Iterable, Optional, TypeVar

from pydantic import ValidationError

from .constants import ATTENDANCE_KEY, PLAYERS_KEY, SESSIONS_KEY
from .schemas import AcademyModel, AttendanceRecord, Player, Session
from .store import LocalStore

M = TypeVar('M', bound=AcademyModel)
logger = logging.getLogger('academy.fallback_store')


class FallbackStore:
    """Session, attendance and player collections over a LocalStore."""

    def __init__(self, store: LocalStore):
        self.store = store

    def _load(self, key: str, model: type[M]) -> list[M]:
        raw = self.store.get(key, [])
        if not isinstance(raw, list):
            logger.warning(f'Ignoring {key}: expected a list, got {type(raw).__name__}')
            return []

        items = []
        for index, item in enumerate(raw):
            try:
                items.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(f'Skipping malformed {key}[{index}]: {e.error_count()} error(s)')
        return items

    def sessions(self) -> list[Session]:
        return self._load(SESSIONS_KEY, Session)

    def attendance(self) -> list[AttendanceRecord]:
        return self._load(ATTENDANCE_KEY, AttendanceRecord)

    def players(self) -> list[Player]:
        return self._load(PLAYERS_KEY, Player)

    def save(
        self,
        sessions: Optional[Iterable[Session]] = None,
        attendance: Optional[Iterable[AttendanceRecord]] = None,
        players: Optional[Iterable[Player]] = None,
    ) -> None:
        """Replace the given collections in one persisted write."""
        values = {}
        if sessions is not None:
            values[SESSIONS_KEY] = [s.to_json() for s in sessions]
        if attendance is not None:
            values[ATTENDANCE_KEY] = [a.to_json() for a in attendance]
        if players is not None:
            values[PLAYERS_KEY] = [p.to_json() for p in players]
        if values:
            self.store.update(values)

    def delete_player(self, player_id: str) -> tuple[bool, int]:
        """
        Remove a player and every attendance record that references it.

        Returns:
            Tuple of (player_removed, attendance_records_removed)
        """
        players = self.players()
        attendance = self.attendance()

        kept_players = [p for p in players if p.id != player_id]
        kept_attendance = [a for a in attendance if a.player_id != player_id]

        removed_player = len(kept_players) != len(players)
        removed_records = len(attendance) - len(kept_attendance)
        if removed_player or removed_records:
            self.save(attendance=kept_attendance, players=kept_players)
        return removed_player, removed_records

    # Mirroring of remote-sourced data (read-through, no merge)

    def mirror_sessions(self, remote_sessions: Iterable[Session]) -> None:
        """Upsert remote sessions, dropping local ones that claim the same slot."""
        incoming = {s.id: s for s in remote_sessions}
        if not incoming:
            return
        slots = {(s.date, s.time_slot, s.age_group) for s in incoming.values()}
        kept = [
            s
            for s in self.sessions()
            if s.id not in incoming and (s.date, s.time_slot, s.age_group) not in slots
        ]
        self.save(sessions=kept + list(incoming.values()))

    def mirror_attendance(self, remote_records: Iterable[AttendanceRecord]) -> None:
        """Upsert remote attendance records by (session, player)."""
        incoming = {(r.session_id, r.player_id): r for r in remote_records}
        if not incoming:
            return
        kept = [a for a in self.attendance() if (a.session_id, a.player_id) not in incoming]
        self.save(attendance=kept + list(incoming.values()))

    def mirror_players(
        self, remote_players: Iterable[Player], age_group: Optional[str] = None
    ) -> None:
        """
        Store remote players locally.

        With an age group, the remote list is the complete roster for that
        group and replaces the local one outright. Without, players are
        upserted by id.
        """
        incoming = {p.id: p for p in remote_players}
        if age_group is not None:
            kept = [
                p for p in self.players() if p.age_group != age_group and p.id not in incoming
            ]
        else:
            if not incoming:
                return
            kept = [p for p in self.players() if p.id not in incoming]
        self.save(players=kept + list(incoming.values()))
