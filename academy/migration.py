"""One-shot conversion of legacy counter-based data into the versioned key space.

Legacy players carried usage counters and attendance lived in a flat per-day
list with no sessions. The migrator maps both into current Player, Session and
AttendanceRecord shapes, then sets the completion flag and drops the legacy
keys in the same store update. If anything fatal happens first, the legacy
data and the flag are left as they were so the next start retries.
"""

import json
import logging
import uuid
from datetime import datetime, time, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .constants import (
    ATTENDANCE_KEY,
    DEFAULT_TRAINING_COMPLETED,
    LEGACY_ATTENDANCE_KEY,
    LEGACY_KEYS,
    LEGACY_PLAYER_KEYS,
    LEGACY_STATUS_MAP,
    MIGRATION_FLAG_KEY,
    PLAYERS_KEY,
    SESSIONS_KEY,
)
from .errors import MigrationError
from .fallback_store import FallbackStore
from .ledger import record_id_for
from .models import MigrationReport
from .registry import build_session, slot_key
from .schemas import AcademyConfig, AttendanceRecord, LegacyAttendance, LegacyPlayer, Player
from .store import LocalStore
from .utils import utcnow

logger = logging.getLogger('academy.migration')

LEGACY_SESSION_SLOT = 'morning'


class SchemaMigrator:
    """Migrates the legacy key space of one LocalStore."""

    def __init__(
        self,
        store: LocalStore,
        config: Optional[AcademyConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.config = config or AcademyConfig()
        self.clock = clock

    def _legacy_list(self, key: str) -> list[Any]:
        """Decode one legacy key (JSON text or an already-decoded list)."""
        value = self.store.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise MigrationError(f'Legacy key {key} is not valid JSON: {e.msg}') from e
        if not isinstance(value, list):
            raise MigrationError(f'Legacy key {key} should hold a list, found {type(value).__name__}')
        return value

    def _to_player(self, legacy: LegacyPlayer, now: datetime) -> Player:
        # Zero and missing both fall back to the contract defaults
        return Player(
            id=legacy.id or f'migrated-{uuid.uuid4().hex[:12]}',
            name=legacy.name,
            age_group=legacy.age_group or self.config.legacy_age_group,
            booked_sessions=legacy.booked_sessions or self.config.default_booked_sessions,
            max_complimentary=legacy.max_complimentary or self.config.default_max_complimentary,
            training_completed=legacy.training_completed or DEFAULT_TRAINING_COMPLETED,
            join_date=legacy.join_date or now.date(),
            notes=legacy.notes or '',
            created_at=legacy.created_at or now,
            updated_at=now,
        )

    def migrate_once(self) -> MigrationReport:
        """
        Run the legacy migration if it has not completed yet.

        Malformed legacy records are skipped and listed in the report. A
        legacy key that cannot be decoded at all aborts the pass.

        Returns:
            MigrationReport (already_completed=True when the flag was set)

        Raises:
            MigrationError: If legacy data is unreadable or the result cannot be saved
        """
        if self.store.migration_completed:
            logger.debug('Legacy migration already completed')
            return MigrationReport(already_completed=True)

        present_keys = [key for key in LEGACY_KEYS if self.store.has(key)]
        report = MigrationReport()
        if not present_keys:
            self.store.set(MIGRATION_FLAG_KEY, True)
            logger.info('No legacy data found, migration marked complete')
            return report

        legacy_players = [
            (key, index, item)
            for key in LEGACY_PLAYER_KEYS
            for index, item in enumerate(self._legacy_list(key))
        ]
        legacy_attendance = list(enumerate(self._legacy_list(LEGACY_ATTENDANCE_KEY)))

        now = self.clock()
        current = FallbackStore(self.store)
        players = current.players()
        sessions = current.sessions()
        attendance = current.attendance()

        known = {p.id: p for p in players}
        migrated: dict[str, LegacyPlayer] = {}

        for key, index, item in legacy_players:
            try:
                legacy = LegacyPlayer.model_validate(item)
            except ValidationError as e:
                report.skipped.append(f'{key}[{index}]: {e.error_count()} validation error(s)')
                continue

            if legacy.id is not None and legacy.id in known:
                if legacy.id not in migrated:
                    report.skipped.append(f'{key}[{index}]: player {legacy.id} already exists')
                continue

            try:
                player = self._to_player(legacy, now)
            except ValidationError as e:
                report.skipped.append(f'{key}[{index}]: {e.error_count()} validation error(s)')
                continue

            known[player.id] = player
            migrated[player.id] = legacy
            players.append(player)
            report.players_migrated += 1

        sessions_by_slot = {slot_key(s): s for s in sessions}
        records = {(r.session_id, r.player_id): r for r in attendance}

        for index, item in legacy_attendance:
            label = f'{LEGACY_ATTENDANCE_KEY}[{index}]'
            try:
                legacy = LegacyAttendance.model_validate(item)
            except ValidationError as e:
                report.skipped.append(f'{label}: {e.error_count()} validation error(s)')
                continue

            player = known.get(legacy.player_id)
            if player is None:
                report.skipped.append(f'{label}: unknown player {legacy.player_id}')
                continue

            key = (legacy.date, LEGACY_SESSION_SLOT, player.age_group)
            session = sessions_by_slot.get(key)
            if session is None:
                session = build_session(
                    legacy.date, LEGACY_SESSION_SLOT, player.age_group, self.config.coach_id, now
                ).model_copy(update={'status': 'completed'})
                sessions_by_slot[key] = session
                sessions.append(session)
                report.sessions_created += 1

            timestamp = datetime.combine(legacy.date, time.min, tzinfo=timezone.utc)
            records[(session.id, player.id)] = AttendanceRecord(
                id=legacy.id or record_id_for(session.id, player.id, timestamp),
                session_id=session.id,
                player_id=player.id,
                status=LEGACY_STATUS_MAP[legacy.status],
                notes=legacy.notes or '',
                timestamp=timestamp,
            )
            report.attendance_migrated += 1

        self._log_counter_gaps(migrated, records.values())

        try:
            self.store.update(
                {
                    SESSIONS_KEY: [s.to_json() for s in sessions],
                    ATTENDANCE_KEY: [r.to_json() for r in records.values()],
                    PLAYERS_KEY: [p.to_json() for p in players],
                    MIGRATION_FLAG_KEY: True,
                },
                remove=present_keys,
            )
        except OSError as e:
            raise MigrationError(f'Could not save migrated data: {e}') from e

        logger.info(
            f'Legacy migration complete: {report.players_migrated} player(s), '
            f'{report.sessions_created} session(s), {report.attendance_migrated} record(s), '
            f'{len(report.skipped)} skipped'
        )
        for line in report.skipped:
            logger.warning(f'Skipped legacy record {line}')
        return report

    def _log_counter_gaps(self, migrated: dict[str, LegacyPlayer], records) -> None:
        """Counters are not turned into records; report where they disagree with the ledger."""
        regular: dict[str, int] = {}
        for record in records:
            if record.is_present:
                regular[record.player_id] = regular.get(record.player_id, 0) + 1

        for player_id, legacy in migrated.items():
            counted = (legacy.used_sessions or 0) + (legacy.complimentary_sessions or 0)
            backed = regular.get(player_id, 0)
            if counted > backed:
                logger.warning(
                    f'Player {player_id} ({legacy.name}) had {counted} session(s) counted '
                    f'but only {backed} attendance record(s); counters were not migrated'
                )
