"""Session and player facades over the remote backend and the local store.

Every operation tries the backend first. A ``RemoteUnavailableError`` sends
it to the local store instead; domain rejections from a reachable backend are
raised to the caller untouched. Successful remote results are mirrored into
the local store so a later offline read has something to show. The two
stores are never reconciled beyond that: a local write made while offline
stays local until the caller re-reads from a reachable backend.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from .config import get_config
from .constants import DEFAULT_COACH_ID
from .errors import (
    AccessDeniedError,
    DomainRejectionError,
    PersistenceError,
    PlayerNotFoundError,
    RemoteUnavailableError,
)
from .fallback_store import FallbackStore
from .gateway import RemoteGateway
from .ledger import AttendanceLedger, parse_entries, session_summary
from .models import AgeGroupSummary
from .registry import SessionRegistry
from .schemas import (
    AcademyConfig,
    AttendanceEntry,
    AttendanceHistoryEntry,
    AttendanceRecord,
    Player,
    PlayerCreate,
    PlayerUpdate,
    PlayerWithStats,
    Session,
    SessionWithAttendance,
)
from .stats import age_group_summary, stats_for, stats_for_players
from .store import LocalStore
from .utils import utcnow

R = TypeVar('R')
logger = logging.getLogger('academy.services')


class _FallbackService:
    """Remote-first call helpers shared by the facades."""

    def __init__(
        self,
        gateway: Optional[RemoteGateway],
        store: FallbackStore,
        age_group: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
        mirror: bool = True,
    ):
        self.gateway = gateway
        self.store = store
        self.age_group = age_group
        self.clock = clock
        self.mirror = mirror
        self.offline = False

    def _call(
        self,
        operation: str,
        remote: Callable[[RemoteGateway], R],
        local: Callable[[], R],
    ) -> tuple[R, bool]:
        if self.gateway is None:
            self.offline = True
            return local(), False
        try:
            result = remote(self.gateway)
        except RemoteUnavailableError as e:
            logger.warning(f'{operation}: backend unavailable, using local store ({e})')
            self.offline = True
            return local(), False
        self.offline = False
        return result, True

    def _read(
        self,
        operation: str,
        remote: Callable[[RemoteGateway], R],
        local: Callable[[], R],
        mirror: Optional[Callable[[R], None]] = None,
    ) -> R:
        """Remote read with local fallback; the local read never raises for storage problems."""
        result, from_remote = self._call(operation, remote, local)
        if from_remote and mirror is not None:
            self._mirror(operation, mirror, result)
        return result

    def _write(
        self,
        operation: str,
        remote: Callable[[RemoteGateway], R],
        local: Callable[[], R],
        mirror: Optional[Callable[[R], None]] = None,
        always_mirror: bool = False,
    ) -> R:
        """
        Remote write with local fallback.

        With always_mirror the mirror step runs even when mirroring is switched
        off, for local changes that must follow a remote success (cascades).

        Raises:
            PersistenceError: If the backend is unavailable and the local write fails
            DomainRejectionError: If either store rejects the request
        """
        def local_or_fail() -> R:
            try:
                return local()
            except DomainRejectionError:
                raise
            except OSError as e:
                logger.error(f'{operation}: local write failed: {e}')
                raise PersistenceError(f'{operation} could not be saved: {e}') from e

        result, from_remote = self._call(operation, remote, local_or_fail)
        if from_remote and mirror is not None:
            self._mirror(operation, mirror, result, force=always_mirror)
        return result

    def _mirror(
        self, operation: str, mirror: Callable[[R], None], result: R, force: bool = False
    ) -> None:
        if not (self.mirror or force):
            return
        try:
            mirror(result)
        except DomainRejectionError:
            raise
        except OSError as e:
            logger.warning(f'{operation}: could not mirror remote result locally: {e}')

    def _check_scope(self, age_group: str) -> None:
        if self.age_group is not None and age_group != self.age_group:
            raise AccessDeniedError(f'Coach for {self.age_group} cannot access {age_group}')


class SessionService(_FallbackService):
    """Sessions and attendance, remote first."""

    def __init__(
        self,
        gateway: Optional[RemoteGateway],
        store: FallbackStore,
        coach_id: str = DEFAULT_COACH_ID,
        age_group: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
        mirror: bool = True,
        history_limit: int = 50,
        attendance_limit: int = 100,
    ):
        super().__init__(gateway, store, age_group=age_group, clock=clock, mirror=mirror)
        self.coach_id = coach_id
        self.registry = SessionRegistry(store, coach_id=coach_id, clock=clock)
        self.ledger = AttendanceLedger(store, clock=clock)
        self.history_limit = history_limit
        self.attendance_limit = attendance_limit

    def get_todays_sessions(self, age_group: str) -> list[Session]:
        """Today's [morning, evening] sessions, created on first request."""
        def local() -> list[Session]:
            self._check_scope(age_group)
            try:
                return self.registry.get_or_create_todays_sessions(age_group)
            except OSError as e:
                logger.error(f'get_todays_sessions: could not save new sessions locally: {e}')
                return self.registry.todays_sessions(age_group)

        return self._read(
            'get_todays_sessions',
            lambda gw: gw.get_todays_sessions(age_group),
            local,
            self.store.mirror_sessions,
        )

    def create_session(
        self,
        session_date: date,
        time_slot: str,
        age_group: str,
        coach_id: Optional[str] = None,
    ) -> Session:
        """
        Create a session explicitly.

        Raises:
            DuplicateSessionError: If the (date, time slot, age group) exists
        """
        coach_id = coach_id or self.coach_id

        def local() -> Session:
            self._check_scope(age_group)
            return self.registry.create_session(session_date, time_slot, age_group, coach_id)

        return self._write(
            'create_session',
            lambda gw: gw.create_session(session_date, time_slot, age_group, coach_id),
            local,
            lambda session: self.store.mirror_sessions([session]),
        )

    def get_session_history(
        self, age_group: str, limit: Optional[int] = None, offset: int = 0
    ) -> list[Session]:
        """Past sessions for an age group, newest first."""
        limit = limit or self.history_limit
        return self._read(
            'get_session_history',
            lambda gw: gw.get_session_history(age_group, limit=limit, offset=offset),
            lambda: self.registry.session_history(age_group, limit=limit, offset=offset),
            self.store.mirror_sessions,
        )

    def mark_attendance(
        self,
        session_id: str,
        entries: Iterable[AttendanceEntry | Mapping[str, Any]],
    ) -> list[AttendanceRecord]:
        """
        Record attendance for a session and mark it completed.

        The batch is validated before either store is touched.

        Raises:
            AttendanceValidationError: If the batch is invalid
            SessionNotFoundError: If the session does not exist
            AccessDeniedError: If the session belongs to another age group
        """
        batch = parse_entries(entries)

        def mirror(records: list[AttendanceRecord]) -> None:
            self.store.mirror_attendance(records)
            sessions = self.store.sessions()
            for index, session in enumerate(sessions):
                if session.id == session_id and session.status != 'completed':
                    sessions[index] = session.model_copy(
                        update={'status': 'completed', 'updated_at': self.clock()}
                    )
                    self.store.save(sessions=sessions)
                    break

        return self._write(
            'mark_attendance',
            lambda gw: gw.mark_attendance(session_id, batch),
            lambda: self.ledger.mark_attendance(session_id, batch, age_group=self.age_group),
            mirror,
        )

    def get_session_attendance(self, session_id: str) -> list[AttendanceRecord]:
        """Current records for a session, ordered by player name."""
        return self._read(
            'get_session_attendance',
            lambda gw: gw.get_session_attendance(session_id),
            lambda: self.ledger.get_session_attendance(session_id),
            self.store.mirror_attendance,
        )

    def get_session_with_attendance(self, session: Session) -> SessionWithAttendance:
        return session_summary(session, self.get_session_attendance(session.id))

    def get_attendance_by_age_group(self, age_group: str) -> list[AttendanceRecord]:
        """Every known record for an age group's sessions (local ledger only)."""
        return self.ledger.attendance_by_age_group(age_group)

    def get_attendance_history(
        self,
        age_group: str,
        player_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[AttendanceHistoryEntry]:
        """Attendance joined with session details, newest first."""
        limit = limit or self.attendance_limit

        def mirror(entries: list[AttendanceHistoryEntry]) -> None:
            self.store.mirror_attendance(
                AttendanceRecord.model_validate(e.model_dump(include=set(AttendanceRecord.model_fields)))
                for e in entries
            )

        return self._read(
            'get_attendance_history',
            lambda gw: gw.get_attendance_history(
                age_group, player_id, start_date, end_date, limit=limit, offset=offset
            ),
            lambda: self.ledger.attendance_history(
                age_group, player_id, start_date, end_date, limit=limit, offset=offset
            ),
            mirror,
        )

    def set_group_photo(self, session_id: str, photo_ref: str) -> Optional[Session]:
        """Attach an opaque group photo reference to a session."""
        def local() -> Session:
            session = self.registry.get_session(session_id)
            self._check_scope(session.age_group)
            return self.registry.set_group_photo(session_id, photo_ref)

        def mirror(session: Optional[Session]) -> None:
            if session is not None:
                self.store.mirror_sessions([session])
            elif self.registry.find_session(session_id) is not None:
                self.registry.set_group_photo(session_id, photo_ref)

        return self._write(
            'set_group_photo',
            lambda gw: gw.set_group_photo(session_id, photo_ref),
            local,
            mirror,
        )


class PlayerService(_FallbackService):
    """Roster management and quota statistics, remote first."""

    def get_players(self, age_group: str) -> list[Player]:
        def local() -> list[Player]:
            return [p for p in self.store.players() if p.age_group == age_group]

        return self._read(
            'get_players',
            lambda gw: gw.get_players(age_group),
            local,
            lambda players: self.store.mirror_players(players, age_group=age_group),
        )

    def create_player(self, data: PlayerCreate | Mapping[str, Any]) -> Player:
        """
        Add a player to a roster.

        Args:
            data: PlayerCreate or a dict of its fields (camelCase or snake_case)

        Returns:
            The stored Player with its assigned id
        """
        payload = data if isinstance(data, PlayerCreate) else PlayerCreate.model_validate(data)

        def local() -> Player:
            self._check_scope(payload.age_group)
            now = self.clock()
            player = Player(
                id=f'player-{uuid.uuid4().hex[:12]}',
                created_at=now,
                updated_at=now,
                **payload.model_dump(),
            )
            self.store.save(players=self.store.players() + [player])
            logger.info(f'Added player {player.id} ({player.name}) locally')
            return player

        return self._write(
            'create_player',
            lambda gw: gw.create_player(payload),
            local,
            lambda player: self.store.mirror_players([player]),
        )

    def _find(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.store.players() if p.id == player_id), None)

    def _merged(self, player_id: str, changes: dict[str, Any]) -> Player:
        current = self._find(player_id)
        if current is None:
            raise PlayerNotFoundError(f'Player not found: {player_id}')
        return current.model_copy(update={**changes, 'updated_at': self.clock()})

    def update_player(self, player_id: str, updates: PlayerUpdate | Mapping[str, Any]) -> Player:
        """
        Apply a partial update to a player.

        Raises:
            PlayerNotFoundError: If the player does not exist
        """
        if not isinstance(updates, PlayerUpdate):
            updates = PlayerUpdate.model_validate(updates)
        changes = updates.changes()

        def remote(gw: RemoteGateway) -> Player:
            # The backend rewrites every column, so send a full row when one is known
            if self._find(player_id) is not None:
                return gw.update_player(player_id, self._merged(player_id, changes).to_json())
            return gw.update_player(
                player_id, updates.model_dump(mode='json', by_alias=True, exclude_unset=True)
            )

        def local() -> Player:
            player = self._merged(player_id, changes)
            self._check_scope(self._find(player_id).age_group)
            self._check_scope(player.age_group)
            players = [player if p.id == player_id else p for p in self.store.players()]
            self.store.save(players=players)
            return player

        return self._write(
            'update_player',
            remote,
            local,
            lambda player: self.store.mirror_players([player]),
        )

    def delete_player(self, player_id: str) -> None:
        """
        Remove a player and cascade-delete their attendance records.

        Raises:
            PlayerNotFoundError: If the player is unknown to the store that handled the call
        """
        def local() -> None:
            player = self._find(player_id)
            if player is None:
                raise PlayerNotFoundError(f'Player not found: {player_id}')
            self._check_scope(player.age_group)
            _, removed = self.store.delete_player(player_id)
            logger.info(f'Deleted player {player_id} and {removed} attendance record(s) locally')

        self._write(
            'delete_player',
            lambda gw: gw.delete_player(player_id),
            local,
            lambda _: self.store.delete_player(player_id),
            always_mirror=True,
        )

    def get_players_with_stats(self, age_group: str) -> list[PlayerWithStats]:
        """Roster with quota statistics computed from the local ledger."""
        return stats_for_players(self.get_players(age_group), self.store.attendance())

    def get_player_with_stats(self, player_id: str) -> Optional[PlayerWithStats]:
        player = self._find(player_id)
        if player is None:
            return None
        return stats_for(player, self.store.attendance())

    def get_age_group_summary(self, age_group: str) -> AgeGroupSummary:
        return age_group_summary(age_group, self.get_players(age_group), self.store.attendance())


def create_services(
    config: Optional[AcademyConfig] = None,
    token: Optional[str] = None,
    store: Optional[LocalStore] = None,
    age_group: Optional[str] = None,
) -> tuple[SessionService, PlayerService]:
    """
    Wire both facades from configuration.

    Args:
        config: Settings to use (defaults to get_config())
        token: Opaque bearer token attached to backend requests
        store: Local store handle to share (defaults to one at config.store_path)
        age_group: Coach scope for local writes

    Returns:
        Tuple of (session_service, player_service) sharing one gateway and store
    """
    config = config or get_config()
    store = store if store is not None else LocalStore(config.store_path)
    fallback = FallbackStore(store)
    gateway = RemoteGateway(config.api_base_url, token=token, timeout=config.request_timeout)

    sessions = SessionService(
        gateway,
        fallback,
        coach_id=config.coach_id,
        age_group=age_group,
        mirror=config.mirror_remote,
        history_limit=config.session_history_limit,
        attendance_limit=config.attendance_history_limit,
    )
    players = PlayerService(gateway, fallback, age_group=age_group, mirror=config.mirror_remote)
    return sessions, players
