from .errors import (
    AcademyError,
    RemoteUnavailableError,
    DomainRejectionError,
    DuplicateSessionError,
    SessionNotFoundError,
    PlayerNotFoundError,
    AccessDeniedError,
    AttendanceValidationError,
    PersistenceError,
    MigrationError,
)
from .schemas import (
    Player,
    PlayerCreate,
    PlayerUpdate,
    PlayerWithStats,
    Session,
    SessionWithAttendance,
    AttendanceEntry,
    AttendanceRecord,
    AttendanceHistoryEntry,
    AcademyConfig,
)
from .models import AgeGroupSummary, MigrationReport, AcademySnapshot
from .store import LocalStore
from .fallback_store import FallbackStore
from .registry import SessionRegistry, session_id_for
from .ledger import AttendanceLedger, session_summary
from .stats import (
    stats_for,
    stats_for_players,
    can_use_complimentary,
    has_regular_sessions_left,
    quota_warnings,
    age_group_summary,
)
from .gateway import RemoteGateway
from .services import SessionService, PlayerService, create_services
from .migration import SchemaMigrator
from .loading import LoadSequencer, load_snapshot, reload

__all__ = [
    # Errors
    'AcademyError',
    'RemoteUnavailableError',
    'DomainRejectionError',
    'DuplicateSessionError',
    'SessionNotFoundError',
    'PlayerNotFoundError',
    'AccessDeniedError',
    'AttendanceValidationError',
    'PersistenceError',
    'MigrationError',
    # Schemas
    'Player',
    'PlayerCreate',
    'PlayerUpdate',
    'PlayerWithStats',
    'Session',
    'SessionWithAttendance',
    'AttendanceEntry',
    'AttendanceRecord',
    'AttendanceHistoryEntry',
    'AcademyConfig',
    # Results
    'AgeGroupSummary',
    'MigrationReport',
    'AcademySnapshot',
    # Local persistence
    'LocalStore',
    'FallbackStore',
    'SessionRegistry',
    'session_id_for',
    'AttendanceLedger',
    'session_summary',
    # Statistics
    'stats_for',
    'stats_for_players',
    'can_use_complimentary',
    'has_regular_sessions_left',
    'quota_warnings',
    'age_group_summary',
    # Remote-first facades
    'RemoteGateway',
    'SessionService',
    'PlayerService',
    'create_services',
    # Migration
    'SchemaMigrator',
    # Load sequencing
    'LoadSequencer',
    'load_snapshot',
    'reload',
]
