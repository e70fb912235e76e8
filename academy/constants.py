"""Constants and storage keys for academy attendance tracking."""

# Session time slots, in display order
TIME_SLOTS = ('morning', 'evening')

# Attendance outcomes recorded in the ledger
PRESENT_REGULAR = 'present_regular'
PRESENT_COMPLIMENTARY = 'present_complimentary'
ABSENT = 'absent'
PRESENT_STATUSES = frozenset({PRESENT_REGULAR, PRESENT_COMPLIMENTARY})

# Contract defaults for new and migrated players
DEFAULT_BOOKED_SESSIONS = 12
DEFAULT_MAX_COMPLIMENTARY = 3
DEFAULT_TRAINING_COMPLETED = 0

DEFAULT_COACH_ID = 'current-coach'

# Local store key space (versioned)
SESSIONS_KEY = 'sessions_v2'
ATTENDANCE_KEY = 'attendance_v2'
PLAYERS_KEY = 'players_v2'
MIGRATION_FLAG_KEY = 'migration_completed_v2'

# Legacy (counter-based) key space, read once by the migrator
LEGACY_PLAYER_KEYS = ('players', 'academy-players')
LEGACY_ATTENDANCE_KEY = 'football-academy-attendance'
LEGACY_KEYS = LEGACY_PLAYER_KEYS + (LEGACY_ATTENDANCE_KEY,)

# Legacy attendance status -> ledger status
LEGACY_STATUS_MAP = {
    'present': PRESENT_REGULAR,
    'late': PRESENT_REGULAR,
    'absent': ABSENT,
}

# Remote HTTP statuses that mean "reachable, but the request was rejected"
DOMAIN_REJECTION_STATUSES = frozenset({400, 403, 404, 409, 422})
