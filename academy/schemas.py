"""Pydantic schemas for players, sessions and attendance.

Python attributes are snake_case. On the wire and in the local store the
camelCase aliases are used; both spellings validate, so rows coming straight
from the backend (``age_group``, ``time_slot``) parse as well as client
payloads (``ageGroup``, ``timeSlot``).
"""

from datetime import date, datetime, timezone
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .constants import (
    DEFAULT_BOOKED_SESSIONS,
    DEFAULT_COACH_ID,
    DEFAULT_MAX_COMPLIMENTARY,
    DEFAULT_TRAINING_COMPLETED,
    PRESENT_STATUSES,
)
from .utils import utcnow

TimeSlot = Literal['morning', 'evening']
SessionStatus = Literal['scheduled', 'in_progress', 'completed', 'cancelled']
AttendanceStatus = Literal['present_regular', 'present_complimentary', 'absent']


def _today() -> date:
    return utcnow().date()


class AcademyModel(BaseModel):
    """Shared configuration for all stored entities."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = 'ignore'
        coerce_numbers_to_str = True

    @field_validator('*', mode='after')
    @classmethod
    def assume_utc(cls, v):
        """Treat naive datetimes as UTC so timestamps always compare."""
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_json(self) -> dict[str, Any]:
        """Serialize with camelCase keys, as stored and sent."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


def _normalize_status(v):
    # Older clients sent 'present-regular'
    if isinstance(v, str):
        return v.strip().replace('-', '_')
    return v


def _none_to_empty(v):
    return '' if v is None else v


class Player(AcademyModel):
    """A player on an age group's roster."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    age_group: str = Field(..., min_length=1)
    booked_sessions: int = Field(default=DEFAULT_BOOKED_SESSIONS, ge=0)
    max_complimentary: int = Field(default=DEFAULT_MAX_COMPLIMENTARY, ge=0)
    training_completed: int = Field(default=DEFAULT_TRAINING_COMPLETED, ge=0)
    join_date: date = Field(default_factory=_today)
    notes: str = ''
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    empty_notes = field_validator('notes', mode='before')(_none_to_empty)


class PlayerCreate(AcademyModel):
    """Payload for adding a player."""

    class Config:
        extra = 'forbid'

    name: str = Field(..., min_length=1)
    age_group: str = Field(..., min_length=1)
    booked_sessions: int = Field(default=DEFAULT_BOOKED_SESSIONS, ge=0)
    max_complimentary: int = Field(default=DEFAULT_MAX_COMPLIMENTARY, ge=0)
    training_completed: int = Field(default=DEFAULT_TRAINING_COMPLETED, ge=0)
    join_date: date = Field(default_factory=_today)
    notes: str = ''

    empty_notes = field_validator('notes', mode='before')(_none_to_empty)


class PlayerUpdate(AcademyModel):
    """Partial update of a player; unset fields are left alone."""

    class Config:
        extra = 'forbid'

    name: Optional[str] = Field(None, min_length=1)
    age_group: Optional[str] = Field(None, min_length=1)
    booked_sessions: Optional[int] = Field(None, ge=0)
    max_complimentary: Optional[int] = Field(None, ge=0)
    training_completed: Optional[int] = Field(None, ge=0)
    join_date: Optional[date] = None
    notes: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually set, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


class Session(AcademyModel):
    """A training session for one age group in one time slot of one day."""

    id: str = Field(..., min_length=1)
    date: date
    time_slot: TimeSlot
    age_group: str = Field(..., min_length=1)
    coach_id: str = DEFAULT_COACH_ID
    status: SessionStatus = 'scheduled'
    group_photo_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            'groupPhotoUrl', 'group_photo_url', 'groupPhotoPath', 'group_photo_path'
        ),
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    normalize_status = field_validator('status', mode='before')(_normalize_status)

    @model_validator(mode='after')
    def default_updated_at(self):
        if self.updated_at is None:
            self.updated_at = self.created_at
        return self


class AttendanceEntry(AcademyModel):
    """One line of a mark-attendance batch."""

    player_id: str = Field(..., min_length=1)
    status: AttendanceStatus
    notes: str = ''

    normalize_status = field_validator('status', mode='before')(_normalize_status)
    empty_notes = field_validator('notes', mode='before')(_none_to_empty)


class AttendanceRecord(AcademyModel):
    """Current attendance outcome for one player in one session."""

    id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    status: AttendanceStatus
    notes: str = ''
    timestamp: datetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices('timestamp', 'createdAt', 'created_at'),
    )
    player_name: Optional[str] = None

    normalize_status = field_validator('status', mode='before')(_normalize_status)
    empty_notes = field_validator('notes', mode='before')(_none_to_empty)

    @property
    def is_present(self) -> bool:
        return self.status in PRESENT_STATUSES


class AttendanceHistoryEntry(AttendanceRecord):
    """Attendance record joined with its session, as shown in history views."""

    session_date: Optional[date] = None
    time_slot: Optional[TimeSlot] = None
    group_photo_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            'groupPhotoUrl', 'group_photo_url', 'groupPhotoPath', 'group_photo_path'
        ),
    )


class SessionWithAttendance(Session):
    """Session plus its attendance and head counts."""

    attendance: list[AttendanceRecord] = Field(default_factory=list)
    total_players: int = 0
    present_count: int = 0
    absent_count: int = 0


class PlayerWithStats(Player):
    """Player plus statistics derived from the attendance ledger."""

    total_sessions_attended: int = 0
    regular_sessions_used: int = 0
    complimentary_sessions_used: int = 0
    remaining_sessions: int = 0
    attendance_rate: float = 0.0
    last_attendance: Optional[datetime] = None


class LegacyPlayer(AcademyModel):
    """Counter-based player shape from before the session ledger existed."""

    kind: Literal['legacy_player'] = 'legacy_player'
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    age_group: Optional[str] = None
    booked_sessions: Optional[int] = None
    used_sessions: Optional[int] = None
    complimentary_sessions: Optional[int] = None
    max_complimentary: Optional[int] = None
    training_completed: Optional[int] = None
    join_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class LegacyAttendance(AcademyModel):
    """Per-day attendance line from the legacy recorder (no sessions)."""

    kind: Literal['legacy_attendance'] = 'legacy_attendance'
    id: Optional[str] = None
    player_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices('playerId', 'player_id', 'studentId', 'student_id'),
    )
    date: date
    status: Literal['present', 'late', 'absent'] = 'present'
    notes: Optional[str] = None

    @field_validator('status', mode='before')
    @classmethod
    def lowercase_status(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class AcademyConfig(BaseModel):
    """Client configuration settings."""

    api_base_url: str = Field(default='http://localhost:5000/api', min_length=1)
    request_timeout: Optional[float] = Field(default=10.0, gt=0)
    store_path: str = Field(default='data/local_store.json', min_length=1)
    coach_id: str = Field(default=DEFAULT_COACH_ID, min_length=1)
    default_booked_sessions: int = Field(default=DEFAULT_BOOKED_SESSIONS, ge=0)
    default_max_complimentary: int = Field(default=DEFAULT_MAX_COMPLIMENTARY, ge=0)
    legacy_age_group: str = Field(default='unassigned', min_length=1)
    session_history_limit: int = Field(default=50, ge=1)
    attendance_history_limit: int = Field(default=100, ge=1)
    mirror_remote: bool = True

    @field_validator('api_base_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        """Endpoint paths are joined with a single slash."""
        return v.rstrip('/')

    class Config:
        extra = 'forbid'
