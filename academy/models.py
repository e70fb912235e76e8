"""Result containers that are computed, never stored."""

from dataclasses import dataclass, field
from typing import Any

import polars as pl

from .schemas import PlayerWithStats, Session


@dataclass
class AgeGroupSummary:
    """Attendance overview for one age group."""
    age_group: str
    overall: dict[str, Any] = field(default_factory=dict)
    players: pl.DataFrame = field(default_factory=pl.DataFrame)


@dataclass
class MigrationReport:
    """Outcome of a legacy data migration pass."""
    already_completed: bool = False
    players_migrated: int = 0
    sessions_created: int = 0
    attendance_migrated: int = 0
    skipped: list[str] = field(default_factory=list)  # One line per legacy record not migrated


@dataclass
class AcademySnapshot:
    """Everything a coach screen shows for one age group, loaded together."""
    age_group: str
    players: list[PlayerWithStats] = field(default_factory=list)
    todays_sessions: list[Session] = field(default_factory=list)
    offline: bool = False
