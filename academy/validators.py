"""Validation functions for attendance batches and quota checks."""

from typing import Mapping, Sequence

from .constants import PRESENT_COMPLIMENTARY, PRESENT_REGULAR
from .schemas import AttendanceEntry, PlayerWithStats


def validate_attendance_batch(entries: Sequence[AttendanceEntry]) -> list[str]:
    """
    Validate a mark-attendance batch before anything is written.

    Checks:
    - Every entry names a player
    - No player appears twice in one batch

    Args:
        entries: Parsed attendance entries

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    for index, entry in enumerate(entries):
        if not entry.player_id.strip():
            errors.append(f'Entry {index} has an empty player id')

    seen = set()
    duplicates = set()
    for entry in entries:
        if entry.player_id in seen:
            duplicates.add(entry.player_id)
        seen.add(entry.player_id)

    if duplicates:
        errors.append(f'Batch lists players more than once: {", ".join(sorted(duplicates))}')

    return errors


def validate_attendance_against_quota(
    entries: Sequence[AttendanceEntry],
    stats_by_player: Mapping[str, PlayerWithStats],
) -> list[str]:
    """
    Check a batch against each player's current quota.

    Quota limits are advisory: a coach may still record the attendance.
    Entries for players without stats are not checked.

    Args:
        entries: Parsed attendance entries
        stats_by_player: Current PlayerWithStats keyed by player id

    Returns:
        List of warning messages (empty if every entry is within quota)
    """
    warnings = []

    for entry in entries:
        stats = stats_by_player.get(entry.player_id)
        if stats is None:
            continue

        if entry.status == PRESENT_REGULAR and stats.remaining_sessions <= 0:
            warnings.append(
                f'{stats.name} has used all {stats.booked_sessions} booked sessions'
            )
        elif (
            entry.status == PRESENT_COMPLIMENTARY
            and stats.complimentary_sessions_used >= stats.max_complimentary
        ):
            warnings.append(
                f'{stats.name} has used all {stats.max_complimentary} complimentary sessions'
            )

    return warnings
