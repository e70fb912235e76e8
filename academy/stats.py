"""Quota statistics derived from the attendance ledger.

Everything here is a pure function of a player definition and the ledger.
Nothing is cached, so a stats call after a ledger write always reflects it.
"""

from collections import defaultdict
from typing import Iterable

import polars as pl

from .constants import ABSENT, PRESENT_COMPLIMENTARY, PRESENT_REGULAR
from .models import AgeGroupSummary
from .schemas import AttendanceRecord, Player, PlayerWithStats

ATTENDANCE_SCHEMA = {'session_id': pl.Utf8, 'player_id': pl.Utf8, 'status': pl.Utf8}
PLAYER_SCHEMA = {
    'player_id': pl.Utf8,
    'name': pl.Utf8,
    'booked_sessions': pl.Int64,
    'max_complimentary': pl.Int64,
}


def attendance_rate(attended: int, total_records: int) -> float:
    """Percentage of records that are attendances, rounded to 2 places (0 with no records)."""
    if total_records == 0:
        return 0.0
    return round(attended * 100 / total_records, 2)


def stats_for(player: Player, ledger: Iterable[AttendanceRecord]) -> PlayerWithStats:
    """
    Compute a player's quota usage from the full attendance ledger.

    Args:
        player: Player definition (booked and complimentary quota)
        ledger: All attendance records; other players' records are ignored

    Returns:
        PlayerWithStats with usage, remaining sessions, rate and last attendance
    """
    records = [r for r in ledger if r.player_id == player.id]

    regular = sum(1 for r in records if r.status == PRESENT_REGULAR)
    complimentary = sum(1 for r in records if r.status == PRESENT_COMPLIMENTARY)
    attended = regular + complimentary
    present_times = [r.timestamp for r in records if r.is_present]

    return PlayerWithStats(
        **player.model_dump(),
        regular_sessions_used=regular,
        complimentary_sessions_used=complimentary,
        total_sessions_attended=attended,
        remaining_sessions=max(0, player.booked_sessions - regular),
        attendance_rate=attendance_rate(attended, len(records)),
        last_attendance=max(present_times) if present_times else None,
    )


def stats_for_players(
    players: Iterable[Player], ledger: Iterable[AttendanceRecord]
) -> list[PlayerWithStats]:
    """stats_for over a roster, grouping the ledger once."""
    by_player: dict[str, list[AttendanceRecord]] = defaultdict(list)
    for record in ledger:
        by_player[record.player_id].append(record)
    return [stats_for(player, by_player.get(player.id, [])) for player in players]


def can_use_complimentary(stats: PlayerWithStats) -> bool:
    """Whether another complimentary session is within the player's cap (advisory)."""
    return stats.complimentary_sessions_used < stats.max_complimentary


def has_regular_sessions_left(stats: PlayerWithStats) -> bool:
    return stats.remaining_sessions > 0


def quota_warnings(stats: PlayerWithStats) -> list[str]:
    """
    Human-readable warnings for limits a player has reached.

    These are badges for the caller to show; they never block a write.
    """
    warnings = []
    if stats.regular_sessions_used >= stats.booked_sessions:
        warnings.append('Regular sessions limit reached')
    if stats.complimentary_sessions_used >= stats.max_complimentary:
        warnings.append('Complimentary sessions limit reached')
    return warnings


def attendance_frame(ledger: Iterable[AttendanceRecord]) -> pl.DataFrame:
    """Ledger as a DataFrame with session_id, player_id and status columns."""
    rows = [
        {'session_id': r.session_id, 'player_id': r.player_id, 'status': r.status}
        for r in ledger
    ]
    return pl.DataFrame(rows, schema=ATTENDANCE_SCHEMA)


def age_group_summary(
    age_group: str,
    players: Iterable[Player],
    ledger: Iterable[AttendanceRecord],
) -> AgeGroupSummary:
    """
    Overall and per-player attendance figures for an age group.

    Only players of the given age group are counted. The per-player table is
    ordered by attendance rate (highest first), then name.

    Args:
        age_group: Age group key
        players: Candidate players (others are filtered out)
        ledger: Attendance records

    Returns:
        AgeGroupSummary with an overall dict and a per-player DataFrame
    """
    roster = pl.DataFrame(
        [
            {
                'player_id': p.id,
                'name': p.name,
                'booked_sessions': p.booked_sessions,
                'max_complimentary': p.max_complimentary,
            }
            for p in players
            if p.age_group == age_group
        ],
        schema=PLAYER_SCHEMA,
    )

    attendance = attendance_frame(ledger).join(
        roster.select('player_id'), on='player_id', how='semi'
    )

    counts = attendance.group_by('player_id').agg(
        pl.len().alias('total_records'),
        (pl.col('status') == PRESENT_REGULAR).sum().alias('regular_sessions'),
        (pl.col('status') == PRESENT_COMPLIMENTARY).sum().alias('complimentary_sessions'),
        (pl.col('status') == ABSENT).sum().alias('absent_sessions'),
    )

    count_columns = ['total_records', 'regular_sessions', 'complimentary_sessions', 'absent_sessions']
    table = (
        roster.join(counts, on='player_id', how='left')
        .with_columns([pl.col(c).fill_null(0).cast(pl.Int64) for c in count_columns])
        .with_columns(
            (pl.col('regular_sessions') + pl.col('complimentary_sessions')).alias('attended')
        )
        .with_columns(
            pl.when(pl.col('total_records') > 0)
            .then((pl.col('attended') * 100 / pl.col('total_records')).round(2))
            .otherwise(0.0)
            .alias('attendance_rate'),
            pl.max_horizontal(
                pl.col('booked_sessions') - pl.col('regular_sessions'), pl.lit(0)
            ).alias('remaining_sessions'),
        )
        .sort(['attendance_rate', 'name'], descending=[True, False])
    )

    total_records = attendance.height
    total_present = int(table['attended'].sum()) if table.height else 0
    overall = {
        'total_players': roster.height,
        'total_sessions': attendance['session_id'].n_unique() if total_records else 0,
        'total_present': total_present,
        'total_records': total_records,
        'overall_attendance_rate': attendance_rate(total_present, total_records),
    }

    return AgeGroupSummary(age_group=age_group, overall=overall, players=table)
