#!/usr/bin/env python3
"""
Academy attendance CLI

Works against the backend named in the academy config, falling back to the
local store when the backend cannot be reached.

Usage:
    python academy_cli.py migrate
    python academy_cli.py today U12
    python academy_cli.py mark 2025-03-01-morning-U12 p1=present_regular p2=absent:"sick note"
    python academy_cli.py players U12 --stats
    python academy_cli.py summary U12
"""

import argparse
import logging
import os
import sys

from academy import (
    AcademyError,
    DomainRejectionError,
    LocalStore,
    SchemaMigrator,
    create_services,
    quota_warnings,
)
from academy.config import get_config
from academy.ledger import parse_entries
from academy.logging_config import get_logger, setup_logging
from academy.validators import validate_attendance_against_quota

logger = get_logger('academy.cli')


def parse_mark_entry(value: str) -> dict:
    """Parse PLAYER=STATUS[:NOTES] into an attendance entry dict."""
    if '=' not in value:
        raise argparse.ArgumentTypeError(f'Expected PLAYER=STATUS[:NOTES], got {value!r}')
    player_id, _, rest = value.partition('=')
    status, _, notes = rest.partition(':')
    return {'playerId': player_id.strip(), 'status': status.strip(), 'notes': notes}


def offline_note(*services) -> None:
    if any(s.offline for s in services):
        print('⚠️  Backend unavailable, showing local data')


def cmd_migrate(args, store, config) -> int:
    report = SchemaMigrator(store, config).migrate_once()
    if report.already_completed:
        print('Migration already completed')
        return 0
    print(
        f'✅ Migrated {report.players_migrated} player(s), {report.sessions_created} session(s), '
        f'{report.attendance_migrated} attendance record(s)'
    )
    for line in report.skipped:
        print(f'   skipped {line}')
    return 0


def cmd_today(args, sessions, players) -> int:
    today = sessions.get_todays_sessions(args.age_group)
    offline_note(sessions)
    for session in today:
        summary = sessions.get_session_with_attendance(session)
        print(
            f'  {session.id}  {session.time_slot:<8} {session.status:<10} '
            f'{summary.present_count}/{summary.total_players} present'
        )
    return 0


def cmd_mark(args, sessions, players) -> int:
    entries = parse_entries(args.entries)
    stats_by_player = {}
    for entry in entries:
        stats = players.get_player_with_stats(entry.player_id)
        if stats is not None:
            stats_by_player[entry.player_id] = stats
    for warning in validate_attendance_against_quota(entries, stats_by_player):
        print(f'⚠️  {warning}')

    records = sessions.mark_attendance(args.session_id, entries)
    offline_note(sessions)
    print(f'✅ Recorded {len(records)} attendance record(s) for {args.session_id}')
    return 0


def cmd_players(args, sessions, players) -> int:
    if not args.stats:
        roster = players.get_players(args.age_group)
        offline_note(players)
        for player in roster:
            print(f'  {player.id}  {player.name}')
        return 0

    roster = players.get_players_with_stats(args.age_group)
    offline_note(players)
    for player in roster:
        badges = ', '.join(quota_warnings(player))
        print(
            f'  {player.name:<24} regular {player.regular_sessions_used}/{player.booked_sessions}  '
            f'comp {player.complimentary_sessions_used}/{player.max_complimentary}  '
            f'rate {player.attendance_rate:.2f}%' + (f'  [{badges}]' if badges else '')
        )
    return 0


def cmd_summary(args, sessions, players) -> int:
    summary = players.get_age_group_summary(args.age_group)
    offline_note(players)
    overall = summary.overall
    print(f'{args.age_group}: {overall["total_players"]} player(s), {overall["total_sessions"]} session(s)')
    print(f'Overall attendance: {overall["overall_attendance_rate"]:.2f}%')
    print(summary.players.select('name', 'regular_sessions', 'complimentary_sessions', 'absent_sessions', 'attendance_rate'))
    return 0


def main():
    parser = argparse.ArgumentParser(description='Academy session and attendance tracking')
    parser.add_argument(
        '--token', '-t',
        default=os.environ.get('ACADEMY_TOKEN'),
        help='Bearer token for the backend (default: $ACADEMY_TOKEN)',
    )
    parser.add_argument(
        '--age-group-scope',
        default=None,
        help='Coach age group; local writes to other groups are refused',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug logging',
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('migrate', help='Convert legacy local data (runs once)')

    today = subparsers.add_parser('today', help="Show (and create) today's sessions")
    today.add_argument('age_group')

    mark = subparsers.add_parser('mark', help='Record attendance for a session')
    mark.add_argument('session_id')
    mark.add_argument('entries', nargs='+', type=parse_mark_entry, metavar='PLAYER=STATUS[:NOTES]')

    players_cmd = subparsers.add_parser('players', help='List players in an age group')
    players_cmd.add_argument('age_group')
    players_cmd.add_argument('--stats', action='store_true', help='Include quota statistics')

    summary = subparsers.add_parser('summary', help='Attendance summary for an age group')
    summary.add_argument('age_group')

    args = parser.parse_args()

    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING, log_to_file=False)

    try:
        config = get_config()
        store = LocalStore(config.store_path)

        if args.command == 'migrate':
            sys.exit(cmd_migrate(args, store, config))

        # Legacy data must be in the current key space before anything reads it
        SchemaMigrator(store, config).migrate_once()
        sessions, players = create_services(
            config, token=args.token, store=store, age_group=args.age_group_scope
        )
        handlers = {
            'today': cmd_today,
            'mark': cmd_mark,
            'players': cmd_players,
            'summary': cmd_summary,
        }
        sys.exit(handlers[args.command](args, sessions, players))
    except DomainRejectionError as e:
        print(f'❌ {e}')
        sys.exit(1)
    except (AcademyError, ValueError) as e:
        logger.error(f'{args.command} failed: {e}')
        print(f'❌ {e}')
        sys.exit(2)


if __name__ == '__main__':
    main()
