#!/usr/bin/env python3
"""
Sample data seeder

Writes a small tournament, four teams with rosters and a handful of live
match records into a data directory, so the scorer and viewer pages have
something to show on a fresh install.

Usage:
    python scripts/seed_matches.py
    python scripts/seed_matches.py --data-dir /path/to/data --reset

Exit codes:
    0: Success
    1: Data directory could not be written
    2: A match already exists (use --reset to replace)
"""
import argparse
import os
import sys

import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from livematch.errors import Conflict, LiveMatchError
from livematch.models import MatchRecord, PlayerRef
from livematch.store import MatchStore

TOURNAMENTS = [
    {'tournament_id': 'TOUR001', 'tournament_name': 'National Hockey Cup',
     'start_date': '2025-08-10', 'end_date': '2025-08-20', 'location': 'National Stadium'},
]

TEAMS = [
    {'team_id': 'T001', 'team_name': 'Team A', 'tournament_id': 'TOUR001', 'city': 'Delhi',
     'members': [{'user_id': 'ar01', 'name': 'Arjun Rao', 'role': 'Player'},
                 {'user_id': 'vk01', 'name': 'Vikram Kumar', 'role': 'Player'}]},
    {'team_id': 'T002', 'team_name': 'Team B', 'tournament_id': 'TOUR001', 'city': 'Mumbai',
     'members': [{'user_id': 'ri01', 'name': 'Rohan Iyer', 'role': 'Player'},
                 {'user_id': 'sm01', 'name': 'Sunil Mehta', 'role': 'Captain'}]},
    {'team_id': 'T003', 'team_name': 'Team C', 'tournament_id': 'TOUR001', 'city': 'Pune',
     'members': [{'user_id': 'ap01', 'name': 'Anil Patil', 'role': 'Player'}]},
    {'team_id': 'T004', 'team_name': 'Team D', 'tournament_id': 'TOUR001', 'city': 'Chennai',
     'members': [{'user_id': 'kn01', 'name': 'Karthik Nair', 'role': 'Player'}]},
]

MATCHES = [
    {'match_id': 'M001', 'team1': 'T001', 'team2': 'T002', 'venue': 'National Stadium',
     'match_date': '2025-08-11', 'match_time': '15:00', 'status': 'Live',
     'team1_score': 2, 'team2_score': 1, 'total_seconds': 754, 'is_paused': False,
     'current_quarter': 'Q2'},
    {'match_id': 'M002', 'team1': 'T003', 'team2': 'T004', 'venue': 'City Arena',
     'match_date': '2025-08-12', 'match_time': '17:30', 'status': 'Upcoming',
     'total_seconds': 900},
    {'match_id': 'M003', 'team1': 'T002', 'team2': 'T003', 'venue': 'Olympic Field',
     'match_date': '2025-08-10', 'match_time': '19:00', 'status': 'Finished',
     'team1_score': 4, 'team2_score': 2, 'current_quarter': 'Q4'},
]


def _roster(team: dict) -> list:
    return [PlayerRef(player_id=m['user_id'], player_name=m['name']) for m in team['members']]


def build_matches() -> list:
    """Turn the MATCHES table into MatchRecords with roster snapshots."""
    teams = {t['team_id']: t for t in TEAMS}
    records = []
    for sample in MATCHES:
        team1, team2 = teams[sample['team1']], teams[sample['team2']]
        fields = {k: v for k, v in sample.items() if k not in ('team1', 'team2')}
        records.append(MatchRecord(
            tournament_id=team1['tournament_id'],
            team1_id=team1['team_id'], team1_name=team1['team_name'],
            team2_id=team2['team_id'], team2_name=team2['team_name'],
            team1_players=_roster(team1), team2_players=_roster(team2),
            **fields,
        ))
    return records


def write_directory(data_dir: str):
    """Write tournaments.yaml and teams.yaml."""
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, 'tournaments.yaml'), 'w', encoding='utf-8') as f:
        yaml.dump({'tournaments': TOURNAMENTS}, f, default_flow_style=False, sort_keys=False)
    with open(os.path.join(data_dir, 'teams.yaml'), 'w', encoding='utf-8') as f:
        yaml.dump({'teams': TEAMS}, f, default_flow_style=False, sort_keys=False)


def seed(data_dir: str, reset: bool = False) -> int:
    """Seed data_dir. Returns the number of matches written."""
    write_directory(data_dir)
    store = MatchStore(os.path.join(data_dir, 'matches'))
    count = 0
    for record in build_matches():
        if reset and store.exists(record.match_id):
            store.delete(record.match_id)
        store.create(record)
        print(f"  {record.match_id}: {record.team1_name} vs {record.team2_name} ({record.status})")
        count += 1
    return count


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Seed a data directory with sample tournaments, teams and live matches'
    )
    parser.add_argument(
        '--data-dir',
        default=os.environ.get('HOCKEY_DATA_DIR', os.path.join(os.path.dirname(__file__), '..', 'data')),
        help='Data directory (default: $HOCKEY_DATA_DIR or ./data)'
    )
    parser.add_argument(
        '--reset',
        action='store_true',
        help='Replace matches that already exist'
    )

    args = parser.parse_args(argv)

    print(f"Seeding {args.data_dir}")
    try:
        count = seed(args.data_dir, reset=args.reset)
    except Conflict as e:
        print(f"Error: {e.message} Use --reset to replace it.", file=sys.stderr)
        return 2
    except (OSError, LiveMatchError) as e:
        print(f"Error: Failed to write sample data: {e}", file=sys.stderr)
        return 1

    print(f"\nSeeded {count} matches.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
