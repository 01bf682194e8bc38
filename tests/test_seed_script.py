"""
Tests for scripts/seed_matches.py: sample data seeder.
"""
import pytest
import sys
import os
import yaml

# Add scripts and src directories to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'scripts'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import seed_matches
from livematch.directory import MatchLookup, TeamDirectory, TournamentDirectory
from livematch.store import MatchStore


def test_seed_writes_directory_and_matches(tmp_path):
    assert seed_matches.main(['--data-dir', str(tmp_path)]) == 0

    teams = yaml.safe_load((tmp_path / 'teams.yaml').read_text())['teams']
    assert [t['team_id'] for t in teams] == ['T001', 'T002', 'T003', 'T004']

    store = MatchStore(str(tmp_path / 'matches'))
    records = store.all()
    assert [r.match_id for r in records] == ['M001', 'M002', 'M003']
    assert [r.status for r in records] == ['Live', 'Upcoming', 'Finished']
    m001 = store.get('M001')
    assert (m001.team1_score, m001.team2_score) == (2, 1)
    assert [p.player_id for p in m001.team1_players] == ['ar01', 'vk01']


def test_seeded_match_enriches(tmp_path):
    seed_matches.seed(str(tmp_path))
    lookup = MatchLookup(
        MatchStore(str(tmp_path / 'matches')),
        TeamDirectory(str(tmp_path / 'teams.yaml')),
        TournamentDirectory(str(tmp_path / 'tournaments.yaml')),
    )
    data = lookup.enriched('M002')
    assert data['tournament_name'] == 'National Hockey Cup'
    assert (data['team1_name'], data['team2_name']) == ('Team C', 'Team D')


def test_second_run_conflicts(tmp_path, capsys):
    assert seed_matches.main(['--data-dir', str(tmp_path)]) == 0
    assert seed_matches.main(['--data-dir', str(tmp_path)]) == 2
    assert '--reset' in capsys.readouterr().err


def test_reset_replaces_matches(tmp_path):
    seed_matches.seed(str(tmp_path))
    store = MatchStore(str(tmp_path / 'matches'))
    store.increment('M002', 'team1_score')

    assert seed_matches.main(['--data-dir', str(tmp_path), '--reset']) == 0
    assert store.get('M002').team1_score == 0


def test_every_sample_match_references_known_teams():
    team_ids = {t['team_id'] for t in seed_matches.TEAMS}
    for sample in seed_matches.MATCHES:
        assert sample['team1'] in team_ids
        assert sample['team2'] in team_ids
        assert sample['team1'] != sample['team2']
