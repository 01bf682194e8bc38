"""
Shared pytest fixtures for live match tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the concurrency stress tests
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from livematch.broadcast import BroadcastRouter
from livematch.directory import MatchLookup, TeamDirectory, TournamentDirectory
from livematch.handlers import MatchHandlers
from livematch.models import MatchRecord, PlayerRef
from livematch.registry import SubscriptionRegistry
from livematch.store import MatchStore


TEAMS = [
    {'team_id': 'T100', 'team_name': 'Alpha', 'tournament_id': 'TOUR001',
     'members': [{'user_id': 'al01', 'name': 'Alex Lane', 'role': 'Player'},
                 {'user_id': 'al02', 'name': 'Amy Lowe', 'role': 'Captain'}]},
    {'team_id': 'T200', 'team_name': 'Beta', 'tournament_id': 'TOUR001',
     'members': [{'user_id': 'be01', 'name': 'Ben Evans', 'role': 'Player'}]},
    {'team_id': 'T300', 'team_name': 'Gamma', 'tournament_id': 'TOUR001', 'members': []},
]

TOURNAMENTS = [
    {'tournament_id': 'TOUR001', 'tournament_name': 'Spring Cup'},
]


@pytest.fixture
def data_dir(tmp_path):
    """Temporary data directory with a team and tournament directory."""
    (tmp_path / 'teams.yaml').write_text(yaml.dump({'teams': TEAMS}, default_flow_style=False))
    (tmp_path / 'tournaments.yaml').write_text(yaml.dump({'tournaments': TOURNAMENTS}, default_flow_style=False))
    return str(tmp_path)


@pytest.fixture
def store(data_dir):
    return MatchStore(os.path.join(data_dir, 'matches'), lock_timeout=10)


@pytest.fixture
def lookup(store, data_dir):
    return MatchLookup(
        store,
        TeamDirectory(os.path.join(data_dir, 'teams.yaml')),
        TournamentDirectory(os.path.join(data_dir, 'tournaments.yaml')),
    )


@pytest.fixture
def router():
    return BroadcastRouter(SubscriptionRegistry())


@pytest.fixture
def handlers(lookup, store, router):
    return MatchHandlers(lookup, store, router)


@pytest.fixture
def m1(store):
    """Match m1: Alpha vs Beta, 0-0, stored."""
    record = MatchRecord(
        match_id='m1',
        tournament_id='TOUR001',
        team1_name='Alpha', team2_name='Beta',
        team1_id='T100', team2_id='T200',
        venue='Main Rink', match_date='2025-08-11', match_time='15:00',
        team1_players=[PlayerRef('al01', 'Alex Lane'), PlayerRef('al02', 'Amy Lowe')],
        team2_players=[PlayerRef('be01', 'Ben Evans')],
    )
    return store.create(record)


@pytest.fixture
def sample_event():
    return {
        'time': '12:34',
        'team': 'Alpha',
        'player_id': 'al01',
        'player_name': 'Alex Lane',
        'type': 'Goal',
        'quarter': 'Q2',
    }


@pytest.fixture
def app(data_dir):
    from app import create_app
    app = create_app({
        'TESTING': True,
        'DATA_DIR': data_dir,
        'LIVE_HEARTBEAT_SECONDS': 0.05,
    })
    return app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def live(app):
    """The store/lookup/router/handlers wired into the test app."""
    return app.extensions['livematch']
