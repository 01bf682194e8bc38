"""
Read-only lookups against the team and tournament directories, and the
glue that resolves a match plus its display names.

The directories are maintained by the registration side of the app; this
module only reads them (``teams.yaml`` and ``tournaments.yaml`` in the
data directory).
"""
import logging
import os

import yaml

from livematch.errors import BadRequest, NotFound, Unavailable
from livematch.models import MatchRecord, MatchStatus, PlayerRef, validate_match_id

logger = logging.getLogger(__name__)


def _load_yaml_list(path: str, key: str) -> list:
    """Load the list stored under key in a YAML file; a missing file is an empty list."""
    if not os.path.exists(path):
        return []
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning('Failed to parse %s: %s', path, e)
        raise Unavailable('Directory data is unavailable.') from e
    if not data:
        return []
    return data.get(key) or []


class TeamDirectory:
    def __init__(self, path: str):
        self.path = path

    def all(self) -> list:
        return _load_yaml_list(self.path, 'teams')

    def find_by_id(self, team_id):
        if team_id is None:
            return None
        return next((t for t in self.all() if str(t.get('team_id')) == str(team_id)), None)

    def find_by_name(self, team_name):
        if not team_name:
            return None
        return next((t for t in self.all() if t.get('team_name') == team_name), None)

    @staticmethod
    def roster(team: dict) -> list:
        """Return the team's members as PlayerRefs (the roster snapshot copied onto a match)."""
        players = []
        for member in team.get('members') or []:
            if member.get('user_id') is None:
                continue
            players.append(PlayerRef(player_id=str(member['user_id']),
                                     player_name=member.get('name') or str(member['user_id'])))
        return players


class TournamentDirectory:
    def __init__(self, path: str):
        self.path = path

    def find_by_id(self, tournament_id):
        if tournament_id is None:
            return None
        return next((t for t in _load_yaml_list(self.path, 'tournaments')
                     if str(t.get('tournament_id')) == str(tournament_id)), None)


class MatchLookup:
    """Resolves matches by match_id and decorates them with directory names."""

    def __init__(self, store, teams: TeamDirectory, tournaments: TournamentDirectory):
        self.store = store
        self.teams = teams
        self.tournaments = tournaments

    def get(self, match_id: str) -> MatchRecord:
        return self.store.get(match_id)

    def enriched(self, match_id: str) -> dict:
        """Return the record as a dict plus tournament_name and teamN_display_name.

        The stored teamN_name is left as is: score updates match against it,
        so a team renamed in the directory only changes the display name.
        """
        record = self.store.get(match_id)
        data = record.to_dict()

        tournament = self.tournaments.find_by_id(record.tournament_id)
        data['tournament_name'] = tournament.get('tournament_name') if tournament else None

        for side in ('team1', 'team2'):
            team = self.teams.find_by_id(data[f'{side}_id'])
            if team and team.get('team_name'):
                data[f'{side}_display_name'] = team['team_name']
            else:
                data[f'{side}_display_name'] = data[f'{side}_name']
        return data

    @staticmethod
    def team_side(record: MatchRecord, team_name):
        """Return 'team1' or 'team2' for the side whose name matches, else None."""
        if not team_name:
            return None
        if team_name == record.team1_name:
            return 'team1'
        if team_name == record.team2_name:
            return 'team2'
        return None

    def _resolve_team(self, body: dict, side: str) -> dict:
        team_id = body.get(f'{side}_id')
        team_name = body.get(f'{side}_name')
        if team_id is None and not team_name:
            raise BadRequest(f'{side}_id or {side}_name is required.')
        team = self.teams.find_by_id(team_id) if team_id is not None else self.teams.find_by_name(team_name)
        if not team:
            raise NotFound(f'Team "{team_id if team_id is not None else team_name}" not found.')
        return team

    def build_record(self, body: dict) -> MatchRecord:
        """Build a fresh MatchRecord from a creation request, snapshotting both rosters."""
        if not isinstance(body, dict):
            raise BadRequest('Request body must be a JSON object.')
        match_id = validate_match_id(body.get('match_id'))

        tournament_id = body.get('tournament_id')
        if tournament_id is not None and not self.tournaments.find_by_id(tournament_id):
            raise NotFound(f'Tournament "{tournament_id}" not found.')

        team1 = self._resolve_team(body, 'team1')
        team2 = self._resolve_team(body, 'team2')
        if team1.get('team_name') == team2.get('team_name'):
            raise BadRequest('A match needs two different teams.')

        total_seconds = body.get('total_seconds', 0)
        if isinstance(total_seconds, bool) or not isinstance(total_seconds, int) or total_seconds < 0:
            raise BadRequest('total_seconds must be a non-negative integer.')
        status = MatchStatus.parse(body.get('status', MatchStatus.UPCOMING.value)).value

        return MatchRecord(
            match_id=match_id,
            tournament_id=str(tournament_id) if tournament_id is not None else None,
            team1_name=team1['team_name'],
            team2_name=team2['team_name'],
            team1_id=str(team1['team_id']) if team1.get('team_id') is not None else None,
            team2_id=str(team2['team_id']) if team2.get('team_id') is not None else None,
            venue=body.get('venue'),
            match_date=body.get('match_date'),
            match_time=body.get('match_time'),
            status=status,
            total_seconds=total_seconds,
            team1_players=self.teams.roster(team1),
            team2_players=self.teams.roster(team2),
        )
