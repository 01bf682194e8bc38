"""
Data model for a live hockey match.

A MatchRecord is stored as a plain dict (one YAML document per match), so
every class here converts to and from dicts.
"""
import re
from datetime import datetime, timezone
from enum import Enum

from livematch.errors import BadRequest

MATCH_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,64}$')


class MatchStatus(str, Enum):
    UPCOMING = 'Upcoming'
    LIVE = 'Live'
    FINISHED = 'Finished'

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            allowed = ', '.join(s.value for s in cls)
            raise BadRequest(f'Invalid status "{value}". Expected one of: {allowed}') from None


class Quarter(str, Enum):
    Q1 = 'Q1'
    Q2 = 'Q2'
    Q3 = 'Q3'
    Q4 = 'Q4'
    EXTRA_TIME = 'Extra Time'

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            allowed = ', '.join(q.value for q in cls)
            raise BadRequest(f'Invalid quarter "{value}". Expected one of: {allowed}') from None


REGULAR_QUARTERS = [Quarter.Q1.value, Quarter.Q2.value, Quarter.Q3.value, Quarter.Q4.value]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_match_id(match_id) -> str:
    """Return the canonical match identifier or raise BadRequest."""
    if not isinstance(match_id, str) or not MATCH_ID_PATTERN.match(match_id):
        raise BadRequest('match_id must be 1-64 characters: letters, digits, "_" or "-"')
    return match_id


def is_valid_match_id(match_id) -> bool:
    return isinstance(match_id, str) and bool(MATCH_ID_PATTERN.match(match_id))


def _require_text(data: dict, key: str, label: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f'{label} is required.')
    return value


class PlayerRef:
    def __init__(self, player_id, player_name):
        self.player_id = player_id
        self.player_name = player_name

    @classmethod
    def from_dict(cls, data: dict):
        return cls(player_id=str(data['player_id']), player_name=data['player_name'])

    def to_dict(self) -> dict:
        return {'player_id': self.player_id, 'player_name': self.player_name}

    def __eq__(self, other):
        if not isinstance(other, PlayerRef):
            return NotImplemented
        return self.player_id == other.player_id and self.player_name == other.player_name

    def __repr__(self):
        return f"PlayerRef(player_id={self.player_id}, player_name={self.player_name})"


class MatchEvent:
    """One play-by-play entry (goal, card, penalty corner...)."""

    FIELDS = ('time', 'team', 'player_id', 'player_name', 'type', 'quarter')

    def __init__(self, time, team, player_id, player_name, type, quarter):
        self.time = time
        self.team = team
        self.player_id = player_id
        self.player_name = player_name
        self.type = type
        self.quarter = quarter

    @classmethod
    def from_dict(cls, data):
        """Build an event from a request body, raising BadRequest on bad input."""
        if not isinstance(data, dict):
            raise BadRequest('event must be an object.')
        values = {field: _require_text(data, field, f'event.{field}') for field in cls.FIELDS}
        values['quarter'] = Quarter.parse(values['quarter']).value
        return cls(**values)

    def to_dict(self) -> dict:
        return {field: getattr(self, field) for field in self.FIELDS}

    def __repr__(self):
        return f"MatchEvent(time={self.time}, team={self.team}, type={self.type}, quarter={self.quarter})"


class MatchRecord:
    """Live state of one match: score, timer, quarter, rosters and event log."""

    def __init__(self, match_id, tournament_id=None,
                 team1_name=None, team2_name=None, team1_id=None, team2_id=None,
                 venue=None, match_date=None, match_time=None,
                 status=MatchStatus.UPCOMING.value,
                 team1_score=0, team2_score=0,
                 quarters=None, current_quarter=Quarter.Q1.value,
                 total_seconds=0, is_paused=True,
                 team1_players=None, team2_players=None,
                 match_events=None, updated_at=None):
        self.match_id = match_id
        self.tournament_id = tournament_id
        self.team1_name = team1_name
        self.team2_name = team2_name
        self.team1_id = team1_id
        self.team2_id = team2_id
        self.venue = venue
        self.match_date = match_date
        self.match_time = match_time
        self.status = status
        self.team1_score = team1_score
        self.team2_score = team2_score
        self.quarters = list(quarters) if quarters else list(REGULAR_QUARTERS)
        self.current_quarter = current_quarter
        self.total_seconds = total_seconds
        self.is_paused = is_paused
        self.team1_players = team1_players if team1_players is not None else []
        self.team2_players = team2_players if team2_players is not None else []
        self.match_events = match_events if match_events is not None else []
        self.updated_at = updated_at or utc_now()

    @classmethod
    def from_dict(cls, data: dict):
        data = dict(data)
        data['team1_players'] = [PlayerRef.from_dict(p) for p in data.get('team1_players') or []]
        data['team2_players'] = [PlayerRef.from_dict(p) for p in data.get('team2_players') or []]
        data['match_events'] = [MatchEvent(**{f: e.get(f) for f in MatchEvent.FIELDS})
                                for e in data.get('match_events') or []]
        known = {k: v for k, v in data.items() if k in _RECORD_FIELDS}
        return cls(**known)

    def to_dict(self) -> dict:
        return {
            'match_id': self.match_id,
            'tournament_id': self.tournament_id,
            'team1_name': self.team1_name,
            'team2_name': self.team2_name,
            'team1_id': self.team1_id,
            'team2_id': self.team2_id,
            'venue': self.venue,
            'match_date': self.match_date,
            'match_time': self.match_time,
            'status': self.status,
            'team1_score': self.team1_score,
            'team2_score': self.team2_score,
            'quarters': list(self.quarters),
            'current_quarter': self.current_quarter,
            'total_seconds': self.total_seconds,
            'is_paused': self.is_paused,
            'team1_players': [p.to_dict() for p in self.team1_players],
            'team2_players': [p.to_dict() for p in self.team2_players],
            'match_events': [e.to_dict() for e in self.match_events],
            'updated_at': self.updated_at,
        }

    def __repr__(self):
        return (f"MatchRecord(match_id={self.match_id}, {self.team1_name} {self.team1_score}"
                f" - {self.team2_score} {self.team2_name}, status={self.status})")


_RECORD_FIELDS = {
    'match_id', 'tournament_id', 'team1_name', 'team2_name', 'team1_id', 'team2_id',
    'venue', 'match_date', 'match_time', 'status', 'team1_score', 'team2_score',
    'quarters', 'current_quarter', 'total_seconds', 'is_paused',
    'team1_players', 'team2_players', 'match_events', 'updated_at',
}
