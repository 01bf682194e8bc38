"""
Mutation handlers for a live match.

Each handler validates its input, performs exactly one state transition
through the store, and only after the write succeeded publishes the new
state. A missing match or an invalid body raises before anything is
written or published.
"""
import logging

from livematch import broadcast
from livematch.errors import BadRequest
from livematch.models import MatchEvent, MatchStatus, Quarter

logger = logging.getLogger(__name__)


def _require_body(body) -> dict:
    if not isinstance(body, dict):
        raise BadRequest('Request body must be a JSON object.')
    return body


class MatchHandlers:
    """Scorer-side operations on a match: score, timer, events, quarter, status, delete."""

    def __init__(self, lookup, store, router):
        self.lookup = lookup
        self.store = store
        self.router = router

    def _publish(self, event: str, match_id: str, payload: dict):
        # broadcast failures never fail the request
        try:
            self.router.publish(event, match_id, {'match_id': match_id, **payload})
        except Exception:
            logger.exception('Broadcast of %s for %s failed', event, match_id)

    def create_match(self, body):
        record = self.lookup.build_record(_require_body(body))
        record = self.store.create(record)
        self._publish(broadcast.MATCH_CREATED, record.match_id, {
            'team1_name': record.team1_name,
            'team2_name': record.team2_name,
            'status': record.status,
        })
        return record

    def update_score(self, match_id, body):
        """Add one goal to the team named by body['teamName']."""
        body = _require_body(body)
        team_name = body.get('teamName')
        if not isinstance(team_name, str) or not team_name:
            raise BadRequest('teamName is required.')

        record = self.lookup.get(match_id)
        side = self.lookup.team_side(record, team_name)
        if side is None:
            raise BadRequest(f'Invalid team name provided: "{team_name}".')
        if record.status != MatchStatus.LIVE.value:
            logger.info('Score update on match %s with status %s', match_id, record.status)

        record = self.store.increment(match_id, f'{side}_score')
        # Published after the document lock is released: concurrent goals can
        # reach a room out of order. Clients keep the highest score seen or
        # re-fetch the match.
        self._publish(broadcast.SCORE_UPDATED, match_id, {
            'team1_name': record.team1_name,
            'team2_name': record.team2_name,
            'team1_score': record.team1_score,
            'team2_score': record.team2_score,
        })
        return record

    def update_timer(self, match_id, body):
        """Overwrite the remaining seconds and the paused flag."""
        body = _require_body(body)
        total_seconds = body.get('totalSeconds')
        is_paused = body.get('isPaused')
        if isinstance(total_seconds, bool) or not isinstance(total_seconds, int):
            raise BadRequest('totalSeconds must be an integer.')
        if total_seconds < 0:
            raise BadRequest('totalSeconds must not be negative.')
        if not isinstance(is_paused, bool):
            raise BadRequest('isPaused must be a boolean.')

        record = self.store.update(match_id, {'total_seconds': total_seconds, 'is_paused': is_paused})
        self._publish(broadcast.TIMER_UPDATED, match_id, {
            'total_seconds': record.total_seconds,
            'is_paused': record.is_paused,
        })
        return record

    def add_event(self, match_id, body):
        """Append one play-by-play event. Scores are not touched."""
        body = _require_body(body)
        if 'event' not in body:
            raise BadRequest('event is required.')
        event = MatchEvent.from_dict(body['event'])

        record = self.store.append(match_id, 'match_events', event.to_dict())
        self._publish(broadcast.EVENT_ADDED, match_id, {
            'event': event.to_dict(),
            'event_count': len(record.match_events),
        })
        return record

    def change_quarter(self, match_id, body):
        body = _require_body(body)
        if 'currentQuarter' not in body:
            raise BadRequest('currentQuarter is required.')
        quarter = Quarter.parse(body['currentQuarter']).value

        record = self.store.update(match_id, {'current_quarter': quarter})
        self._publish(broadcast.QUARTER_CHANGED, match_id, {'current_quarter': record.current_quarter})
        return record

    def change_status(self, match_id, body):
        body = _require_body(body)
        if 'status' not in body:
            raise BadRequest('status is required.')
        status = MatchStatus.parse(body['status']).value

        record = self.store.update(match_id, {'status': status})
        self._publish(broadcast.MATCH_STATUS_CHANGED, match_id, {'status': record.status})
        return record

    def delete_match(self, match_id):
        deleted = self.store.delete(match_id)
        self._publish(broadcast.MATCH_DELETED, deleted, {})
        return deleted
