"""
Flask web application for live hockey match scoring.

Scorers mutate a match over JSON endpoints; viewers follow matches over a
Server-Sent Events stream, either globally or by joining a match room.
"""
import os
import logging
from flask import Flask, Blueprint, Response, current_app, jsonify, request, stream_with_context
from werkzeug.exceptions import HTTPException

from livematch.broadcast import BroadcastRouter, format_sse
from livematch.directory import MatchLookup, TeamDirectory, TournamentDirectory
from livematch.errors import BadRequest, LiveMatchError, NotFound
from livematch.handlers import MatchHandlers
from livematch.models import MatchStatus
from livematch.registry import SubscriptionRegistry
from livematch.store import MatchStore


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('HOCKEY_DATA_DIR', os.path.join(BASE_DIR, 'data'))
STORE_LOCK_TIMEOUT = float(os.environ.get('HOCKEY_STORE_LOCK_TIMEOUT', '10'))
LIVE_HEARTBEAT_SECONDS = float(os.environ.get('HOCKEY_LIVE_HEARTBEAT', '15'))
LIVE_QUEUE_SIZE = int(os.environ.get('HOCKEY_LIVE_QUEUE_SIZE', '256'))
# Every change also goes to every open connection, not only the match room.
LIVE_GLOBAL_BROADCAST = _env_flag('HOCKEY_LIVE_GLOBAL_BROADCAST', True)

api = Blueprint('api', __name__)


class LiveServices:
    """Store, lookup, router and handlers wired for one Flask app."""

    def __init__(self, data_dir: str, lock_timeout: float, queue_size: int, global_channel: bool):
        self.store = MatchStore(os.path.join(data_dir, 'matches'), lock_timeout=lock_timeout)
        self.lookup = MatchLookup(
            self.store,
            TeamDirectory(os.path.join(data_dir, 'teams.yaml')),
            TournamentDirectory(os.path.join(data_dir, 'tournaments.yaml')),
        )
        self.router = BroadcastRouter(SubscriptionRegistry(), queue_size=queue_size,
                                      global_channel=global_channel)
        self.handlers = MatchHandlers(self.lookup, self.store, self.router)


def _services() -> LiveServices:
    return current_app.extensions['livematch']


def _json_body():
    """Return the parsed JSON body, or None when missing or malformed."""
    return request.get_json(silent=True)


# ---------------------------------------------------------
# Matches
# ---------------------------------------------------------

@api.route('/api/matches', methods=['GET'])
def list_matches():
    """List matches for the dashboard, optionally filtered by ?status=."""
    status = request.args.get('status')
    if status is not None:
        status = MatchStatus.parse(status).value
    records = _services().store.all(status=status)
    return jsonify([r.to_dict() for r in records])


@api.route('/api/matches', methods=['POST'])
def create_match():
    """Create a match, snapshotting both team rosters."""
    record = _services().handlers.create_match(_json_body())
    current_app.logger.info(f'Match {record.match_id} created: {record.team1_name} vs {record.team2_name}')
    return jsonify(record.to_dict()), 201


@api.route('/api/matches/<match_id>', methods=['GET'])
def get_match(match_id):
    """Return a match with tournament and team display names."""
    return jsonify(_services().lookup.enriched(match_id))


@api.route('/api/matches/<match_id>', methods=['DELETE'])
def delete_match(match_id):
    deleted = _services().handlers.delete_match(match_id)
    current_app.logger.info(f'Match {deleted} deleted')
    return jsonify({'deletedMatchId': deleted})


@api.route('/api/matches/<match_id>/score', methods=['POST'])
def update_score(match_id):
    """Add one goal for the team named in {teamName}."""
    record = _services().handlers.update_score(match_id, _json_body())
    return jsonify(record.to_dict())


@api.route('/api/matches/<match_id>/timer', methods=['POST'])
def update_timer(match_id):
    record = _services().handlers.update_timer(match_id, _json_body())
    return jsonify(record.to_dict())


@api.route('/api/matches/<match_id>/events', methods=['POST'])
def add_event(match_id):
    record = _services().handlers.add_event(match_id, _json_body())
    return jsonify(record.to_dict())


@api.route('/api/matches/<match_id>/quarter', methods=['POST'])
def change_quarter(match_id):
    record = _services().handlers.change_quarter(match_id, _json_body())
    return jsonify(record.to_dict())


@api.route('/api/matches/<match_id>/status', methods=['POST'])
def change_status(match_id):
    record = _services().handlers.change_status(match_id, _json_body())
    return jsonify(record.to_dict())


# ---------------------------------------------------------
# Live stream
# ---------------------------------------------------------

@api.route('/api/live-stream')
def api_live_stream():
    """Server-Sent Events stream of match changes.

    The first event is ``connected`` and carries the connectionId used to
    join or leave match rooms. ``?matchId=`` (repeatable) joins rooms right
    away.
    """
    services = _services()
    heartbeat = current_app.config['LIVE_HEARTBEAT_SECONDS']
    match_ids = request.args.getlist('matchId')

    def generate():
        """Yield queued messages, with a heartbeat comment while idle."""
        connection = services.router.connect()
        try:
            for match_id in match_ids:
                services.router.join(connection, match_id)
            yield format_sse('connected', {
                'connectionId': connection.connection_id,
                'rooms': sorted(services.router.registry.rooms_of(connection)),
            })
            while True:
                message = connection.next_message(timeout=heartbeat)
                if message is None:
                    if connection.closed:
                        break
                    yield ": heartbeat\n\n"
                    continue
                yield message.to_sse()
        finally:
            services.router.disconnect(connection)

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


def _room_request(connection_id):
    services = _services()
    connection = services.router.get_connection(connection_id)
    if connection is None:
        raise NotFound(f'Connection "{connection_id}" not found.')
    body = _json_body()
    match_id = body.get('matchId') if isinstance(body, dict) else None
    if not isinstance(match_id, str) or not match_id:
        raise BadRequest('matchId is required.')
    return services.router, connection, match_id


@api.route('/api/live-stream/<connection_id>/join', methods=['POST'])
def join_match(connection_id):
    """Subscribe a live connection to one match room."""
    router, connection, match_id = _room_request(connection_id)
    if not router.join(connection, match_id):
        raise NotFound(f'Connection "{connection_id}" not found.')
    return jsonify({'connectionId': connection_id, 'matchId': match_id,
                    'rooms': sorted(router.registry.rooms_of(connection))})


@api.route('/api/live-stream/<connection_id>/leave', methods=['POST'])
def leave_match(connection_id):
    router, connection, match_id = _room_request(connection_id)
    router.leave(connection, match_id)
    return jsonify({'connectionId': connection_id, 'matchId': match_id,
                    'rooms': sorted(router.registry.rooms_of(connection))})


@api.route('/health')
def health():
    router = _services().router
    return jsonify({'status': 'ok',
                    'connections': router.connection_count(),
                    'rooms': router.registry.room_sizes()})


# ---------------------------------------------------------
# Errors
# ---------------------------------------------------------

@api.app_errorhandler(LiveMatchError)
def handle_live_match_error(error):
    if error.status_code >= 500:
        current_app.logger.error(f'{request.method} {request.path} failed: {error.message}')
    else:
        current_app.logger.warning(f'{request.method} {request.path} rejected: {error.message}')
    return jsonify({'error': error.message}), error.status_code


@api.app_errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'error': error.description}), error.code


@api.app_errorhandler(Exception)
def handle_unexpected_error(error):
    current_app.logger.exception(f'{request.method} {request.path} failed unexpectedly')
    return jsonify({'error': 'Server error'}), 500


def create_app(config: dict = None) -> Flask:
    """Build the Flask app. Keys in config override the environment defaults."""
    app = Flask(__name__)
    app.config.update(
        DATA_DIR=DATA_DIR,
        STORE_LOCK_TIMEOUT=STORE_LOCK_TIMEOUT,
        LIVE_HEARTBEAT_SECONDS=LIVE_HEARTBEAT_SECONDS,
        LIVE_QUEUE_SIZE=LIVE_QUEUE_SIZE,
        LIVE_GLOBAL_BROADCAST=LIVE_GLOBAL_BROADCAST,
    )
    if config:
        app.config.update(config)

    app.extensions['livematch'] = LiveServices(
        data_dir=app.config['DATA_DIR'],
        lock_timeout=app.config['STORE_LOCK_TIMEOUT'],
        queue_size=app.config['LIVE_QUEUE_SIZE'],
        global_channel=app.config['LIVE_GLOBAL_BROADCAST'],
    )
    app.register_blueprint(api)
    return app


app = create_app()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=5000, threaded=True)
