"""
Fan-out of live-match state changes to connected clients.

Every change is published twice under the same event name: once on the
global channel (every open connection) and once on the match's room
(connections that joined that match_id). The duplication is deliberate
for dashboards that watch all matches without joining rooms; a client that
listens to both must de-duplicate using the ``channel`` field or the
payload. Global publishing can be switched off with ``global_channel=False``.

Delivery is at-most-once: nothing is acknowledged, buffered beyond a
connection's own queue, or replayed. A client that connects late re-reads
the match over HTTP.
"""
import json
import logging
import queue
import threading
import uuid

from livematch.registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

SCORE_UPDATED = 'scoreUpdated'
TIMER_UPDATED = 'timerUpdated'
EVENT_ADDED = 'eventAdded'
QUARTER_CHANGED = 'quarterChanged'
MATCH_STATUS_CHANGED = 'matchStatusChanged'
MATCH_DELETED = 'matchDeleted'
MATCH_CREATED = 'matchCreated'

GLOBAL_CHANNEL = 'global'
ROOM_CHANNEL = 'room'


def format_sse(event: str, data) -> str:
    """Format one Server-Sent Events frame."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class Message:
    def __init__(self, event, channel, match_id, payload):
        self.event = event
        self.channel = channel
        self.match_id = match_id
        self.payload = payload

    def to_dict(self) -> dict:
        return {'channel': self.channel, 'match_id': self.match_id, **self.payload}

    def to_sse(self) -> str:
        return format_sse(self.event, self.to_dict())

    def __repr__(self):
        return f"Message(event={self.event}, channel={self.channel}, match_id={self.match_id})"


class ConnectionClosed(Exception):
    pass


class Connection:
    """One subscriber: an outbound FIFO drained by its SSE stream."""

    def __init__(self, connection_id: str = None, queue_size: int = 256):
        self.connection_id = connection_id or uuid.uuid4().hex
        self._queue = queue.Queue(maxsize=queue_size)
        self.closed = False

    def deliver(self, message: Message):
        """Queue a message. Raises ConnectionClosed or queue.Full."""
        if self.closed:
            raise ConnectionClosed(self.connection_id)
        self._queue.put_nowait(message)

    def next_message(self, timeout: float = None):
        """Block up to timeout for the next message; None on timeout or close."""
        if self.closed and self._queue.empty():
            return None
        try:
            message = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        return message

    def drain(self) -> list:
        """Return every queued message without blocking."""
        messages = []
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                return messages
            if message is not None:
                messages.append(message)

    def close(self):
        self.closed = True
        try:
            # wake a reader blocked in next_message
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def __hash__(self):
        return hash(self.connection_id)

    def __eq__(self, other):
        return isinstance(other, Connection) and other.connection_id == self.connection_id

    def __repr__(self):
        return f"Connection(id={self.connection_id}, closed={self.closed})"


class BroadcastRouter:
    """Owns the open connections and the room registry; publishes to both audiences."""

    def __init__(self, registry: SubscriptionRegistry = None, queue_size: int = 256,
                 global_channel: bool = True):
        self.registry = registry if registry is not None else SubscriptionRegistry()
        self.queue_size = queue_size
        self.global_channel = global_channel
        self._lock = threading.Lock()
        self._connections = {}

    # ---------------------------------------------------------
    # Connections
    # ---------------------------------------------------------

    def connect(self, connection: Connection = None) -> Connection:
        connection = connection or Connection(queue_size=self.queue_size)
        with self._lock:
            self._connections[connection.connection_id] = connection
        logger.debug('Connection %s opened', connection.connection_id)
        return connection

    def disconnect(self, connection: Connection):
        """Close the connection and remove it from every room."""
        with self._lock:
            self._connections.pop(connection.connection_id, None)
        # closed first, so a racing join is refused or swept up here
        connection.close()
        self.registry.remove_connection(connection)
        logger.debug('Connection %s closed', connection.connection_id)

    def get_connection(self, connection_id: str):
        with self._lock:
            return self._connections.get(connection_id)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    # ---------------------------------------------------------
    # Rooms
    # ---------------------------------------------------------

    def join(self, connection: Connection, match_id: str) -> bool:
        return self.registry.join(connection, match_id)

    def leave(self, connection: Connection, match_id: str):
        self.registry.leave(connection, match_id)

    # ---------------------------------------------------------
    # Publishing
    # ---------------------------------------------------------

    def _deliver(self, connection: Connection, message: Message) -> bool:
        try:
            connection.deliver(message)
            return True
        except ConnectionClosed:
            logger.debug('Skipping closed connection %s', connection.connection_id)
        except queue.Full:
            logger.warning('Dropping %s for slow connection %s', message.event, connection.connection_id)
        except Exception:
            logger.exception('Failed to deliver %s to %s', message.event, connection.connection_id)
        return False

    def publish(self, event: str, match_id: str, payload: dict) -> int:
        """Send event to the global channel and to the match room.

        Audiences are snapshotted when publish starts. Returns the number of
        successful deliveries; never raises.
        """
        delivered = 0
        try:
            if self.global_channel:
                with self._lock:
                    everyone = list(self._connections.values())
                message = Message(event, GLOBAL_CHANNEL, match_id, payload)
                for connection in everyone:
                    delivered += self._deliver(connection, message)

            members = self.registry.members_of(match_id)
            message = Message(event, ROOM_CHANNEL, match_id, payload)
            for connection in members:
                delivered += self._deliver(connection, message)
        except Exception:
            logger.exception('Broadcast of %s for match %s failed', event, match_id)
        logger.debug('Published %s for %s to %d deliveries', event, match_id, delivered)
        return delivered
