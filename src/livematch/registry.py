"""
Room membership for live-match subscribers.

A room is named by a match_id. Membership sets are guarded by one lock per
room; a short guard lock protects the room table itself and the reverse
index from connection id to joined rooms. A room exists only while it has
members: the last leave removes it, so joining arbitrary match ids does not
grow the table.
"""
import logging
import threading

logger = logging.getLogger(__name__)


class _Room:
    def __init__(self):
        self.lock = threading.Lock()
        self.members = set()
        self.removed = False


class SubscriptionRegistry:

    def __init__(self):
        self._guard = threading.Lock()
        self._rooms = {}        # match_id -> _Room
        self._memberships = {}  # connection_id -> set of match_ids

    def _room(self, match_id: str) -> _Room:
        """Return the room for match_id, creating it on first use."""
        with self._guard:
            room = self._rooms.get(match_id)
            if room is None:
                room = self._rooms[match_id] = _Room()
            return room

    def join(self, connection, match_id: str) -> bool:
        """Add connection to the room. Joining twice is a no-op.

        Returns False when the connection is already closed.
        """
        while True:
            room = self._room(match_id)
            # lock order: room lock, then guard
            with room.lock:
                with self._guard:
                    if room.removed:
                        # emptied and dropped since we looked it up
                        continue
                    if connection.closed:
                        logger.debug('Closed connection %s not joined to %s',
                                     connection.connection_id, match_id)
                        return False
                    room.members.add(connection)
                    self._memberships.setdefault(connection.connection_id, set()).add(match_id)
            logger.debug('Connection %s joined %s', connection.connection_id, match_id)
            return True

    def leave(self, connection, match_id: str):
        """Remove connection from the room. Leaving a room you are not in is a no-op."""
        with self._guard:
            room = self._rooms.get(match_id)
        if room is None:
            return
        with room.lock:
            room.members.discard(connection)
            with self._guard:
                rooms = self._memberships.get(connection.connection_id)
                if rooms is not None:
                    rooms.discard(match_id)
                    if not rooms:
                        del self._memberships[connection.connection_id]
                if not room.members and self._rooms.get(match_id) is room:
                    del self._rooms[match_id]
                    room.removed = True
        logger.debug('Connection %s left %s', connection.connection_id, match_id)

    def members_of(self, match_id: str) -> frozenset:
        """Snapshot of the room's current members."""
        with self._guard:
            room = self._rooms.get(match_id)
        if room is None:
            return frozenset()
        with room.lock:
            return frozenset(room.members)

    def rooms_of(self, connection) -> frozenset:
        with self._guard:
            return frozenset(self._memberships.get(connection.connection_id, ()))

    def remove_connection(self, connection):
        """Drop connection from every room it joined.

        Close the connection first; joins that race with this call are
        then either refused or recorded in time to be removed here.
        """
        with self._guard:
            rooms = self._memberships.pop(connection.connection_id, set())
        for match_id in rooms:
            self.leave(connection, match_id)
        return rooms

    def room_sizes(self) -> dict:
        """Current member count of every non-empty room."""
        with self._guard:
            rooms = list(self._rooms)
        sizes = {}
        for match_id in rooms:
            count = len(self.members_of(match_id))
            if count:
                sizes[match_id] = count
        return sizes
