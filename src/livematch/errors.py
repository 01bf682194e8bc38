"""
Error taxonomy for the live-match subsystem.

Every error carries the HTTP status it maps to; the Flask app turns them
into ``{'error': message}`` JSON bodies.
"""


class LiveMatchError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LiveMatchError):
    """Target match, team or tournament does not exist."""
    status_code = 404


class BadRequest(LiveMatchError):
    """Missing or invalid field in a request body."""
    status_code = 400


class Conflict(LiveMatchError):
    """A match with the same match_id already exists."""
    status_code = 409


class Unavailable(LiveMatchError):
    """Storage failed; the caller is expected to retry."""
    status_code = 503
