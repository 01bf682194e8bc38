"""
Durable storage for live match records.

Each match lives in its own YAML document ``<root>/<match_id>.yaml``.
Mutations take a per-document file lock so that read-modify-write cycles
performed inside the store (increment, append, field update) are atomic
with respect to each other, across threads and processes.
"""
import logging
import os
import tempfile
from contextlib import contextmanager

import yaml
from filelock import FileLock, Timeout

from livematch.errors import Conflict, NotFound, Unavailable
from livematch.models import MatchRecord, is_valid_match_id, utc_now, validate_match_id

logger = logging.getLogger(__name__)

INCREMENTABLE_FIELDS = ('team1_score', 'team2_score')
APPENDABLE_FIELDS = ('match_events',)


class MatchStore:
    """YAML-document store keyed by match_id."""

    def __init__(self, root_dir: str, lock_timeout: float = 10):
        self.root_dir = root_dir
        self.lock_dir = os.path.join(root_dir, '.locks')
        self.lock_timeout = lock_timeout

    # ---------------------------------------------------------
    # Paths and locking
    # ---------------------------------------------------------

    def _path(self, match_id: str) -> str:
        return os.path.join(self.root_dir, f'{match_id}.yaml')

    @contextmanager
    def _locked(self, match_id: str):
        """Hold the document lock for match_id, mapping lock/IO failures to Unavailable."""
        if not is_valid_match_id(match_id):
            raise NotFound(f'Match "{match_id}" not found.')
        try:
            os.makedirs(self.lock_dir, exist_ok=True)
            lock = FileLock(os.path.join(self.lock_dir, f'{match_id}.lock'), timeout=self.lock_timeout)
            lock.acquire()
        except Timeout as e:
            logger.warning('Timed out waiting for lock on match %s', match_id)
            raise Unavailable('Match storage is busy, please retry.') from e
        except OSError as e:
            logger.warning('Could not lock match %s: %s', match_id, e)
            raise Unavailable('Match storage is unavailable.') from e
        try:
            yield
        finally:
            lock.release()

    def _read(self, match_id: str) -> dict:
        path = self._path(match_id)
        if not is_valid_match_id(match_id) or not os.path.exists(path):
            raise NotFound(f'Match "{match_id}" not found.')
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise NotFound(f'Match "{match_id}" not found.') from None
        except (OSError, yaml.YAMLError) as e:
            logger.warning('Failed to read match %s: %s', match_id, e)
            raise Unavailable('Match storage is unavailable.') from e
        if not data:
            raise NotFound(f'Match "{match_id}" not found.')
        return data

    def _write(self, match_id: str, data: dict):
        """Write a document via temp file + rename so readers never see a partial file."""
        try:
            os.makedirs(self.root_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.root_dir, prefix=f'.{match_id}.', suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    yaml.dump(data, f, default_flow_style=False, sort_keys=False)
                os.replace(tmp_path, self._path(match_id))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, yaml.YAMLError) as e:
            logger.warning('Failed to write match %s: %s', match_id, e)
            raise Unavailable('Match storage is unavailable.') from e

    # ---------------------------------------------------------
    # Core API
    # ---------------------------------------------------------

    def get(self, match_id: str) -> MatchRecord:
        return MatchRecord.from_dict(self._read(match_id))

    def exists(self, match_id: str) -> bool:
        return is_valid_match_id(match_id) and os.path.exists(self._path(match_id))

    def all(self, status: str = None) -> list:
        """Return all records, optionally filtered by status, ordered by match_id."""
        if not os.path.isdir(self.root_dir):
            return []
        try:
            names = sorted(os.listdir(self.root_dir))
        except OSError as e:
            raise Unavailable('Match storage is unavailable.') from e
        records = []
        for name in names:
            if name.startswith('.') or not name.endswith('.yaml'):
                continue
            try:
                record = self.get(name[:-len('.yaml')])
            except NotFound:
                # deleted between listdir and read
                continue
            if status is None or record.status == status:
                records.append(record)
        return records

    def create(self, record: MatchRecord) -> MatchRecord:
        validate_match_id(record.match_id)
        with self._locked(record.match_id):
            if os.path.exists(self._path(record.match_id)):
                raise Conflict(f'A match with ID "{record.match_id}" already exists.')
            record.updated_at = utc_now()
            self._write(record.match_id, record.to_dict())
        logger.info('Created match %s', record.match_id)
        return record

    def update(self, match_id: str, partial: dict) -> MatchRecord:
        """Overwrite the given top-level fields and return the updated record."""
        with self._locked(match_id):
            data = self._read(match_id)
            data.update(partial)
            data['updated_at'] = utc_now()
            self._write(match_id, data)
        return MatchRecord.from_dict(data)

    def increment(self, match_id: str, field: str, amount: int = 1) -> MatchRecord:
        """Atomically add amount to a score field and return the updated record."""
        if field not in INCREMENTABLE_FIELDS:
            raise ValueError(f'{field} cannot be incremented')
        if amount <= 0:
            raise ValueError('amount must be positive')
        with self._locked(match_id):
            data = self._read(match_id)
            data[field] = (data.get(field) or 0) + amount
            data['updated_at'] = utc_now()
            self._write(match_id, data)
        return MatchRecord.from_dict(data)

    def append(self, match_id: str, field: str, item: dict) -> MatchRecord:
        """Atomically append item to a list field and return the updated record."""
        if field not in APPENDABLE_FIELDS:
            raise ValueError(f'{field} is not an append-only list')
        with self._locked(match_id):
            data = self._read(match_id)
            data[field] = list(data.get(field) or []) + [item]
            data['updated_at'] = utc_now()
            self._write(match_id, data)
        return MatchRecord.from_dict(data)

    def delete(self, match_id: str) -> str:
        with self._locked(match_id):
            path = self._path(match_id)
            if not os.path.exists(path):
                raise NotFound(f'Match "{match_id}" not found.')
            try:
                os.remove(path)
            except OSError as e:
                raise Unavailable('Match storage is unavailable.') from e
        logger.info('Deleted match %s', match_id)
        return match_id
