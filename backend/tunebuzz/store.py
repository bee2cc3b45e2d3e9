"""Keyed document store used for games, lobbies and the song catalog.

The store offers independent get/put/query/delete calls only. ``put`` can be
conditioned on the version returned by ``get``; callers layer their own
locking above it (see ``services.games.locks``).
"""
import json
import logging
import threading
import time
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from tunebuzz.errors import NotFound, StoreUnavailable, VersionConflict

logger = logging.getLogger(__name__)

GAMES = 'games'
PENDING_GAMES = 'pendingGames'
CATALOG = 'catalog'


class StoredRecord(NamedTuple):
    data: Dict[str, Any]
    version: int


class TransientStoreError(Exception):
    """A store call failed in a way that is worth retrying."""


class KeyedStore:
    transient_errors: Tuple[type, ...] = (TransientStoreError,)

    def __init__(self, retry_attempts: int = 3, retry_wait_ms: int = 50):
        self.retry_attempts = max(1, int(retry_attempts))
        self.retry_wait_ms = max(0, int(retry_wait_ms))

    def _call(self, op: str, fn, *args):
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_wait_ms / 1000.0),
            retry=retry_if_exception_type(self.transient_errors),
            before_sleep=lambda state: logger.warning(
                f"[store-retry] op={op} attempt={state.attempt_number} error={state.outcome.exception()!r}"
            ),
            reraise=True,
        )
        try:
            return retrying(fn, *args)
        except self.transient_errors as exc:
            logger.error(f"[store-down] op={op} gave up after {self.retry_attempts} attempts")
            raise StoreUnavailable(f'store unavailable during {op}') from exc

    def get(self, collection: str, key: str) -> StoredRecord:
        record = self._call('get', self._get, collection, key)
        if record is None:
            raise NotFound(f'{collection}/{key} not found')
        return record

    def put(self, collection: str, key: str, record: Dict[str, Any], expected_version: Optional[int] = None) -> int:
        """Overwrite ``collection/key`` and return the new version.

        With ``expected_version`` the write only lands if the stored version
        still matches; otherwise ``VersionConflict`` is raised.
        """
        return self._call('put', self._put, collection, key, record, expected_version)

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return self._call('query', self._query, collection, field, value)

    def delete(self, collection: str, key: str) -> None:
        self._call('delete', self._delete, collection, key)

    def _get(self, collection, key):
        raise NotImplementedError

    def _put(self, collection, key, record, expected_version):
        raise NotImplementedError

    def _query(self, collection, field, value):
        raise NotImplementedError

    def _delete(self, collection, key):
        raise NotImplementedError


class MemoryStore(KeyedStore):
    """Process-local store; bodies are kept JSON-encoded so readers get copies."""

    def __init__(self, retry_attempts: int = 3, retry_wait_ms: int = 50):
        super().__init__(retry_attempts, retry_wait_ms)
        self._lock = threading.RLock()
        self._docs: Dict[Tuple[str, str], Tuple[str, int]] = {}

    def _get(self, collection, key):
        with self._lock:
            entry = self._docs.get((collection, key))
        if entry is None:
            return None
        body, version = entry
        return StoredRecord(json.loads(body), version)

    def _put(self, collection, key, record, expected_version):
        body = json.dumps(record)
        with self._lock:
            current = self._docs.get((collection, key))
            current_version = current[1] if current else 0
            if expected_version is not None and expected_version != current_version:
                raise VersionConflict(f'{collection}/{key} at version {current_version}, expected {expected_version}')
            self._docs[(collection, key)] = (body, current_version + 1)
            return current_version + 1

    def _query(self, collection, field, value):
        with self._lock:
            bodies = [body for (coll, _), (body, _) in self._docs.items() if coll == collection]
        records = [json.loads(body) for body in bodies]
        return [r for r in records if r.get(field) == value]

    def _delete(self, collection, key):
        with self._lock:
            self._docs.pop((collection, key), None)


class SQLStore(KeyedStore):
    """Store backed by the ``document`` table through Flask-SQLAlchemy.

    Must be called inside an application context.
    """
    transient_errors = (TransientStoreError, OperationalError)

    def _get(self, collection, key):
        from tunebuzz import db
        from tunebuzz.models import Document
        try:
            doc = db.session.get(Document, (collection, key), populate_existing=True)
            if doc is None:
                return None
            return StoredRecord(doc.data, doc.version)
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def _put(self, collection, key, record, expected_version):
        from tunebuzz import db
        from tunebuzz.models import Document
        body = json.dumps(record)
        try:
            if expected_version is None:
                doc = db.session.get(Document, (collection, key), populate_existing=True)
                if doc is None:
                    doc = Document(collection=collection, id=key, body=body, version=1)
                    db.session.add(doc)
                    new_version = 1
                else:
                    new_version = doc.version + 1
                    doc.body = body
                    doc.version = new_version
                db.session.commit()
                return new_version

            result = db.session.execute(
                sa.update(Document)
                .where(
                    Document.collection == collection,
                    Document.id == key,
                    Document.version == expected_version,
                )
                .values(body=body, version=Document.version + 1, updated_at=time.time())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.session.rollback()
                raise VersionConflict(f'{collection}/{key} changed since version {expected_version}')
            db.session.commit()
            return expected_version + 1
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def _query(self, collection, field, value):
        from tunebuzz import db
        from tunebuzz.models import Document
        try:
            docs = Document.query.filter_by(collection=collection).order_by(Document.updated_at).all()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        records = [d.data for d in docs]
        return [r for r in records if r.get(field) == value]

    def _delete(self, collection, key):
        from tunebuzz import db
        from tunebuzz.models import Document
        try:
            Document.query.filter_by(collection=collection, id=key).delete()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise


def make_store(config) -> KeyedStore:
    backend = (config.get('STORE_BACKEND') or 'sql').lower()
    kwargs = {
        'retry_attempts': int(config.get('STORE_RETRY_ATTEMPTS', 3)),
        'retry_wait_ms': int(config.get('STORE_RETRY_WAIT_MS', 50)),
    }
    if backend == 'memory':
        return MemoryStore(**kwargs)
    if backend == 'sql':
        return SQLStore(**kwargs)
    raise ValueError(f'unknown STORE_BACKEND: {backend}')
