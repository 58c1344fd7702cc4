"""PostgreSQL-backed document store.

Each top-level document (``lobbies/<code>``) is one JSONB row in ``documents``.
Writes lock the affected rows with ``SELECT ... FOR UPDATE``, apply the change
in Python and publish the document key on ``pg_notify`` so that every server
process can push the new value to its subscribers.
"""
import copy
import select
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Optional

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from psycopg2.extras import Json, RealDictCursor

from .config import DATABASE_CONFIG
from .store import (
    DELETE, DocumentNotFound, DocumentStore, StoreFailure, check_conditions, delete_in,
    get_in, join_path, paths_overlap, resolve_server_values, set_in, split_path,
)

NOTIFY_CHANNEL = 'klaverjas_documents'
DOCUMENT_DEPTH = 2  # "lobbies/<code>"

_MISSING = object()

SCHEMA = '''
CREATE TABLE IF NOT EXISTS documents (
    key TEXT PRIMARY KEY,
    value JSONB,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS disconnect_writes (
    id SERIAL PRIMARY KEY,
    session_id TEXT NOT NULL,
    path TEXT NOT NULL,
    value JSONB
);
CREATE INDEX IF NOT EXISTS disconnect_writes_session ON disconnect_writes (session_id);
'''


@contextmanager
def get_db_connection(config: Optional[dict] = None):
    """Get a database connection context manager."""
    try:
        conn = psycopg2.connect(**(config or DATABASE_CONFIG))
    except psycopg2.Error as e:
        raise StoreFailure(f"Cannot connect to database: {e}") from e
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def get_db_cursor(commit=False, config: Optional[dict] = None):
    """Get a database cursor context manager."""
    with get_db_connection(config) as conn:
        cursor = conn.cursor(cursor_factory=RealDictCursor)
        try:
            yield cursor
            if commit:
                conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreFailure(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()


def create_schema(config: Optional[dict] = None):
    with get_db_cursor(commit=True, config=config) as cur:
        cur.execute(SCHEMA)


def _document_key(segments: list[str]) -> str:
    return '/'.join(segments[:DOCUMENT_DEPTH])


class PostgresDocumentStore(DocumentStore):
    """Document store shared by every server process connected to one database."""

    def __init__(self, config: Optional[dict] = None, init_schema: bool = True):
        self.config = config or DATABASE_CONFIG
        self._subscribers = []
        self._lock = threading.Lock()
        self._listener = None
        self._stop = threading.Event()
        if init_schema:
            create_schema(self.config)

    # === Reads ===

    def read(self, path: str) -> Any:
        segments = split_path(path)
        with get_db_cursor(config=self.config) as cur:
            if len(segments) >= DOCUMENT_DEPTH:
                cur.execute('SELECT value FROM documents WHERE key = %s', (_document_key(segments),))
                row = cur.fetchone()
                if row is None:
                    raise DocumentNotFound(f"No document at {path}")
                value = get_in(row['value'], segments[DOCUMENT_DEPTH:], _MISSING)
            else:
                cur.execute('SELECT key, value FROM documents WHERE key LIKE %s',
                            (_prefix_pattern(segments),))
                rows = cur.fetchall()
                if not rows:
                    raise DocumentNotFound(f"No document at {path}")
                tree = {}
                for row in rows:
                    set_in(tree, split_path(row['key']), row['value'])
                value = get_in(tree, segments, _MISSING)
        if value is _MISSING:
            raise DocumentNotFound(f"No document at {path}")
        return value

    # === Writes ===

    def set(self, path: str, value: Any):
        segments = split_path(path)
        if len(segments) < DOCUMENT_DEPTH:
            raise StoreFailure(f"Cannot write above document level: {path}")
        self._write(segments[:DOCUMENT_DEPTH], {join_path(*segments[DOCUMENT_DEPTH:]): value})

    def update(self, path: str, values: dict, if_match: Optional[dict] = None):
        segments = split_path(path)
        if len(segments) < DOCUMENT_DEPTH:
            raise StoreFailure(f"Cannot write above document level: {path}")
        base = segments[DOCUMENT_DEPTH:]
        writes = {join_path(*base, sub): value for sub, value in values.items()}
        conditions = {join_path(*base, sub): value for sub, value in (if_match or {}).items()}
        self._write(segments[:DOCUMENT_DEPTH], writes, conditions)

    def _write(self, doc_segments: list[str], writes: dict, conditions: Optional[dict] = None):
        key = _document_key(doc_segments)
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('SELECT value FROM documents WHERE key = %s FOR UPDATE', (key,))
            row = cur.fetchone()
            doc = copy.deepcopy(row['value']) if row and isinstance(row['value'], dict) else {}
            check_conditions(doc, [], conditions)

            timestamp = int(time.time() * 1000)
            for sub, value in writes.items():
                sub_segments = split_path(sub)
                if value is DELETE:
                    delete_in(doc, sub_segments)
                elif sub_segments:
                    set_in(doc, sub_segments, resolve_server_values(value, timestamp))
                else:
                    doc = resolve_server_values(value, timestamp)

            cur.execute('''
                INSERT INTO documents (key, value, updated_at) VALUES (%s, %s, now())
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = now()
            ''', (key, Json(doc)))
            cur.execute('SELECT pg_notify(%s, %s)', (NOTIFY_CHANNEL, key))

    def delete(self, path: str):
        segments = split_path(path)
        with get_db_cursor(commit=True, config=self.config) as cur:
            if len(segments) <= DOCUMENT_DEPTH:
                cur.execute('DELETE FROM documents WHERE key LIKE %s RETURNING key',
                            (_prefix_pattern(segments),))
                keys = [row['key'] for row in cur.fetchall()]
            else:
                key = _document_key(segments)
                cur.execute('SELECT value FROM documents WHERE key = %s FOR UPDATE', (key,))
                row = cur.fetchone()
                keys = []
                if row and isinstance(row['value'], dict):
                    doc = row['value']
                    if delete_in(doc, segments[DOCUMENT_DEPTH:]):
                        cur.execute('UPDATE documents SET value = %s, updated_at = now() WHERE key = %s',
                                    (Json(doc), key))
                        keys = [key]
            for key in keys:
                cur.execute('SELECT pg_notify(%s, %s)', (NOTIFY_CHANNEL, key))

    # === Subscriptions ===

    def subscribe(self, path: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        entry = (split_path(path), callback)
        with self._lock:
            self._subscribers.append(entry)
            if self._listener is None:
                self._stop.clear()
                self._listener = threading.Thread(target=self._listen, daemon=True)
                self._listener.start()

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def close(self):
        self._stop.set()
        if self._listener is not None:
            self._listener.join(timeout=5)
            self._listener = None

    def _listen(self):
        try:
            conn = psycopg2.connect(**self.config)
        except psycopg2.Error as e:
            print(f"Document listener could not connect: {e}")
            return
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        try:
            with conn.cursor() as cur:
                cur.execute(f'LISTEN {NOTIFY_CHANNEL}')
            while not self._stop.is_set():
                if select.select([conn], [], [], 1.0) == ([], [], []):
                    continue
                conn.poll()
                while conn.notifies:
                    self._dispatch(conn.notifies.pop(0).payload)
        finally:
            conn.close()

    def _dispatch(self, key: str):
        changed = split_path(key)
        with self._lock:
            targets = [(s, cb) for s, cb in self._subscribers if paths_overlap(s, changed)]
        for segments, callback in targets:
            callback(self.get('/'.join(segments)))

    # === Disconnect fallbacks ===

    def on_disconnect(self, session_id: str, path: str, value: Any):
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('DELETE FROM disconnect_writes WHERE session_id = %s AND path = %s', (session_id, path))
            cur.execute('INSERT INTO disconnect_writes (session_id, path, value) VALUES (%s, %s, %s)',
                        (session_id, path, Json(value)))

    def cancel_on_disconnect(self, session_id: str):
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('DELETE FROM disconnect_writes WHERE session_id = %s', (session_id,))

    def disconnect(self, session_id: str):
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('DELETE FROM disconnect_writes WHERE session_id = %s RETURNING path, value, id',
                        (session_id,))
            writes = sorted(cur.fetchall(), key=lambda r: r['id'])
        for row in writes:
            if isinstance(row['value'], dict):
                self.update(row['path'], row['value'])
            else:
                self.set(row['path'], row['value'])


def _prefix_pattern(segments: list[str]) -> str:
    if not segments:
        return '%'
    prefix = '/'.join(segments).replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    if len(segments) >= DOCUMENT_DEPTH:
        return prefix
    return prefix + '/%'
