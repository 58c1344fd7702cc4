"""Shared document store.

The store holds lobby and game documents as a JSON tree addressed by
slash-separated paths (``lobbies/ABC123/game``). Writers never lock: every
update is a single atomic multi-path write, optionally guarded by
``if_match`` (compare-and-swap on one or more sub-paths). Subscribers are told
about every write that touches their path.

``None`` is a value like any other: writing None stores an explicit null.
Only ``delete``, or ``DELETE`` as an update value, removes a key. A value equal
to ``SERVER_TIMESTAMP`` is replaced by the store's clock (milliseconds) when
the write is applied, so fallback writes registered long before a disconnect
still record when it happened.
"""
import copy
import threading
import time
from typing import Any, Callable, Optional

_MISSING = object()

DELETE = object()
SERVER_TIMESTAMP = {".sv": "timestamp"}


class StoreError(Exception):
    """Base exception for document store errors."""
    code = "store_error"


class DocumentNotFound(StoreError):
    code = "document_not_found"


class StoreFailure(StoreError):
    """The backend failed (connection lost, bad data, ...)."""
    code = "store_failure"


class VersionConflict(StoreError):
    """A conditional write lost a race: the document changed since it was read."""
    code = "version_conflict"


# === Path helpers ===

def split_path(path: str) -> list[str]:
    return [p for p in str(path).split("/") if p]


def join_path(*parts) -> str:
    return "/".join(s for p in parts for s in split_path(p))


def get_in(tree, segments: list[str], default=_MISSING):
    node = tree
    for seg in segments:
        if not isinstance(node, dict) or seg not in node:
            if default is _MISSING:
                raise KeyError("/".join(segments))
            return default
        node = node[seg]
    return node


def set_in(tree: dict, segments: list[str], value):
    if not segments:
        raise ValueError("Cannot replace the root of the tree")
    node = tree
    for seg in segments[:-1]:
        child = node.get(seg)
        if not isinstance(child, dict):
            child = {}
            node[seg] = child
        node = child
    node[segments[-1]] = value


def delete_in(tree: dict, segments: list[str]) -> bool:
    if not segments:
        tree.clear()
        return True
    parent = get_in(tree, segments[:-1], None)
    if isinstance(parent, dict) and segments[-1] in parent:
        del parent[segments[-1]]
        return True
    return False


def paths_overlap(a: list[str], b: list[str]) -> bool:
    """True when one path is a prefix of the other."""
    n = min(len(a), len(b))
    return a[:n] == b[:n]


def resolve_server_values(value, timestamp: int):
    """Replace SERVER_TIMESTAMP placeholders anywhere in value."""
    if value == SERVER_TIMESTAMP:
        return timestamp
    if isinstance(value, dict):
        return {k: resolve_server_values(v, timestamp) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_server_values(v, timestamp) for v in value]
    return value


def check_conditions(tree: dict, base: list[str], if_match: Optional[dict]):
    for sub, expected in (if_match or {}).items():
        actual = get_in(tree, base + split_path(sub), None)
        if actual != expected:
            raise VersionConflict(
                f"{join_path(*base, sub)} is {actual!r}, expected {expected!r}"
            )


class DocumentStore:
    """Interface of the shared document store."""

    def read(self, path: str) -> Any:
        """Return the value at path or raise DocumentNotFound."""
        raise NotImplementedError

    def get(self, path: str, default=None) -> Any:
        try:
            return self.read(path)
        except DocumentNotFound:
            return default

    def exists(self, path: str) -> bool:
        return self.get(path, _MISSING) is not _MISSING

    def set(self, path: str, value: Any):
        """Replace the value at path."""
        raise NotImplementedError

    def update(self, path: str, values: dict, if_match: Optional[dict] = None):
        """Write several sub-paths of ``path`` atomically.

        ``if_match`` maps sub-paths to the values they must still hold; otherwise
        nothing is written and VersionConflict is raised. A ``DELETE`` value
        removes its sub-path as part of the same write.
        """
        raise NotImplementedError

    def delete(self, path: str):
        raise NotImplementedError

    def subscribe(self, path: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Call ``callback(value)`` after each write touching path; returns an unsubscribe function."""
        raise NotImplementedError

    def on_disconnect(self, session_id: str, path: str, value: Any):
        """Register a fallback update applied when the session disconnects uncleanly."""
        raise NotImplementedError

    def cancel_on_disconnect(self, session_id: str):
        raise NotImplementedError

    def disconnect(self, session_id: str):
        """Apply and drop the session's fallback writes."""
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    """In-process store; subscribers are notified synchronously after each write."""

    def __init__(self, initial: Optional[dict] = None, clock: Callable[[], float] = time.time):
        self._tree = copy.deepcopy(initial) if initial else {}
        self._clock = clock
        self._lock = threading.RLock()
        self._subscribers = []
        self._disconnect_writes = {}

    def read(self, path: str) -> Any:
        segments = split_path(path)
        with self._lock:
            value = get_in(self._tree, segments, _MISSING)
            if value is _MISSING:
                raise DocumentNotFound(f"No document at {path}")
            return copy.deepcopy(value)

    def set(self, path: str, value: Any):
        segments = split_path(path)
        value = resolve_server_values(copy.deepcopy(value), self._timestamp())
        with self._lock:
            if segments:
                set_in(self._tree, segments, value)
            elif isinstance(value, dict):
                self._tree = value
            else:
                raise StoreFailure("The root must hold a mapping")
        self._notify([segments])

    def update(self, path: str, values: dict, if_match: Optional[dict] = None):
        base = split_path(path)
        timestamp = self._timestamp()
        changed = []
        with self._lock:
            check_conditions(self._tree, base, if_match)
            staged = copy.deepcopy(self._tree)
            for sub, value in values.items():
                segments = base + split_path(sub)
                if value is DELETE:
                    delete_in(staged, segments)
                else:
                    set_in(staged, segments, resolve_server_values(copy.deepcopy(value), timestamp))
                changed.append(segments)
            self._tree = staged
        self._notify(changed)

    def delete(self, path: str):
        segments = split_path(path)
        with self._lock:
            removed = delete_in(self._tree, segments)
        if removed:
            self._notify([segments])

    def subscribe(self, path: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        entry = (split_path(path), callback)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def on_disconnect(self, session_id: str, path: str, value: Any):
        with self._lock:
            writes = [w for w in self._disconnect_writes.get(session_id, []) if w[0] != path]
            writes.append((path, copy.deepcopy(value)))
            self._disconnect_writes[session_id] = writes

    def cancel_on_disconnect(self, session_id: str):
        with self._lock:
            self._disconnect_writes.pop(session_id, None)

    def disconnect(self, session_id: str):
        with self._lock:
            writes = self._disconnect_writes.pop(session_id, [])
        for path, value in writes:
            if isinstance(value, dict):
                self.update(path, value)
            else:
                self.set(path, value)

    def _timestamp(self) -> int:
        return int(self._clock() * 1000)

    def _notify(self, changed: list[list[str]]):
        with self._lock:
            targets = [(segments, cb) for segments, cb in self._subscribers
                       if any(paths_overlap(segments, c) for c in changed)]
        for segments, callback in targets:
            callback(self.get("/".join(segments)))
