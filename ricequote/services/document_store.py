"""
Path-keyed document store on SQLAlchemy.

Gives the engine the primitives of a realtime tree database:
get / set / update / push / delete / children, an optimistic
`transaction` (compare-and-swap on a version column, retried on conflict)
and in-process `subscribe` with cancellation handles.
"""
import copy
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from flask import Flask
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from ricequote.models.document import Document

logger = logging.getLogger(__name__)


class TransactionAborted(RuntimeError):
    """A store transaction gave up without committing."""

Listener = Callable[['Snapshot'], None]

_PUSH_ALPHABET = '-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz'


def normalize_path(path: str) -> str:
    parts = [p for p in (path or '').strip().split('/') if p]
    if not parts:
        raise ValueError('Document path cannot be empty')
    return '/'.join(parts)


def split_path(path: str):
    parent, _, key = path.rpartition('/')
    return parent, key


_push_lock = threading.Lock()
_last_push_time = 0
_last_random = []


def generate_push_key() -> str:
    """
    Chronologically sortable key: 8 chars of millisecond time + 12 random chars.

    Keys made in the same millisecond reuse the previous random part plus one,
    so they still sort in creation order.
    """
    global _last_push_time, _last_random
    with _push_lock:
        now = int(time.time() * 1000)
        if now <= _last_push_time:
            now = _last_push_time
            i = 11
            while i >= 0 and _last_random[i] == 63:
                _last_random[i] = 0
                i -= 1
            if i >= 0:
                _last_random[i] += 1
        else:
            _last_random = [secrets.randbelow(64) for _ in range(12)]
        _last_push_time = now

        time_chars = []
        for _ in range(8):
            time_chars.append(_PUSH_ALPHABET[now % 64])
            now //= 64
        random_chars = ''.join(_PUSH_ALPHABET[i] for i in _last_random)
    return ''.join(reversed(time_chars)) + random_chars


@dataclass
class Snapshot:
    """What a subscriber sees: the node value and its direct children."""
    path: str
    value: Any
    children: Dict[str, Any]

    def exists(self) -> bool:
        return self.value is not None or bool(self.children)


@dataclass
class TransactionResult:
    committed: bool
    value: Any
    attempts: int


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() on teardown."""

    def __init__(self, store: 'DocumentStore', path: str, listener: Listener):
        self._store = store
        self.path = path
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_subscription(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class DocumentStore:
    """
    Document store backed by the `documents` table.

    Every operation opens its own short-lived session from `session_factory`
    so the store is safe to share between request threads.
    """

    def __init__(self, session_factory, max_retries: int = 25):
        self._session_factory = session_factory
        self.max_retries = max_retries
        self._subscriptions: List[Subscription] = []
        self._subscriptions_lock = threading.Lock()

    # ------------------------------------------------------------------ reads

    def get(self, path: str) -> Any:
        path = normalize_path(path)
        with self._session_factory() as session:
            row = session.execute(
                select(Document.value).where(Document.path == path)
            ).first()
        return copy.deepcopy(row[0]) if row else None

    def children(self, path: str) -> Dict[str, Any]:
        """Direct children of a node, ordered by key."""
        path = normalize_path(path)
        with self._session_factory() as session:
            rows = session.execute(
                select(Document.key, Document.value)
                .where(Document.parent == path)
                .order_by(Document.key)
            ).all()
        return {key: copy.deepcopy(value) for key, value in rows}

    def snapshot(self, path: str) -> Snapshot:
        path = normalize_path(path)
        return Snapshot(path=path, value=self.get(path), children=self.children(path))

    # ----------------------------------------------------------------- writes

    def set(self, path: str, value: Any) -> None:
        """Write a value at path. Writing None deletes the node."""
        path = normalize_path(path)
        if value is None:
            self.delete(path)
            return
        parent, key = split_path(path)
        with self._session_factory() as session:
            with session.begin():
                row = session.get(Document, path)
                if row is None:
                    session.add(Document(path=path, parent=parent, key=key, value=value, version=1))
                else:
                    row.value = value
                    row.version = row.version + 1
        logger.debug(f"[STORE] SET {path}")
        self._notify(path)

    def update(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Shallow-merge fields into a dict node; None values remove fields."""
        def merge(current):
            merged = dict(current or {})
            for name, value in fields.items():
                if value is None:
                    merged.pop(name, None)
                else:
                    merged[name] = value
            return merged

        result = self.transaction(path, merge)
        if not result.committed:
            raise TransactionAborted(f"Update of {path} did not commit after {result.attempts} attempts")
        return result.value

    def push(self, path: str, value: Any) -> str:
        """Append a child under path with a generated, time-ordered key."""
        key = generate_push_key()
        self.set(f"{normalize_path(path)}/{key}", value)
        return key

    def delete(self, path: str) -> None:
        """Delete a node and everything below it."""
        path = normalize_path(path)
        escaped = path.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        with self._session_factory() as session:
            with session.begin():
                session.execute(
                    delete(Document).where(
                        (Document.path == path) | (Document.path.like(f"{escaped}/%", escape='\\'))
                    )
                )
        logger.debug(f"[STORE] DELETE {path}")
        self._notify(path)

    def transaction(self, path: str, update_fn: Callable[[Any], Any],
                    max_retries: Optional[int] = None) -> TransactionResult:
        """
        Atomically replace the value at path with update_fn(current).

        Optimistic: the write only lands if the row version is unchanged since
        it was read; otherwise update_fn runs again on the fresh value.
        Returning None from update_fn aborts without writing.
        """
        path = normalize_path(path)
        parent, key = split_path(path)
        retries = max_retries if max_retries is not None else self.max_retries

        for attempt in range(1, retries + 1):
            with self._session_factory() as session:
                row = session.execute(
                    select(Document.value, Document.version).where(Document.path == path)
                ).first()
                current = copy.deepcopy(row[0]) if row else None
                new_value = update_fn(current)
                if new_value is None:
                    return TransactionResult(committed=False, value=current, attempts=attempt)

                try:
                    if row is None:
                        session.add(Document(path=path, parent=parent, key=key, value=new_value, version=1))
                        session.flush()
                    else:
                        result = session.execute(
                            update(Document)
                            .where(Document.path == path, Document.version == row[1])
                            .values(value=new_value, version=row[1] + 1)
                        )
                        if result.rowcount != 1:
                            session.rollback()
                            logger.debug(f"[STORE] TX conflict on {path} (attempt {attempt})")
                            continue
                    session.commit()
                except IntegrityError:
                    # Another writer created the node first
                    session.rollback()
                    logger.debug(f"[STORE] TX insert race on {path} (attempt {attempt})")
                    continue

            self._notify(path)
            return TransactionResult(committed=True, value=new_value, attempts=attempt)

        logger.warning(f"[STORE] TX on {path} gave up after {retries} attempts")
        return TransactionResult(committed=False, value=None, attempts=retries)

    # ---------------------------------------------------------- subscriptions

    def subscribe(self, path: str, listener: Listener) -> Subscription:
        """
        Call listener with a Snapshot now and after every write at or below path.
        """
        subscription = Subscription(self, normalize_path(path), listener)
        with self._subscriptions_lock:
            self._subscriptions.append(subscription)
        listener(self.snapshot(subscription.path))
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._subscriptions_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def listener_count(self) -> int:
        with self._subscriptions_lock:
            return len(self._subscriptions)

    def _notify(self, changed_path: str) -> None:
        with self._subscriptions_lock:
            targets = [
                s for s in self._subscriptions
                if s.active and (
                    changed_path == s.path
                    or changed_path.startswith(s.path + '/')
                    or s.path.startswith(changed_path + '/')
                )
            ]
        for subscription in targets:
            if not subscription.active:
                continue
            try:
                subscription.listener(self.snapshot(subscription.path))
            except Exception as e:
                logger.exception(f"[STORE] Listener on {subscription.path} failed: {e}")


_document_store: Optional[DocumentStore] = None


def init_store(app: Flask) -> None:
    """Initialize document store singleton on top of init_db's engine."""
    global _document_store
    from ricequote.database import build_session_factory, get_engine
    _document_store = DocumentStore(
        build_session_factory(get_engine()),
        max_retries=app.config.get('COUNTER_MAX_RETRIES', 25),
    )
    app.extensions['document_store'] = _document_store


def get_store() -> DocumentStore:
    """Get document store instance."""
    if _document_store is None:
        raise RuntimeError("Document store not initialized.")
    return _document_store
