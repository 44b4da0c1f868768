"""
Audit logging service for tracking every mutation.

Entries are append-only under `history/`; nothing in the engine updates or
deletes them.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ricequote.blueprints.metrics import audit_write_failures_total
from ricequote.exceptions import AuditFailure
from ricequote.models.audit import AuditAction, AuditEntry, ActorContext, derive_action, compute_changes
from ricequote.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

HISTORY_PATH = 'history'


@dataclass
class AuditedChange:
    """A persisted change and whether its history entry landed."""
    value: Any
    audit_recorded: bool = True


def _now_ms() -> int:
    return int(time.time() * 1000)


class AuditLogger:

    def __init__(self, store: DocumentStore):
        self.store = store

    def log(
        self,
        path: str,
        entity: str,
        before: Any,
        after: Any,
        actor_context: ActorContext,
        changes: Optional[List[Dict[str, Any]]] = None,
    ) -> AuditEntry:
        """
        Append one audit entry.

        Args:
            path: Store path of the document that changed
            entity: Entity label (e.g. 'ORDER', 'GRADE')
            before: Document value before the change, None on create
            after: Document value after the change, None on delete
            actor_context: Who is acting; resolved here, never cached
            changes: Field changes; derived from before/after when omitted

        Raises:
            AuditFailure: the history write did not land
        """
        entry = AuditEntry(
            path=path,
            entity=entity,
            action=derive_action(before, after),
            before=before,
            after=after,
            actor=actor_context.resolve(),
            timestamp=_now_ms(),
            changes=changes if changes is not None else compute_changes(before, after),
        )
        try:
            entry.key = self.store.push(HISTORY_PATH, entry.to_document())
        except (SQLAlchemyError, ValueError, TypeError) as e:
            logger.error(f"[AUDIT] Failed to record {entry.action.value} on {path}: {e}")
            raise AuditFailure(path, str(e)) from e

        logger.info(f"[AUDIT] {entry.action.value} {entity} {path} by {entry.actor.email}")
        return entry

    def record(
        self,
        path: str,
        entity: str,
        before: Any,
        after: Any,
        actor_context: ActorContext,
        changes: Optional[List[Dict[str, Any]]] = None,
    ) -> bool:
        """
        Audit a change that has already been written.

        The write is not rolled back when history fails: the failure is
        logged, counted and reported as False.
        """
        try:
            self.log(path, entity, before, after, actor_context, changes=changes)
        except AuditFailure as e:
            audit_write_failures_total.inc()
            logger.error(f"[AUDIT] {path} changed without a history entry: {e.reason or e.message}")
            return False
        return True

    def write_with_history(self, path: str, entity: str, data: Any,
                           actor_context: ActorContext) -> AuditedChange:
        """Read the current value, write `data` (None deletes), then audit."""
        before = self.store.get(path)
        self.store.set(path, data)
        return AuditedChange(data, self.record(path, entity, before, data, actor_context))

    def get_audit_logs(
        self,
        limit: int = 100,
        path_prefix: Optional[str] = None,
        entity_filter: Optional[str] = None,
        action_filter: Optional[AuditAction] = None,
        actor_filter: Optional[str] = None,
    ) -> List[AuditEntry]:
        """
        Retrieve audit entries, newest first, with optional filters.

        Args:
            limit: Max number of results
            path_prefix: Only entries for paths at or below this prefix
            entity_filter: Filter by entity label
            action_filter: Filter by action
            actor_filter: Filter by actor email
        """
        entries = []
        for key, value in self.store.children(HISTORY_PATH).items():
            entry = AuditEntry.from_document(key, value)
            if path_prefix and not (entry.path == path_prefix or entry.path.startswith(path_prefix + '/')):
                continue
            if entity_filter and entry.entity != entity_filter:
                continue
            if action_filter and entry.action is not action_filter:
                continue
            if actor_filter and entry.actor.email != actor_filter:
                continue
            entries.append(entry)

        # Push keys sort chronologically
        entries.sort(key=lambda e: e.key, reverse=True)
        return entries[:limit]
