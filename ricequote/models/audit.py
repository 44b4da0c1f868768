"""
Audit entry model and actor resolution.

An AuditEntry is written once to `history/{pushId}` and never touched again.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def derive_action(before: Any, after: Any) -> AuditAction:
    """Action is a function of which snapshots exist, never supplied by callers."""
    if before is None and after is not None:
        return AuditAction.CREATE
    if before is not None and after is None:
        return AuditAction.DELETE
    return AuditAction.UPDATE


def compute_changes(before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Shallow field diff between two snapshots, sorted by field name."""
    before = before if isinstance(before, dict) else {}
    after = after if isinstance(after, dict) else {}
    changes = []
    for name in sorted(set(before) | set(after)):
        old, new = before.get(name), after.get(name)
        if old != new:
            changes.append({'field': name, 'from': old, 'to': new})
    return changes


SYSTEM_ACTOR_EMAIL = 'System'


@dataclass(frozen=True)
class Actor:
    email: str
    uid: Optional[str]
    role: str


@dataclass(frozen=True)
class ActorContext:
    """
    Who is acting, passed explicitly into audited operations.

    Resolution order: cached admin profile, then the authenticated session
    user, then the System sentinel. Admin actions may come from a cached
    profile without a live session.
    """

    cached_profile: Optional[Dict[str, Any]] = None
    session_user: Optional[Dict[str, Any]] = None

    def resolve(self) -> Actor:
        if self.cached_profile and self.cached_profile.get('email'):
            return Actor(
                email=self.cached_profile['email'],
                uid=self.cached_profile.get('uid'),
                role='admin',
            )
        if self.session_user and self.session_user.get('email'):
            return Actor(
                email=self.session_user['email'],
                uid=self.session_user.get('uid'),
                role='user',
            )
        return Actor(email=SYSTEM_ACTOR_EMAIL, uid=None, role='system')

    @property
    def owner_key(self) -> str:
        """Key identifying the customer for the in-flight submission guard."""
        actor = self.resolve()
        return actor.uid or actor.email

    @classmethod
    def system(cls) -> 'ActorContext':
        return cls()


@dataclass
class AuditEntry:
    path: str
    entity: str
    action: AuditAction
    before: Any
    after: Any
    actor: Actor
    timestamp: int
    changes: List[Dict[str, Any]] = field(default_factory=list)
    key: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'entity': self.entity,
            'action': self.action.value,
            'before': self.before,
            'after': self.after,
            'changes': self.changes,
            'actor': self.actor.email,
            'actorUid': self.actor.uid,
            'actorRole': self.actor.role,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_document(cls, key: str, value: Dict[str, Any]) -> 'AuditEntry':
        return cls(
            path=value.get('path'),
            entity=value.get('entity'),
            action=AuditAction(value.get('action')),
            before=value.get('before'),
            after=value.get('after'),
            actor=Actor(email=value.get('actor'), uid=value.get('actorUid'), role=value.get('actorRole')),
            timestamp=value.get('timestamp'),
            changes=value.get('changes') or [],
            key=key,
        )
