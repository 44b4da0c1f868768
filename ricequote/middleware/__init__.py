"""Middleware for actor context and admin access."""
from functools import wraps
from flask import session, g

from ricequote.exceptions import UnauthorizedError
from ricequote.models.audit import ActorContext


def load_actor_context():
    """
    Load who is acting into g (Flask's per-request global).

    Called before each request. The authentication provider stores the
    signed-in user under session['user'] and, for back-office staff, the
    cached admin profile under session['profile'].
    """
    profile = session.get('profile')
    user = session.get('user')
    g.actor_context = ActorContext(
        cached_profile=profile if isinstance(profile, dict) else None,
        session_user=user if isinstance(user, dict) else None,
    )
    g.is_admin = g.actor_context.resolve().role == 'admin'


def current_actor() -> ActorContext:
    return g.get('actor_context') or ActorContext.system()


def admin_required(f):
    """
    Decorator: Require a cached admin profile.

    Raises UnauthorizedError, rendered as JSON 403 by the app error handler.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('is_admin'):
            raise UnauthorizedError('Admin access required')
        return f(*args, **kwargs)
    return decorated_function
