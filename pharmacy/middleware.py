"""Middleware for authentication and role checks."""
from functools import wraps

from flask import session, g, current_app

from pharmacy.database import get_session
from pharmacy.exceptions import UnauthorizedError, ForbiddenError
from pharmacy.models import AppUser, UserRole


def load_current_user():
    """
    Load the current user into g (Flask's per-request global).

    Called before each request. Sets g.user and g.user_id when the session
    belongs to an active staff account.
    """
    g.user = None
    g.user_id = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        db_session = get_session()
        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
    except Exception as e:
        current_app.logger.error(f"Error in load_current_user: {e}")
        return

    if user:
        g.user = user
        g.user_id = user.id
    else:
        # Deactivated or deleted account
        session.pop('user_id', None)


def require_login(f):
    """
    Decorator: Require an authenticated staff member.

    Raises UnauthorizedError, rendered as a 401 JSON body.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles):
    """
    Decorator: Require one of the given roles.

    ADMIN passes every role check. Must be used AFTER require_login.
    """
    allowed = {UserRole(r) for r in roles} | {UserRole.ADMIN}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('user')
            if user is None:
                raise UnauthorizedError()
            if user.role not in allowed:
                current_app.logger.warning(
                    f"User {user.id} ({user.role.value}) denied access to {f.__name__}"
                )
                raise ForbiddenError(
                    f"Requires role: {', '.join(sorted(r.value for r in allowed))}"
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator
