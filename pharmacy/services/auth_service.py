"""
Authentication service for staff accounts.

Handles credential checks and user creation.
"""
import logging
import re

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from pharmacy.exceptions import UnauthorizedError, ValidationError
from pharmacy.models import AppUser, UserRole

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def is_valid_email(email: str) -> bool:
    """Validate email format."""
    return EMAIL_PATTERN.match(email or '') is not None


def authenticate(session, email: str, password: str) -> AppUser:
    """
    Check credentials and return the active user.

    Same error for unknown email, wrong password and inactive account.
    """
    email = (email or '').strip().lower()
    user = session.query(AppUser).filter(
        func.lower(AppUser.email) == email,
        AppUser.active.is_(True)
    ).first()

    if not user or not user.check_password(password or ''):
        logger.warning(f"Failed login attempt for {email!r}")
        raise UnauthorizedError('Invalid email or password')

    logger.info(f"User {user.id} logged in")
    return user


def create_user(session, email: str, name: str, password: str, role='CASHIER') -> AppUser:
    """Create a staff account."""
    email = (email or '').strip().lower()
    name = (name or '').strip()

    if not is_valid_email(email):
        raise ValidationError('Invalid email')
    if not name:
        raise ValidationError('Name is required')
    if not password or len(password) < 6:
        raise ValidationError('Password must be at least 6 characters')
    try:
        role = UserRole(str(role).upper())
    except ValueError:
        raise ValidationError(f'Invalid role: {role}')

    user = AppUser(email=email, name=name, role=role, active=True)
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationError(f'A user with email {email} already exists')

    logger.info(f"User {user.id} created with role {role.value}")
    return user
