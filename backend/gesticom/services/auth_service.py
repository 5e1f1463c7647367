# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale and attendance mark must be attributable. Uses bcrypt for
secure password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Access tokens managed separately (see token_service.py)
- Disabled accounts cannot log in
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from gesticom.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised when credentials are rejected."""
    pass


class AccountDisabledError(AuthenticationError):
    """Credentials are valid but the account has been disabled by an owner."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(email: str, password: str) -> User:
    """
    Authenticate a user by email and password.

    Updates last_login_at on success.

    Raises:
        AuthenticationError: unknown email or wrong password (same message for both)
        AccountDisabledError: correct credentials on a disabled account
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(db.func.lower(User.email) == email).first()

    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")

    if not user.is_enabled:
        raise AccountDisabledError("Account disabled")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    """
    Replace a user's password after verifying the current one.

    Raises:
        AuthenticationError: current password is wrong
        PasswordValidationError: new password too weak
    """
    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()
