# Overview: Service-layer operations for user administration; encapsulates business logic and database work.

"""
User administration.

Owners create users and manage role, status and email. Any user may edit
their own name and email. An owner can never disable or delete their own
account, and users with recorded sales cannot be deleted.
"""

from __future__ import annotations

import re

from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ActivityLog, AttendanceRecord, InventoryMovement, Notification, Sale, User
from ..models.auth import ROLE_WORKER, STATUS_DISABLED, STATUS_ENABLED, VALID_ROLES
from ..validation import normalize_rut, validate_rut
from .auth_service import PasswordValidationError, hash_password

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

OWNER_EDITABLE_FIELDS = {"name", "email", "role"}
SELF_EDITABLE_FIELDS = {"name", "email"}


def _clean_email(email) -> str:
    email = (email or "").strip().lower() if isinstance(email, str) else ""
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email


def _clean_name(name) -> str:
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("name is required")
    if len(name) > 120:
        raise ValidationError("name exceeds max length 120")
    return name


def _ensure_email_free(email: str, exclude_user_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError("Email already registered")


def get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(*, search: str | None = None, role: str | None = None, enabled: bool | None = None) -> list[User]:
    query = db.session.query(User)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.national_id.ilike(pattern),
            )
        )
    if role:
        query = query.filter(User.role == role)
    if enabled is not None:
        query = query.filter(User.status == (STATUS_ENABLED if enabled else STATUS_DISABLED))

    return query.order_by(User.name.asc(), User.id.asc()).all()


def create_user(*, name: str, national_id: str, email: str, password: str, role: str = ROLE_WORKER) -> User:
    """
    Create a user account.

    Raises:
        ValidationError: bad RUT, email, role or weak password
        ConflictError: RUT or email already registered
    """
    name = _clean_name(name)
    email = _clean_email(email)

    if not isinstance(national_id, str) or not validate_rut(national_id):
        raise ValidationError("Invalid RUT")
    national_id = normalize_rut(national_id)

    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {role}")

    if db.session.query(User.id).filter(User.national_id == national_id).first():
        raise ConflictError("RUT already registered")
    _ensure_email_free(email)

    try:
        password_hash = hash_password(password)
    except PasswordValidationError as e:
        raise ValidationError(str(e))

    user = User(
        name=name,
        national_id=national_id,
        email=email,
        password_hash=password_hash,
        role=role,
        status=STATUS_ENABLED,
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(*, actor: User, user_id: int, patch: dict) -> User:
    """
    Apply a partial update.

    Owners may change name, email and role of anyone. Other users may only
    change their own name and email.
    """
    user = get_user_or_404(user_id)

    if actor.is_owner:
        allowed = OWNER_EDITABLE_FIELDS
    elif actor.id == user.id:
        allowed = SELF_EDITABLE_FIELDS
    else:
        raise ForbiddenError("You can only edit your own profile")

    for key in patch:
        if key not in allowed:
            if key == "role":
                raise ForbiddenError("Only an owner can change roles")
            raise ValidationError(f"Field not allowed: {key}")

    if "name" in patch:
        user.name = _clean_name(patch["name"])

    if "email" in patch:
        email = _clean_email(patch["email"])
        _ensure_email_free(email, exclude_user_id=user.id)
        user.email = email

    if "role" in patch:
        role = patch["role"]
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role: {role}")
        if user.id == actor.id and role != user.role:
            raise ConflictError("You cannot change your own role")
        user.role = role

    db.session.commit()
    return user


def toggle_status(*, actor: User, user_id: int) -> User:
    """Flip enabled <-> disabled. The acting owner cannot disable themselves."""
    user = get_user_or_404(user_id)
    if user.id == actor.id:
        raise ConflictError("You cannot disable your own account")

    user.status = STATUS_DISABLED if user.is_enabled else STATUS_ENABLED
    db.session.commit()
    return user


def delete_user(*, actor: User, user_id: int) -> User:
    """
    Hard-delete a user without sales history.

    Raises:
        ConflictError: deleting self, or the user has recorded sales
    """
    user = get_user_or_404(user_id)
    if user.id == actor.id:
        raise ConflictError("You cannot delete your own account")

    has_sales = db.session.query(Sale.id).filter(
        db.or_(Sale.user_id == user.id, Sale.voided_by_user_id == user.id)
    ).first()
    if has_sales:
        raise ConflictError("User has recorded sales; disable the account instead")

    # SQLite does not enforce ON DELETE without PRAGMA foreign_keys
    db.session.query(AttendanceRecord).filter(AttendanceRecord.user_id == user.id).delete(synchronize_session=False)
    for model in (ActivityLog, InventoryMovement, Notification):
        db.session.query(model).filter(model.user_id == user.id).update({"user_id": None}, synchronize_session=False)

    db.session.delete(user)
    db.session.commit()
    return user
