# Overview: Best-effort activity trail (logins, user administration, sales).

"""
Activity Log Service

The activity trail is a non-critical side effect: it is written after the
operation it describes has committed, in its own commit, and a failure is
logged and swallowed. It never wraps stock, sale or attendance writes.
"""

from __future__ import annotations

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog


ACTION_LOGIN = "LOGIN"
ACTION_LOGOUT = "LOGOUT"
ACTION_CHANGE_PASSWORD = "CHANGE_PASSWORD"
ACTION_CREATE_USER = "CREATE_USER"
ACTION_UPDATE_USER = "UPDATE_USER"
ACTION_ACTIVATE_USER = "ACTIVATE_USER"
ACTION_DEACTIVATE_USER = "DEACTIVATE_USER"
ACTION_DELETE_USER = "DELETE_USER"
ACTION_CREATE_SALE = "CREATE_SALE"
ACTION_VOID_SALE = "VOID_SALE"


def log_activity(
    user_id: int | None,
    action: str,
    description: str | None = None,
    ip_address: str | None = None,
) -> ActivityLog | None:
    """
    Append an activity row. Returns None (and logs a warning) on failure.
    """
    if ip_address is None and has_request_context():
        ip_address = request.remote_addr

    try:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            description=description,
            ip_address=ip_address,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Could not record activity %s for user %s", action, user_id, exc_info=True)
        return None


def recent_activity(user_id: int | None = None, limit: int = 50) -> list[ActivityLog]:
    query = db.session.query(ActivityLog)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
