from __future__ import annotations

from ..extensions import db
from gesticom.time_utils import to_utc_z


ROLE_OWNER = "owner"
ROLE_WORKER = "worker"
VALID_ROLES = {ROLE_OWNER, ROLE_WORKER}

STATUS_ENABLED = "enabled"
STATUS_DISABLED = "disabled"
VALID_USER_STATUSES = {STATUS_ENABLED, STATUS_DISABLED}


class User(db.Model):
    """
    User accounts for authentication and attribution.

    WHY: Every sale and attendance mark must be attributable. No shared logins.

    Roles are a closed set: owner (full administrative authority) and
    worker (sales and own attendance). Users are created by an owner.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_status", "role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    # Chilean RUT, normalized without dots (e.g. "12345678-5")
    national_id = db.Column(db.String(16), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_WORKER)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ENABLED)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_enabled(self) -> bool:
        return self.status == STATUS_ENABLED

    @property
    def is_owner(self) -> bool:
        return self.role == ROLE_OWNER

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "national_id": self.national_id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class ActivityLog(db.Model):
    """
    Append-only activity trail (logins, user administration, sales, voids).

    Written best-effort: a failed insert never aborts the operation it describes.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "description": self.description,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
