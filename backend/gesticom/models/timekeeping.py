from __future__ import annotations

from ..extensions import db
from gesticom.time_utils import to_utc_z


CHECK_IN = "check_in"
BREAK_START = "break_start"
BREAK_END = "break_end"
CHECK_OUT = "check_out"

# Intended business order of the day's checkpoints
CHECKPOINTS = (CHECK_IN, BREAK_START, BREAK_END, CHECK_OUT)


class AttendanceRecord(db.Model):
    """
    One row per (user, calendar day) holding the four daily checkpoints.

    LIFECYCLE:
    - Created lazily by the first checkpoint of the day
    - Each checkpoint column is written at most once (NULL -> timestamp)
    - Never deleted; read for personal history and owner reports

    DERIVED STATE:
    - break_start set and break_end NULL -> user is on break
    """
    __tablename__ = "attendance_records"
    __table_args__ = (
        db.UniqueConstraint("user_id", "work_date", name="uq_attendance_user_date"),
        db.Index("ix_attendance_date", "work_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date = db.Column(db.Date, nullable=False)

    # Checkpoints (UTC-naive)
    check_in = db.Column(db.DateTime(timezone=True), nullable=True)
    break_start = db.Column(db.DateTime(timezone=True), nullable=True)
    break_end = db.Column(db.DateTime(timezone=True), nullable=True)
    check_out = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("attendance_records", lazy=True, passive_deletes=True))

    @property
    def on_break(self) -> bool:
        return self.break_start is not None and self.break_end is None

    def checkpoint_value(self, checkpoint: str):
        return getattr(self, checkpoint)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "work_date": self.work_date.isoformat(),
            "check_in": to_utc_z(self.check_in),
            "break_start": to_utc_z(self.break_start),
            "break_end": to_utc_z(self.break_end),
            "check_out": to_utc_z(self.check_out),
            "on_break": self.on_break,
        }
