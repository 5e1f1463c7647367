# Overview: Service-layer operations for timekeeping; encapsulates business logic.

"""
Timekeeping Service (Daily Checkpoints)

WHY: Workers mark four checkpoints per day: check-in, break start, break
end and check-out. Each checkpoint is written once per user per day and
is never overwritten.

STATE MACHINE (per user, per UTC date):
- No record: the first checkpoint inserts the row
- Checkpoint NULL: a conditional UPDATE sets it
- Checkpoint set: AlreadyMarkedError carrying the stored time

Two concurrent marks of the same checkpoint both reach the conditional
UPDATE ... WHERE <field> IS NULL; exactly one affects a row. Two concurrent
first marks race on the (user_id, work_date) unique constraint; the loser
falls through to the UPDATE path.

With ATTENDANCE_STRICT_ORDER enabled, checkpoints must follow the day's
order (a break needs a check-in, check-out is refused during a break).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import AttendanceRecord, User
from ..models.auth import ROLE_WORKER, STATUS_ENABLED
from ..models.timekeeping import BREAK_END, BREAK_START, CHECK_IN, CHECK_OUT, CHECKPOINTS
from .concurrency import affected_rows
from gesticom.time_utils import hours_between, start_of_week, to_clock_time, today_utc, utcnow


REPORT_COMPLETE = "complete"
REPORT_INCOMPLETE = "incomplete"
REPORT_ABSENT = "absent"


class TimekeepingError(ValidationError):
    """Raised for invalid timekeeping operations."""
    pass


class InvalidCheckpointError(TimekeepingError):
    pass


class OutOfOrderError(ConflictError):
    """Checkpoint marked before the one it depends on."""
    pass


class AlreadyMarkedError(ConflictError):
    """The checkpoint already holds a timestamp for today."""

    def __init__(self, checkpoint: str, existing: datetime | None):
        if existing is not None:
            message = f"{checkpoint} already recorded today at {to_clock_time(existing)}"
        else:
            message = f"{checkpoint} was already recorded"
        details = {"ya_marcado": True}
        if existing is not None:
            details["hora_existente"] = to_clock_time(existing)
        super().__init__(message, details=details)
        self.checkpoint = checkpoint
        self.existing = existing


@dataclass
class MarkResult:
    checkpoint: str
    date: date
    recorded_at: datetime


def _get_record(user_id: int, work_date: date) -> AttendanceRecord | None:
    return db.session.query(AttendanceRecord).filter_by(user_id=user_id, work_date=work_date).first()


def _check_order(record: AttendanceRecord | None, checkpoint: str) -> None:
    if not current_app.config.get("ATTENDANCE_STRICT_ORDER", True):
        return

    check_in = record.check_in if record else None
    break_start = record.break_start if record else None
    break_end = record.break_end if record else None
    check_out = record.check_out if record else None

    if checkpoint in (BREAK_START, BREAK_END, CHECK_OUT) and check_in is None:
        raise OutOfOrderError("Check-in must be recorded first")
    if checkpoint in (BREAK_START, BREAK_END) and check_out is not None:
        raise OutOfOrderError("Shift already closed")
    if checkpoint == BREAK_END and break_start is None:
        raise OutOfOrderError("Break has not started")
    if checkpoint == CHECK_OUT and break_start is not None and break_end is None:
        raise OutOfOrderError("Cannot check out while on break")


def mark(*, user_id: int, checkpoint: str) -> MarkResult:
    """
    Record ``checkpoint`` for ``user_id`` on today's UTC date.

    Raises:
        InvalidCheckpointError: unknown checkpoint name
        AlreadyMarkedError: checkpoint already recorded today (or lost a race)
        OutOfOrderError: strict ordering enabled and a prerequisite is missing
    """
    if checkpoint not in CHECKPOINTS:
        raise InvalidCheckpointError(f"Invalid checkpoint: {checkpoint}")

    work_date = today_utc()
    now = utcnow()
    record = _get_record(user_id, work_date)

    if record is None:
        _check_order(None, checkpoint)
        record = AttendanceRecord(user_id=user_id, work_date=work_date, **{checkpoint: now})
        db.session.add(record)
        try:
            db.session.commit()
            return MarkResult(checkpoint=checkpoint, date=work_date, recorded_at=now)
        except IntegrityError:
            # Another request created today's row first
            db.session.rollback()
            record = _get_record(user_id, work_date)
            if record is None:
                raise

    existing = record.checkpoint_value(checkpoint)
    if existing is not None:
        raise AlreadyMarkedError(checkpoint, existing)

    _check_order(record, checkpoint)

    column = getattr(AttendanceRecord, checkpoint)
    result = db.session.execute(
        update(AttendanceRecord)
        .where(AttendanceRecord.id == record.id, column.is_(None))
        .values({checkpoint: now})
        .execution_options(synchronize_session=False)
    )
    if affected_rows(result) == 0:
        # Lost the race: another request set the field after our read
        db.session.rollback()
        current = db.session.get(AttendanceRecord, record.id)
        raise AlreadyMarkedError(checkpoint, current.checkpoint_value(checkpoint) if current else None)

    db.session.commit()
    return MarkResult(checkpoint=checkpoint, date=work_date, recorded_at=now)


def get_today_status(user_id: int) -> dict:
    record = _get_record(user_id, today_utc())
    if record is None:
        return {"on_break": False, "break_start": None, "break_end": None}
    return {
        "on_break": record.on_break,
        "break_start": record.break_start,
        "break_end": record.break_end,
    }


def is_on_break(user_id: int) -> bool:
    """Server-side break flag consulted before a sale is accepted."""
    return get_today_status(user_id)["on_break"]


def get_history(user_id: int, limit: int | None = None) -> list[AttendanceRecord]:
    """The user's records, newest date first. Limit defaults to 10, capped at 30."""
    default = current_app.config.get("ATTENDANCE_HISTORY_DEFAULT", 10)
    cap = current_app.config.get("ATTENDANCE_HISTORY_MAX", 30)
    if limit is None or limit <= 0:
        limit = default
    limit = min(limit, cap)

    return (
        db.session.query(AttendanceRecord)
        .filter(AttendanceRecord.user_id == user_id)
        .order_by(AttendanceRecord.work_date.desc())
        .limit(limit)
        .all()
    )


def classify_record(record: AttendanceRecord) -> tuple[str, float | None]:
    """Report status and worked hours for one day."""
    if record.check_in is not None and record.check_out is not None:
        return REPORT_COMPLETE, hours_between(record.check_in, record.check_out)
    if record.check_in is not None or record.check_out is not None:
        return REPORT_INCOMPLETE, None
    return REPORT_ABSENT, None


def get_report(*, start: date, end: date) -> list[dict]:
    """
    Attendance report for every enabled worker over [start, end].

    Returns one entry per worker:
        {"user": User, "records": [{"record", "status", "hours"}], "statistics": {...}}
    """
    if start is None or end is None:
        raise ValidationError("Start and end dates are required")
    if start > end:
        raise ValidationError("Start date must be on or before end date")

    workers = (
        db.session.query(User)
        .filter(User.status == STATUS_ENABLED, User.role == ROLE_WORKER)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )

    report = []
    for worker in workers:
        records = (
            db.session.query(AttendanceRecord)
            .filter(
                AttendanceRecord.user_id == worker.id,
                AttendanceRecord.work_date >= start,
                AttendanceRecord.work_date <= end,
            )
            .order_by(AttendanceRecord.work_date.desc())
            .all()
        )

        rows = []
        stats = {"complete_days": 0, "incomplete_days": 0, "absences": 0, "total_hours": 0.0}
        for record in records:
            status, hours = classify_record(record)
            rows.append({"record": record, "status": status, "hours": hours})
            if status == REPORT_COMPLETE:
                stats["complete_days"] += 1
                stats["total_hours"] += hours
            elif status == REPORT_INCOMPLETE:
                stats["incomplete_days"] += 1
            else:
                stats["absences"] += 1
        stats["total_hours"] = round(stats["total_hours"], 1)

        report.append({"user": worker, "records": rows, "statistics": stats})

    return report


def get_daily_statistics() -> dict:
    """Today's attendance summary and this week's average shift length."""
    today = today_utc()

    present = (
        db.session.query(db.func.count(AttendanceRecord.id))
        .filter(AttendanceRecord.work_date == today, AttendanceRecord.check_in.isnot(None))
        .scalar()
    )
    total_workers = (
        db.session.query(db.func.count(User.id))
        .filter(User.status == STATUS_ENABLED, User.role == ROLE_WORKER)
        .scalar()
    )
    completed = (
        db.session.query(db.func.count(AttendanceRecord.id))
        .filter(
            AttendanceRecord.work_date == today,
            AttendanceRecord.check_in.isnot(None),
            AttendanceRecord.check_out.isnot(None),
        )
        .scalar()
    )

    week_rows = (
        db.session.query(AttendanceRecord)
        .filter(
            AttendanceRecord.work_date >= start_of_week(today),
            AttendanceRecord.check_in.isnot(None),
            AttendanceRecord.check_out.isnot(None),
        )
        .all()
    )
    # Averaged on unrounded durations
    if week_rows:
        seconds = sum((r.check_out - r.check_in).total_seconds() for r in week_rows)
        average = round(seconds / len(week_rows) / 3600, 1)
    else:
        average = 0.0

    return {
        "present_today": present or 0,
        "total_workers": total_workers or 0,
        "completed_shifts": completed or 0,
        "average_hours_week": average,
        "date": today,
    }
