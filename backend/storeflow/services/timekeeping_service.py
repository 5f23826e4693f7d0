# Overview: Service-layer operations for attendance check-ins and breaks.

"""
Attendance & Breaks

Attendance logs are append-only check-ins (button press or selfie). A user has at
most one open break; ending it stamps end_time and duration_ms.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from ..extensions import db
from ..models import AttendanceLog, BreakLog, User
from ..validation import ValidationError
from .activity_service import append_activity_event
from .concurrency import run_in_transaction
from storeflow.time_utils import end_of_day, start_of_day, utcnow


ATTENDANCE_METHODS = frozenset({"button", "selfie"})


class TimekeepingError(ValidationError):
    """Raised for invalid timekeeping operations."""
    pass


def _get_open_break(user_id: int) -> BreakLog | None:
    return db.session.query(BreakLog).filter_by(user_id=user_id, end_time=None).first()


def record_attendance(user: User, method: str = "button", selfie_image_path: Optional[str] = None) -> AttendanceLog:
    method = (method or "").strip().lower()
    if method not in ATTENDANCE_METHODS:
        raise TimekeepingError(f"Invalid attendance method: {method or '(blank)'}")
    if method == "selfie" and not (selfie_image_path or "").strip():
        raise TimekeepingError("selfie_image_path is required for selfie attendance")

    def _op():
        log = AttendanceLog(
            user_id=user.id,
            timestamp=utcnow(),
            method=method,
            selfie_image_path=(selfie_image_path or "").strip() or None,
        )
        db.session.add(log)
        db.session.flush()
        append_activity_event(
            event_type="attendance.recorded",
            entity_type="attendance_log",
            entity_id=log.id,
            actor_user_id=user.id,
            note=method,
            occurred_at=log.timestamp,
        )
        return log

    return run_in_transaction(_op)


def start_break(user: User) -> BreakLog:
    def _op():
        if _get_open_break(user.id):
            raise TimekeepingError("Break already in progress")
        brk = BreakLog(user_id=user.id, start_time=utcnow())
        db.session.add(brk)
        db.session.flush()
        append_activity_event(
            event_type="break.started",
            entity_type="break_log",
            entity_id=brk.id,
            actor_user_id=user.id,
            occurred_at=brk.start_time,
        )
        return brk

    return run_in_transaction(_op)


def end_break(user: User) -> BreakLog:
    def _op():
        brk = _get_open_break(user.id)
        if not brk:
            raise TimekeepingError("No break in progress")
        ended = utcnow()
        brk.end_time = ended
        brk.duration_ms = max(int((ended - brk.start_time).total_seconds() * 1000), 0)
        db.session.flush()
        append_activity_event(
            event_type="break.ended",
            entity_type="break_log",
            entity_id=brk.id,
            actor_user_id=user.id,
            occurred_at=ended,
        )
        return brk

    return run_in_transaction(_op)


def get_current_status(user_id: int) -> dict:
    brk = _get_open_break(user_id)
    last = (
        db.session.query(AttendanceLog)
        .filter_by(user_id=user_id)
        .order_by(AttendanceLog.timestamp.desc(), AttendanceLog.id.desc())
        .first()
    )
    return {
        "on_break": brk is not None,
        "open_break": brk.to_dict() if brk else None,
        "last_attendance": last.to_dict() if last else None,
    }


def list_attendance(
    *,
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 500,
) -> list[AttendanceLog]:
    query = db.session.query(AttendanceLog)
    if user_id:
        query = query.filter(AttendanceLog.user_id == user_id)
    if start_date:
        query = query.filter(AttendanceLog.timestamp >= start_of_day(start_date))
    if end_date:
        query = query.filter(AttendanceLog.timestamp <= end_of_day(end_date))
    return query.order_by(AttendanceLog.timestamp.desc(), AttendanceLog.id.desc()).limit(limit).all()


def list_breaks(
    *,
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 500,
) -> list[BreakLog]:
    query = db.session.query(BreakLog)
    if user_id:
        query = query.filter(BreakLog.user_id == user_id)
    if start_date:
        query = query.filter(BreakLog.start_time >= start_of_day(start_date))
    if end_date:
        query = query.filter(BreakLog.start_time <= end_of_day(end_date))
    return query.order_by(BreakLog.start_time.desc(), BreakLog.id.desc()).limit(limit).all()
