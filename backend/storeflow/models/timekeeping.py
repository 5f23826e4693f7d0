from __future__ import annotations

from ..extensions import db
from storeflow.time_utils import to_utc_z, utcnow


class AttendanceLog(db.Model):
    """
    Attendance check-in.

    WHY: Staff register presence once or more per day; logs are append-only and feed
    the activity view and the attendance export section.
    """
    __tablename__ = "attendance_logs"
    __table_args__ = (
        db.Index("ix_attendance_user_timestamp", "user_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    # button | selfie
    method = db.Column(db.String(16), nullable=True)
    selfie_image_path = db.Column(db.String(512), nullable=True)

    user = db.relationship("User", backref=db.backref("attendance_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "timestamp": to_utc_z(self.timestamp),
            "method": self.method,
            "selfie_image_path": self.selfie_image_path,
        }


class BreakLog(db.Model):
    """
    Break period. At most one open break (end_time IS NULL) per user.
    duration_ms is written when the break ends.
    """
    __tablename__ = "break_logs"
    __table_args__ = (
        db.Index("ix_break_logs_user_start", "user_id", "start_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    duration_ms = db.Column(db.Integer, nullable=True)

    user = db.relationship("User", backref=db.backref("break_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "duration_ms": self.duration_ms,
        }
