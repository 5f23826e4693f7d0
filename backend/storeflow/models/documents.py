from __future__ import annotations

from ..extensions import db
from storeflow.time_utils import to_utc_z, utcnow


class DocumentSequence(db.Model):
    """
    Atomic per-series document counters.

    WHY: Prevent two documents from receiving the same human-readable number
    (INV-000042) under concurrent creation.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("series", name="uq_document_sequences_series"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    series = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "series": self.series,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class ActivityEvent(db.Model):
    """
    Append-only log of workflow events.

    Events are written in the same transaction as the change they describe and are
    never updated or deleted.
    """
    __tablename__ = "activity_events"
    __table_args__ = (
        db.Index("ix_activity_events_entity", "entity_type", "entity_id"),
        db.Index("ix_activity_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.Text, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
