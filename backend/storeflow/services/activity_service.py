# Overview: Append-only workflow activity events.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import ActivityEvent


def append_activity_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> ActivityEvent:
    """
    Record a workflow event in the caller's transaction.

    No updates or deletes of existing events. occurred_at defaults to now.
    """
    ev = ActivityEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        note=note,
    )
    if occurred_at is not None:
        ev.occurred_at = occurred_at
    db.session.add(ev)
    db.session.flush()
    return ev


def list_activity_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 200,
) -> list[ActivityEvent]:
    query = db.session.query(ActivityEvent)
    if entity_type:
        query = query.filter(ActivityEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityEvent.entity_id == entity_id)
    return query.order_by(ActivityEvent.occurred_at.desc(), ActivityEvent.id.desc()).limit(limit).all()
