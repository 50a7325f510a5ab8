import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from loguru import logger
from sqlmodel import Session, select, func
from freshdock.db.schema import DispatchEvent, DispatchEventType

from freshdock.core.realtime import broker
from freshdock.db.core import engine
from freshdock.models.dispatch import DispatchEventRead


def append_dispatch_event(
    session: Session,
    dispatch_id: uuid.UUID,
    event_type: DispatchEventType,
    user_id: Optional[uuid.UUID],
    role: Optional[str],
    details: Optional[Dict[str, Any]] = None,
) -> DispatchEvent:
    """
    Adds one timeline row inside the caller's transaction.
    Nothing is committed here, so the event lands together with the mutation
    it describes or not at all.
    """
    last_sequence = session.exec(
        select(func.max(DispatchEvent.sequence))
        .where(DispatchEvent.dispatch_id == dispatch_id)
    ).one()

    event = DispatchEvent(
        dispatch_id=dispatch_id,
        sequence=(last_sequence or 0) + 1,
        event_type=event_type,
        triggered_by_user_id=user_id,
        triggered_by_role=role or "anonymous",
        details=details or {},
        created_at=datetime.utcnow(),
    )
    session.add(event)
    session.flush()
    return event


def _publish_events(events: List[DispatchEventRead]):
    """
    Background worker: pushes committed events to live subscribers.
    """
    for event in events:
        try:
            broker.publish(event)
        except Exception:
            logger.exception(
                f"Realtime publish failed for event {event.id} on dispatch {event.dispatch_id}")


def _perform_event_log(
    dispatch_id: uuid.UUID,
    event_type: DispatchEventType,
    user_id: Optional[uuid.UUID],
    role: Optional[str],
    details: Dict[str, Any],
):
    """
    Background worker for fire-and-forget events (e.g. status link scans).
    Creates its OWN session using the global engine.
    """
    try:
        with Session(engine) as session:
            event = append_dispatch_event(
                session, dispatch_id, event_type, user_id, role, details)
            session.commit()
            session.refresh(event)
            read = DispatchEventRead.model_validate(event)

        _publish_events([read])

    except Exception:
        # Never surfaces to the caller; the primary response has already gone out
        logger.exception(
            f"Event log failed: {event_type.value} on dispatch {dispatch_id}")
