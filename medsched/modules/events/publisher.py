import logging
from datetime import datetime, timezone
from medsched.platform.provider_registry import registry

log = logging.getLogger("event.publisher")

TOPIC = "medsched.events"

APPT_BOOKED = "APPT_BOOKED"
APPT_UPDATED = "APPT_UPDATED"
APPT_STATUS_CHANGED = "APPT_STATUS_CHANGED"
APPT_DELETED = "APPT_DELETED"
BASKET_ITEM_ADDED = "BASKET_ITEM_ADDED"
BASKET_ITEM_EXPIRED = "BASKET_ITEM_EXPIRED"
BASKET_ITEM_REMOVED = "BASKET_ITEM_REMOVED"
BASKET_RELEASE_FAILED = "BASKET_RELEASE_FAILED"
BASKET_CHECKED_OUT = "BASKET_CHECKED_OUT"

async def publish_event(event_type: str, subject_type: str, subject_id: str, payload: dict, message: str | None = None):
    """Fire-and-forget outcome notification; a failing bus never fails the operation that raised the event."""
    bus = registry.event_bus()
    try:
        await bus.publish(topic=TOPIC, key=str(subject_id or "-"), value={
            "event_type": event_type,
            "subject": {"type": subject_type, "id": str(subject_id)},
            "payload": payload,
            "message": message,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        })
    except Exception:
        log.exception(f"Publish failed for {event_type} {subject_type}/{subject_id}")
