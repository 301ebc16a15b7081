import logging
from typing import Any, Dict, List, Protocol, Tuple

logger = logging.getLogger(__name__)

INVENTORY_UPDATE = "inventory_update"
GOOD_OUT_REQUEST_CREATED = "good_out_request_created"
GOOD_OUT_REQUEST_APPROVED = "good_out_request_approved"
GOOD_OUT_REQUEST_REJECTED = "good_out_request_rejected"


class EventPublisher(Protocol):
    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingEventPublisher:
    """Default sink: writes each event to the log."""

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        logger.info("event=%s action=%s", event, payload.get("action", "-"))


class InMemoryEventPublisher:
    """Keeps published events in order; used by tests and local debugging."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


def publish_safely(publisher: EventPublisher, event: str, payload: Dict[str, Any]) -> None:
    """Deliver an event after commit; a failing sink never fails the caller."""
    if publisher is None:
        return
    try:
        publisher.publish(event, payload)
    except Exception:
        logger.exception("Event sink failed for %s", event)
