"""Synchronous in-process bus for flight domain events."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)

FlightEventHandler = Callable[[BaseModel], None]


class EventBus:
    """Publish/subscribe bus for flight domain events.

    Handlers run synchronously, in registration order, inside the request
    that changed the schedule, so the audit trail is written before the
    response goes out. A handler that raises propagates to the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type[BaseModel], list[FlightEventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type[BaseModel], handler: FlightEventHandler) -> None:
        self._subscribers[event_type].append(handler)

    def publish(self, event: BaseModel) -> None:
        handlers = self._subscribers.get(type(event), [])
        # ConflictDetected may concern a booking that has no flight id yet.
        flight_id = getattr(event, "flight_id", None) or "(unsaved)"
        logger.debug(
            "%s for flight %s -> %d handler(s)",
            type(event).__name__,
            flight_id,
            len(handlers),
        )
        for handler in handlers:
            handler(event)
