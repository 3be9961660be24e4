"""
Simple asynchronous event bus delivering lifecycle events to the pricing engine.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from models.events import RetailEvent

logger_event_bus = logging.getLogger(__name__)

EventCallback = Callable[[RetailEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Fire-and-forget pub/sub keyed by event type"""

    def __init__(self):
        self.subscribers: dict[str, list[EventCallback]] = {}

    def subscribe(self, event_type: str, callback: EventCallback) -> None:
        """Subscribe to an event type."""
        if not callable(callback):
            raise TypeError("Callback must be a callable async function.")
        event_type = str(getattr(event_type, "value", event_type))
        handlers = self.subscribers.setdefault(event_type, [])
        if callback in handlers:
            logger_event_bus.warning(f"Callback {_callback_name(callback)} already subscribed to {event_type}")
            return
        handlers.append(callback)
        logger_event_bus.debug(f"Callback {_callback_name(callback)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, callback: EventCallback) -> None:
        """Unsubscribe a specific callback from an event type."""
        event_type = str(getattr(event_type, "value", event_type))
        if event_type not in self.subscribers:
            return
        try:
            self.subscribers[event_type].remove(callback)
        except ValueError:
            logger_event_bus.warning(f"Callback {_callback_name(callback)} not found for event type {event_type}")
            return
        logger_event_bus.debug(f"Callback {_callback_name(callback)} unsubscribed from {event_type}")
        if not self.subscribers[event_type]:
            del self.subscribers[event_type]

    async def publish(self, event: RetailEvent) -> None:
        """Deliver an event to its subscribers. Subscriber errors are logged, never raised."""
        if not isinstance(event, RetailEvent):
            logger_event_bus.error(f"Attempted to publish invalid event type: {type(event)}")
            return

        logger_event_bus.debug(f"Event published: {event.event_type} from {event.source.value}")
        callbacks = list(self.subscribers.get(event.event_type, []))
        if not callbacks:
            return
        tasks = [asyncio.create_task(callback(event)) for callback in callbacks]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for callback, result in zip(callbacks, results):
            if isinstance(result, Exception):
                logger_event_bus.error(
                    f"Error in subscriber callback '{_callback_name(callback)}' for event {event.event_type}: {result}"
                )


def _callback_name(callback: Any) -> str:
    return getattr(callback, "__name__", type(callback).__name__)
