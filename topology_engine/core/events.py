"""Event emitters for topology assembly."""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Iterable, List, Optional

from topology_engine.core.events_model import TopologyEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENTS = {
    "resource.declared",
    "resource.created",
    "endpoint.resolved",
    "access_rule.applied",
    "topology.published",
    "topology.failed",
}


class EventEmitter(ABC):
    """Abstract event emitter."""
    
    @abstractmethod
    def emit(self, events: Iterable[TopologyEvent]) -> None:
        """Emit one or more events."""
        pass


class LoggingEventEmitter(EventEmitter):
    """Keeps the most recent events in memory and logs them.

    With `max_events` set, the oldest events are dropped once the buffer
    is full.
    """
    
    def __init__(self, max_events: Optional[int] = None):
        self.events = deque(maxlen=max_events)
    
    def emit(self, events: Iterable[TopologyEvent]) -> None:
        for event in events:
            # Validation
            if event.event_type not in ALLOWED_EVENTS:
                raise ValueError(f"Invalid event type: {event.event_type}")
            if not event.topology_name:
                raise ValueError("Event must have topology_name")
            
            self.events.append(event)
            
            logger.info(
                f"[event] {event.event_type} | topology={event.topology_name} "
                f"resource={event.resource_id or '-'}"
            )
    
    def of_type(self, event_type: str) -> List[TopologyEvent]:
        return [e for e in self.events if e.event_type == event_type]


class MultiEventEmitter:
    """Fan-out to multiple emitters."""
    
    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)
    
    def emit(self, events: Iterable[TopologyEvent]):
        """Emit to all emitters."""
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""
    
    def emit(self, events: Iterable[TopologyEvent]) -> None:
        """Do nothing."""
        pass
