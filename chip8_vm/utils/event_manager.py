"""
Event bus for virtual machine notifications.

Chip8System publishes lifecycle, program and output events here so that
frontends, tracers and tests can observe the machine without being wired into
it. Events are dispatched synchronously on the publishing thread, which for
VIDEO_FRAME and AUDIO_BEEP is the execution thread.
"""

import logging
import threading
import time
from typing import Dict, List, Callable, Any, Optional, Set
from enum import Enum, auto
from collections import defaultdict

logger = logging.getLogger("Chip8VM.EventManager")

class EventPriority(Enum):
    """Handler priority; higher priorities are called first."""
    LOW = auto()
    NORMAL = auto()
    HIGH = auto()
    CRITICAL = auto()

class EventType(Enum):
    """Types of virtual machine events."""
    # Lifecycle
    SYSTEM_START = auto()
    SYSTEM_STOP = auto()
    SYSTEM_RESET = auto()
    SYSTEM_FAULT = auto()

    # Program
    ROM_LOADED = auto()

    # Output
    VIDEO_FRAME = auto()
    AUDIO_BEEP = auto()

    # Free for frontends
    CUSTOM = auto()

class Event:
    """
    A published event.

    A handler may set ``handled`` to stop delivery to the handlers after it.
    """

    def __init__(self, event_type: EventType,
                 source: str,
                 payload: Optional[Dict[str, Any]] = None,
                 timestamp: Optional[float] = None):
        self.type = event_type
        self.source = source
        self.payload = payload or {}
        self.timestamp = timestamp or time.time()
        self.handled = False

    def __str__(self) -> str:
        return f"Event({self.type.name}, source={self.source}, payload={self.payload})"

EventHandler = Callable[[Event], None]

PRIORITY_ORDER = [
    EventPriority.CRITICAL,
    EventPriority.HIGH,
    EventPriority.NORMAL,
    EventPriority.LOW
]

class EventManager:
    """
    Registry of event handlers with a bounded event history.

    A handler that raises is logged and skipped; the exception never reaches
    the code that published the event.
    """

    def __init__(self, max_history: int = 100):
        """
        Initialize the event manager.

        Args:
            max_history: Number of past events to keep
        """
        self.handlers: Dict[EventType, Dict[EventPriority, List[EventHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

        self.event_history: List[Event] = []
        self.max_history = max_history
        # Empty means every type is kept
        self.history_filters: Set[EventType] = set()

        self.stats = {
            "events_triggered": 0,
            "events_handled": 0,
            "handlers_called": 0
        }

        self._lock = threading.RLock()

    def register_handler(self, event_type: EventType,
                         handler: EventHandler,
                         priority: EventPriority = EventPriority.NORMAL) -> None:
        with self._lock:
            self.handlers[event_type][priority].append(handler)
        logger.debug(f"Registered {priority.name} handler for {event_type.name}")

    def unregister_handler(self, event_type: EventType,
                           handler: EventHandler) -> bool:
        """
        Remove a handler.

        Returns:
            True if the handler was registered for ``event_type``
        """
        with self._lock:
            for handlers in self.handlers[event_type].values():
                if handler in handlers:
                    handlers.remove(handler)
                    return True
        return False

    def trigger_event(self, event: Event) -> bool:
        """
        Record an event and deliver it to its handlers in priority order.

        Returns:
            True if at least one handler ran without raising
        """
        with self._lock:
            self.stats["events_triggered"] += 1

            if not self.history_filters or event.type in self.history_filters:
                self.event_history.append(event)
                if len(self.event_history) > self.max_history:
                    del self.event_history[:-self.max_history]

            # Handlers may (un)register while being called
            snapshot = [list(self.handlers[event.type][priority]) for priority in PRIORITY_ORDER]

        handled = False

        for handlers in snapshot:
            for handler in handlers:
                try:
                    handler(event)
                    handled = True
                    with self._lock:
                        self.stats["handlers_called"] += 1
                except Exception as e:
                    logger.error(f"Error in event handler for {event.type.name}: {e}")

                if event.handled:
                    break

            if event.handled:
                break

        if handled:
            with self._lock:
                self.stats["events_handled"] += 1

        return handled

    def create_event(self, event_type: EventType,
                     source: str,
                     payload: Optional[Dict[str, Any]] = None) -> Event:
        """Build an event and trigger it."""
        event = Event(event_type, source, payload)
        self.trigger_event(event)
        return event

    def clear_handlers(self, event_type: Optional[EventType] = None) -> None:
        """Remove the handlers for one event type, or all of them."""
        with self._lock:
            if event_type is None:
                self.handlers.clear()
            else:
                self.handlers[event_type].clear()

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return self.stats.copy()

    def get_event_history(self, event_type: Optional[EventType] = None) -> List[Event]:
        with self._lock:
            if event_type is None:
                return list(self.event_history)
            return [e for e in self.event_history if e.type == event_type]

    def set_history_filter(self, event_types: List[EventType]) -> None:
        """Only keep events of these types in the history (empty list keeps all)."""
        with self._lock:
            self.history_filters = set(event_types)

    def clear_history(self) -> None:
        with self._lock:
            self.event_history.clear()

    def register_logger(self,
                        event_types: List[EventType],
                        log_level: int = logging.INFO) -> None:
        """Log every event of the given types at ``log_level``."""
        def event_logger(event: Event) -> None:
            logger.log(log_level, f"Event: {event}")

        for event_type in event_types:
            self.register_handler(event_type, event_logger, EventPriority.LOW)
