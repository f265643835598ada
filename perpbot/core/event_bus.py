"""
Event Bus: structured event distribution for client and bot activity.

The client and the volume bot publish lifecycle events (authentication,
bot start/stop, order results, stale-order sweeps, swaps) here instead of
writing to the console. External collaborators such as a UI, a status
poller or a metrics exporter subscribe to the types they care about.

Features:
- Sync and async handlers
- Priority-based handler execution
- Error isolation (one handler failure doesn't stop others)
- Bounded event history for debugging
- Non-blocking publish from inside the bot loop
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Coroutine, Dict, List, Optional, Union

log = logging.getLogger("perpbot")


class EventType(Enum):
    """
    Event types supported by the event bus.

    Naming convention: NOUN_VERB for state changes.
    """
    # Session events
    AUTH_COMPLETED = auto()       # Bearer token obtained
    AUTH_FAILED = auto()          # Handshake aborted at some stage

    # Bot lifecycle
    BOT_STARTED = auto()
    BOT_STOPPED = auto()

    # Order activity
    ORDER_PLACED = auto()         # Venue accepted the HTTP request
    ORDER_FAILED = auto()         # Placement raised
    SWEEP_COMPLETED = auto()      # Stale orders cancelled (or none found)
    SWEEP_FAILED = auto()
    ITERATION_FAILED = auto()     # Whole iteration aborted, loop cooling down

    # Swap
    SWAP_COMPLETED = auto()


@dataclass
class Event:
    """
    Event container.

    All events have:
    - type: EventType enum value
    - data: Dict with event-specific payload
    - timestamp_ms: When event was created
    - source: Where event originated (optional)
    """
    type: EventType
    data: Dict[str, Any]
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    source: Optional[str] = None

    def __str__(self) -> str:
        return f"Event({self.type.name}, ts={self.timestamp_ms}, source={self.source})"


# Handler type: async function or sync function taking Event
Handler = Union[
    Callable[[Event], Coroutine[Any, Any, None]],
    Callable[[Event], None],
]


@dataclass
class Subscription:
    """Internal subscription record."""
    handler: Handler
    priority: int = 0  # Higher = called first
    filter_fn: Optional[Callable[[Event], bool]] = None
    name: Optional[str] = None


class EventBus:
    """
    Central event bus.

    Usage:
        bus = EventBus()
        bus.subscribe(EventType.ORDER_PLACED, on_order)

        # background dispatch
        task = asyncio.create_task(bus.start())
        ...
        bus.stop()

    Events are queued by publish()/publish_sync() and delivered by the
    start() loop, or synchronously via drain() (useful in tests).
    """

    DEFAULT_HISTORY_SIZE = 1000
    # bounded so a bus nobody drains cannot grow without limit
    DEFAULT_QUEUE_SIZE = 10_000

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._subscribers: Dict[EventType, List[Subscription]] = {}
        self._global_subscribers: List[Subscription] = []

        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=max(queue_size, 0))
        self._running = False

        self._history_size = history_size
        self._history: List[Event] = []

        self._stats = {
            "events_published": 0,
            "events_processed": 0,
            "events_dropped": 0,
            "handler_errors": 0,
        }

    # -------------------------------------------------------------------------
    # Subscription Management
    # -------------------------------------------------------------------------

    @staticmethod
    def _insert_sorted(subs: List[Subscription], sub: Subscription) -> None:
        idx = len(subs)
        for i, existing in enumerate(subs):
            if existing.priority < sub.priority:
                idx = i
                break
        subs.insert(idx, sub)

    def subscribe(
        self,
        event_type: EventType,
        handler: Handler,
        priority: int = 0,
        filter_fn: Optional[Callable[[Event], bool]] = None,
        name: Optional[str] = None,
    ) -> Subscription:
        """
        Subscribe to a specific event type.

        Args:
            event_type: Type of events to receive
            handler: Async or sync function to handle events
            priority: Higher priority handlers called first (default 0)
            filter_fn: Optional filter function (receives event, returns bool)
            name: Optional name for debugging

        Returns:
            Subscription object (for unsubscribing)
        """
        sub = Subscription(handler=handler, priority=priority, filter_fn=filter_fn, name=name)
        self._insert_sorted(self._subscribers.setdefault(event_type, []), sub)
        return sub

    def subscribe_all(
        self,
        handler: Handler,
        priority: int = 0,
        filter_fn: Optional[Callable[[Event], bool]] = None,
        name: Optional[str] = None,
    ) -> Subscription:
        """Subscribe to every event type. Global handlers run before typed ones."""
        sub = Subscription(handler=handler, priority=priority, filter_fn=filter_fn, name=name)
        self._insert_sorted(self._global_subscribers, sub)
        return sub

    def unsubscribe(self, event_type: Optional[EventType], subscription: Subscription) -> bool:
        """Remove a subscription. Pass event_type=None for a global one."""
        subs = self._global_subscribers if event_type is None else self._subscribers.get(event_type, [])
        if subscription in subs:
            subs.remove(subscription)
            return True
        return False

    # -------------------------------------------------------------------------
    # Event Publishing
    # -------------------------------------------------------------------------

    async def publish(self, event: Event) -> bool:
        """Queue an event for delivery. Returns False if the queue is full."""
        return self.publish_sync(event)

    def publish_sync(self, event: Event) -> bool:
        """Publish from sync context (non-blocking)."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._stats["events_dropped"] += 1
            if self._stats["events_dropped"] % 1000 == 1:
                log.warning(
                    '{"event":"event_bus_queue_full","type":"%s","dropped":%d}',
                    event.type.name, self._stats["events_dropped"],
                )
            return False
        self._stats["events_published"] += 1
        return True

    def emit(self, event_type: EventType, source: Optional[str] = None, **data: Any) -> bool:
        """Create and publish an event in one call."""
        return self.publish_sync(Event(type=event_type, data=data, source=source))

    # -------------------------------------------------------------------------
    # Event Processing
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Deliver events until stop() is called.

        Should be run as a background task.
        """
        self._running = True
        while self._running:
            try:
                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                await self._process_event(event)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                log.error('{"event":"event_bus_error","error":"%s"}', exc)

    async def _process_event(self, event: Event) -> None:
        if self._history_size > 0:
            self._history.append(event)
            if len(self._history) > self._history_size:
                self._history.pop(0)

        handlers: List[Subscription] = list(self._global_subscribers)
        handlers.extend(self._subscribers.get(event.type, []))

        for sub in handlers:
            if sub.filter_fn and not sub.filter_fn(event):
                continue
            try:
                result = sub.handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._stats["handler_errors"] += 1
                log.error(
                    '{"event":"event_bus_handler_error","type":"%s","handler":"%s","error":"%s"}',
                    event.type.name,
                    sub.name or getattr(sub.handler, "__name__", "unknown"),
                    exc,
                )

        self._stats["events_processed"] += 1

    def stop(self) -> None:
        self._running = False

    async def drain(self) -> int:
        """Deliver every queued event now. Returns the number processed."""
        count = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            await self._process_event(event)
            count += 1
        return count

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def get_history(self, event_type: Optional[EventType] = None, limit: int = 100) -> List[Event]:
        events = self._history
        if event_type:
            events = [e for e in events if e.type == event_type]
        return events[-limit:]

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "queue_size": self._queue.qsize(),
            "history_size": len(self._history),
            "subscriber_count": sum(len(s) for s in self._subscribers.values()),
            "global_subscriber_count": len(self._global_subscribers),
            "running": self._running,
        }
