"""
Event Bus - Pub/sub for run lifecycle events.

Lets observers (a canvas, a log shipper, a test) follow a run while it is
in progress:
- Node status transitions as they are recorded
- Edges as the dispatcher traverses them
- Context writes and environment save requests
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"

    # Node lifecycle
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    NODE_FAILED = "node_failed"
    NODE_SKIPPED = "node_skipped"

    # Dispatch
    EDGE_TRAVERSED = "edge_traversed"

    # Variables
    CONTEXT_VARIABLE_SET = "context_variable_set"
    ENVIRONMENT_SAVE_REQUESTED = "environment_save_requested"

    # Custom events
    CUSTOM = "custom"


@dataclass
class FlowEvent:
    """An event emitted during a run."""

    type: EventType
    run_id: str
    node_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "run_id": self.run_id,
            "node_id": self.node_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Type for event handlers
EventHandler = Callable[[FlowEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_run: str | None = None  # Only receive events from this run
    filter_node: str | None = None  # Only receive events from this node


class EventBus:
    """
    Pub/sub event bus for run observers.

    Features:
    - Async event handling
    - Type-based subscriptions
    - Run/node filtering
    - Event history for debugging

    Example:
        bus = EventBus()

        async def on_failed(event: FlowEvent):
            print(f"{event.node_id} failed: {event.data['error']}")

        bus.subscribe(event_types=[EventType.NODE_FAILED], handler=on_failed)
        executor = FlowExecutor(event_bus=bus)
    """

    def __init__(
        self,
        max_history: int = 1000,
        max_concurrent_handlers: int = 10,
    ):
        """
        Initialize event bus.

        Args:
            max_history: Maximum events to keep in history
            max_concurrent_handlers: Maximum concurrent handler executions
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[FlowEvent] = []
        self._max_history = max_history
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._subscription_counter = 0
        self._lock = asyncio.Lock()

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_run: str | None = None,
        filter_node: str | None = None,
    ) -> str:
        """
        Subscribe to events.

        Args:
            event_types: Types of events to receive
            handler: Async function to call when event occurs
            filter_run: Only receive events from this run
            filter_node: Only receive events from this node

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"

        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
            filter_run=filter_run,
            filter_node=filter_node,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns True if it existed."""
        return self._subscriptions.pop(subscription_id, None) is not None

    async def publish(self, event: FlowEvent) -> None:
        """Publish an event to all matching subscribers."""
        async with self._lock:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history = self._event_history[-self._max_history :]

        matching_handlers = [
            s.handler for s in self._subscriptions.values() if self._matches(s, event)
        ]
        if matching_handlers:
            await self._execute_handlers(event, matching_handlers)

    def _matches(self, subscription: Subscription, event: FlowEvent) -> bool:
        """Check if a subscription matches an event."""
        if event.type not in subscription.event_types:
            return False
        if subscription.filter_run and subscription.filter_run != event.run_id:
            return False
        if subscription.filter_node and subscription.filter_node != event.node_id:
            return False
        return True

    async def _execute_handlers(
        self,
        event: FlowEvent,
        handlers: list[EventHandler],
    ) -> None:
        """Execute handlers concurrently with rate limiting."""

        async def run_handler(handler: EventHandler) -> None:
            async with self._semaphore:
                try:
                    await handler(event)
                except Exception as e:
                    logger.error(f"Handler error for {event.type}: {e}")

        await asyncio.gather(*[run_handler(h) for h in handlers], return_exceptions=True)

    # === CONVENIENCE PUBLISHERS ===

    async def emit_run_started(self, run_id: str, flow_id: str, root_ids: list[str]) -> None:
        await self.publish(
            FlowEvent(
                type=EventType.RUN_STARTED,
                run_id=run_id,
                data={"flow_id": flow_id, "roots": root_ids},
            )
        )

    async def emit_run_completed(
        self, run_id: str, success: bool, failed_nodes: list[str]
    ) -> None:
        await self.publish(
            FlowEvent(
                type=EventType.RUN_COMPLETED,
                run_id=run_id,
                data={"success": success, "failed_nodes": failed_nodes},
            )
        )

    async def emit_node_status(
        self,
        run_id: str,
        node_id: str,
        status: str,
        error: str | None = None,
        latency_ms: int | None = None,
    ) -> None:
        """Emit the event matching a node status transition."""
        if status == "loading":
            event_type = EventType.NODE_STARTED
        elif status == "error":
            event_type = EventType.NODE_FAILED
        else:
            event_type = EventType.NODE_COMPLETED
        data: dict[str, Any] = {"status": status}
        if error is not None:
            data["error"] = error
        if latency_ms is not None:
            data["latency_ms"] = latency_ms
        await self.publish(FlowEvent(type=event_type, run_id=run_id, node_id=node_id, data=data))

    async def emit_node_skipped(self, run_id: str, node_id: str, reason: str) -> None:
        await self.publish(
            FlowEvent(
                type=EventType.NODE_SKIPPED,
                run_id=run_id,
                node_id=node_id,
                data={"reason": reason},
            )
        )

    async def emit_edge_traversed(
        self, run_id: str, edge_id: str, source: str, target: str, handle: str
    ) -> None:
        await self.publish(
            FlowEvent(
                type=EventType.EDGE_TRAVERSED,
                run_id=run_id,
                node_id=target,
                data={"edge_id": edge_id, "source": source, "target": target, "handle": handle},
            )
        )

    async def emit_context_variable_set(self, run_id: str, node_id: str, key: str) -> None:
        await self.publish(
            FlowEvent(
                type=EventType.CONTEXT_VARIABLE_SET,
                run_id=run_id,
                node_id=node_id,
                data={"key": key},
            )
        )

    async def emit_environment_save_requested(
        self, run_id: str, node_id: str, key: str, is_secret: bool
    ) -> None:
        # The value is deliberately left out: it may be a secret
        await self.publish(
            FlowEvent(
                type=EventType.ENVIRONMENT_SAVE_REQUESTED,
                run_id=run_id,
                node_id=node_id,
                data={"key": key, "is_secret": is_secret},
            )
        )

    # === QUERY OPERATIONS ===

    def get_history(
        self,
        event_type: EventType | None = None,
        run_id: str | None = None,
        node_id: str | None = None,
        limit: int = 100,
    ) -> list[FlowEvent]:
        """
        Get event history, most recent first.

        Args:
            event_type: Filter by event type
            run_id: Filter by run
            node_id: Filter by node
            limit: Maximum events to return
        """
        events = self._event_history[::-1]

        if event_type:
            events = [e for e in events if e.type == event_type]
        if run_id:
            events = [e for e in events if e.run_id == run_id]
        if node_id:
            events = [e for e in events if e.node_id == node_id]

        return events[:limit]

    def get_stats(self) -> dict:
        """Get event bus statistics."""
        type_counts: dict[str, int] = {}
        for event in self._event_history:
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1

        return {
            "total_events": len(self._event_history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": type_counts,
        }

    # === WAITING OPERATIONS ===

    async def wait_for(
        self,
        event_type: EventType,
        run_id: str | None = None,
        node_id: str | None = None,
        timeout: float | None = None,
    ) -> FlowEvent | None:
        """
        Wait for a specific event to occur.

        Returns:
            The event if received, None if timeout
        """
        result: FlowEvent | None = None
        event_received = asyncio.Event()

        async def handler(event: FlowEvent) -> None:
            nonlocal result
            result = event
            event_received.set()

        sub_id = self.subscribe(
            event_types=[event_type],
            handler=handler,
            filter_run=run_id,
            filter_node=node_id,
        )

        try:
            if timeout:
                try:
                    await asyncio.wait_for(event_received.wait(), timeout=timeout)
                except TimeoutError:
                    return None
            else:
                await event_received.wait()

            return result
        finally:
            self.unsubscribe(sub_id)
