"""Runtime state and lifecycle events for flow runs."""

from flowgraph.runtime.event_bus import EventBus, EventType, FlowEvent
from flowgraph.runtime.run_state import ConfigSink, ResultSink, RunState

__all__ = [
    "ConfigSink",
    "EventBus",
    "EventType",
    "FlowEvent",
    "ResultSink",
    "RunState",
]
