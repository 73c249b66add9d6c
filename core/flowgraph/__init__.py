"""
Flowgraph - execution runtime for visual API flows.

A flow is a graph of typed nodes (HTTP request, JSON, select-fields,
delay, variable-set, transform, conditional, loop, export) connected by
edges on named output handles. The runtime walks it depth-first from its
roots, resolving ``{{...}}`` templates against the environment, the run
context and upstream node results.

Example:
    from flowgraph import FlowExecutor, GraphSpec

    graph = GraphSpec.model_validate(flow_json)
    result = await FlowExecutor().run_flow(graph)
"""

from flowgraph.config import RuntimeConfig
from flowgraph.environment import (
    Environment,
    EnvironmentStore,
    EnvironmentVariable,
    InMemoryEnvironmentStore,
)
from flowgraph.graph import (
    EdgeSpec,
    GraphSpec,
    NodeResult,
    NodeSpec,
    NodeStatus,
    NodeType,
    VariableResolver,
)
from flowgraph.graph.dispatcher import Dispatcher
from flowgraph.graph.executor import ExecutionResult, FlowExecutor
from flowgraph.runtime import EventBus, EventType, FlowEvent, RunState

__version__ = "0.1.0"

__all__ = [
    "Dispatcher",
    "EdgeSpec",
    "Environment",
    "EnvironmentStore",
    "EnvironmentVariable",
    "EventBus",
    "EventType",
    "ExecutionResult",
    "FlowEvent",
    "FlowExecutor",
    "GraphSpec",
    "InMemoryEnvironmentStore",
    "NodeResult",
    "NodeSpec",
    "NodeStatus",
    "NodeType",
    "RunState",
    "RuntimeConfig",
    "VariableResolver",
]
