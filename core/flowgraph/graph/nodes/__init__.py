"""
Node handlers, one per NodeType.

``HANDLERS`` is the static type -> handler table the dispatcher uses.
It is checked at import time so that adding a NodeType without a handler
fails immediately.
"""

from flowgraph.graph.node import NodeType
from flowgraph.graph.nodes.base import (
    NodeContext,
    NodeHandler,
    NodeOutcome,
    NodeServices,
    describe_error,
)
from flowgraph.graph.nodes.conditional import ConditionalHandler, is_truthy
from flowgraph.graph.nodes.export import ExportHandler
from flowgraph.graph.nodes.http_request import HttpRequestHandler
from flowgraph.graph.nodes.loop import LoopHandler
from flowgraph.graph.nodes.passthrough import DelayHandler, JsonHandler
from flowgraph.graph.nodes.select_fields import SelectFieldsHandler
from flowgraph.graph.nodes.transform import TransformHandler
from flowgraph.graph.nodes.variable_set import VariableSetHandler

HANDLERS: dict[NodeType, NodeHandler] = {
    handler.node_type: handler
    for handler in (
        HttpRequestHandler(),
        JsonHandler(),
        SelectFieldsHandler(),
        DelayHandler(),
        VariableSetHandler(),
        TransformHandler(),
        ConditionalHandler(),
        LoopHandler(),
        ExportHandler(),
    )
}

_missing = set(NodeType) - HANDLERS.keys()
if _missing:
    raise RuntimeError(f"No handler registered for node types: {sorted(_missing)}")

__all__ = [
    "HANDLERS",
    "ConditionalHandler",
    "DelayHandler",
    "ExportHandler",
    "HttpRequestHandler",
    "JsonHandler",
    "LoopHandler",
    "NodeContext",
    "NodeHandler",
    "NodeOutcome",
    "NodeServices",
    "SelectFieldsHandler",
    "TransformHandler",
    "VariableSetHandler",
    "describe_error",
    "is_truthy",
]
