"""Graph structures: Nodes, Edges, JSONPath helpers and the variable resolver."""

from flowgraph.graph.edge import EdgeSpec, GraphSpec
from flowgraph.graph.jsonpath import JsonPathError, find_all, find_first, set_path
from flowgraph.graph.node import (
    DEFAULT_HANDLE,
    LOOP_BODY_HANDLE,
    LOOP_END_HANDLE,
    NodeResult,
    NodeSpec,
    NodeStatus,
    NodeType,
    SaveToEnvironment,
)
from flowgraph.graph.resolver import VariableResolver, stringify

__all__ = [
    "DEFAULT_HANDLE",
    "LOOP_BODY_HANDLE",
    "LOOP_END_HANDLE",
    "EdgeSpec",
    "GraphSpec",
    "JsonPathError",
    "NodeResult",
    "NodeSpec",
    "NodeStatus",
    "NodeType",
    "SaveToEnvironment",
    "VariableResolver",
    "find_all",
    "find_first",
    "set_path",
    "stringify",
]
