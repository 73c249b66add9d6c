"""
Edge Protocol - How nodes connect in a flow.

An edge listens to one named output ("handle") of its source node:
- ``output``: the default handle every node emits on success
- a condition's ``outputHandleId`` or the default id: emitted by conditionals
- ``loopBody`` (once per item) and ``loopEnd`` (once): emitted by loops

Several edges may share a ``(source, sourceHandle)`` pair; all of them fire.
"""

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from flowgraph.graph.node import DEFAULT_HANDLE, ConditionalConfig, NodeSpec, NodeType


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Default output
        EdgeSpec(id="e1", source="get-user", target="pick-id")

        # Branch of a conditional node
        EdgeSpec(id="e2", source="is-admin", target="notify", source_handle="yes")
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    source_handle: str | None = Field(
        default=None,
        description="Named output of the source node this edge listens to",
    )
    target_handle: str | None = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}

    @property
    def handle(self) -> str:
        """The source handle, falling back to the default output."""
        return self.source_handle or DEFAULT_HANDLE


class GraphSpec(BaseModel):
    """
    Immutable snapshot of one flow's nodes and edges for a run.

    Example:
        GraphSpec(
            id="users-flow",
            nodes=[NodeSpec(id="a", type="json"), NodeSpec(id="b", type="delay")],
            edges=[EdgeSpec(id="a-b", source="a", target="b")],
        )
    """

    id: str = ""
    name: str = ""
    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    @field_validator("nodes", "edges", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_outgoing_edges(self, node_id: str, handle: str | None = None) -> list[EdgeSpec]:
        """Edges leaving ``node_id`` in snapshot order, optionally for one handle."""
        return [
            e for e in self.edges if e.source == node_id and (handle is None or e.handle == handle)
        ]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges entering a node."""
        return [e for e in self.edges if e.target == node_id]

    def root_nodes(self) -> list[NodeSpec]:
        """Nodes without an incoming edge, in snapshot order."""
        targets = {e.target for e in self.edges}
        return [n for n in self.nodes if n.id not in targets]

    def validate_structure(self) -> list[str]:
        """Validate the graph structure. Returns human-readable problems."""
        errors = []

        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node ID: '{node.id}'")
            seen.add(node.id)
            if node.node_type is None:
                errors.append(f"Node '{node.id}' has unknown type '{node.type}'")

        for edge in self.edges:
            if not self.get_node(edge.source):
                errors.append(f"Edge '{edge.id}' references missing source '{edge.source}'")
            if not self.get_node(edge.target):
                errors.append(f"Edge '{edge.id}' references missing target '{edge.target}'")

        for node in self.nodes:
            if node.node_type != NodeType.CONDITIONAL:
                continue
            try:
                config = ConditionalConfig.model_validate(node.data)
            except ValidationError as e:
                errors.append(f"Conditional node '{node.id}' has invalid configuration: {e}")
                continue
            handles = {c.output_handle_id for c in config.conditions}
            handles.add(config.default_output_handle_id)
            for edge in self.get_outgoing_edges(node.id):
                if edge.handle not in handles:
                    errors.append(
                        f"Edge '{edge.id}' listens to handle '{edge.handle}' "
                        f"which conditional node '{node.id}' never emits"
                    )

        if self.nodes and not self.root_nodes():
            errors.append("Flow has no root node (every node has an incoming edge)")

        return errors
