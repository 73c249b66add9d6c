"""
Dispatcher - Walks edges from a finished node to the handlers downstream.

Given a source node and one of its output handles, the dispatcher runs
every edge listening to that handle, one after another in snapshot order.
Each target's handler awaits its own downstream dispatch before returning,
so a run is depth-first: the whole subtree behind an edge completes before
the next sibling edge starts.
"""

import logging
from typing import Any

from flowgraph.config import DEFAULT_MAX_DISPATCH_DEPTH
from flowgraph.graph.edge import EdgeSpec, GraphSpec
from flowgraph.graph.node import DEFAULT_HANDLE, NodeResult, NodeSpec, NodeType
from flowgraph.graph.nodes import HANDLERS, NodeContext, NodeHandler, NodeServices
from flowgraph.graph.resolver import VariableResolver
from flowgraph.runtime.run_state import RunState

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Routes node outputs along edges for one run.

    ``depth`` counts nested dispatches from the node that started the run.
    A graph cycle (e.g. a conditional wired back to itself) would recurse
    without end, so a target reached deeper than ``max_depth`` is recorded
    as an error instead of being executed.
    """

    def __init__(
        self,
        graph: GraphSpec,
        run: RunState,
        resolver: VariableResolver,
        services: NodeServices | None = None,
        handlers: dict[NodeType, NodeHandler] | None = None,
        max_depth: int = DEFAULT_MAX_DISPATCH_DEPTH,
    ):
        self.graph = graph
        self.run = run
        self.resolver = resolver
        self.services = services or NodeServices()
        self.handlers = handlers if handlers is not None else HANDLERS
        self.max_depth = max_depth

    def handler_for(self, node: NodeSpec) -> NodeHandler | None:
        node_type = node.node_type
        if node_type is None:
            return None
        return self.handlers.get(node_type)

    async def trigger_next_nodes(
        self,
        source_node_id: str,
        data: Any,
        source_handle: str = DEFAULT_HANDLE,
        depth: int = 1,
    ) -> None:
        """Execute every node connected to ``source_handle`` of the source node."""
        edges = self.graph.get_outgoing_edges(source_node_id, source_handle)
        if not edges:
            logger.debug(f"No edges from '{source_node_id}' on handle '{source_handle}'")
            return

        for edge in edges:
            await self._follow(edge, data, depth)

    async def _follow(self, edge: EdgeSpec, data: Any, depth: int) -> None:
        target = self.graph.get_node(edge.target)
        if target is None:
            logger.warning(f"Edge '{edge.id}' points to missing node '{edge.target}', skipping")
            await self._emit_skipped(edge.target, "missing target node")
            return

        if self.handler_for(target) is None:
            logger.warning(
                f"Edge '{edge.id}' points to node '{target.id}' of unknown type "
                f"'{target.type}', skipping"
            )
            await self._emit_skipped(target.id, f"unknown node type '{target.type}'")
            return

        if depth > self.max_depth:
            message = (
                f"Maximum dispatch depth ({self.max_depth}) exceeded; "
                "the flow probably contains a cycle"
            )
            logger.error(f"   ✗ {message} at node '{target.id}'")
            await self.run.record(target.id, NodeResult.failure(message))
            return

        if self.run.event_bus:
            await self.run.event_bus.emit_edge_traversed(
                self.run.run_id, edge.id, edge.source, edge.target, edge.handle
            )
        await self.execute_node(target, data, depth)

    async def execute_node(self, node: NodeSpec, input_data: Any, depth: int = 0) -> NodeResult:
        """Run one node's handler, which drives its own downstream edges."""
        handler = self.handler_for(node)
        if handler is None:
            message = f"Unsupported node type '{node.type}'"
            logger.error(f"   ✗ {message} for node '{node.id}'")
            result = NodeResult.failure(message)
            await self.run.record(node.id, result)
            return result

        ctx = NodeContext(
            node=node,
            input_data=input_data,
            run=self.run,
            resolver=self.resolver,
            dispatcher=self,
            services=self.services,
            depth=depth,
        )
        return await handler.execute(ctx)

    async def _emit_skipped(self, node_id: str, reason: str) -> None:
        if self.run.event_bus:
            await self.run.event_bus.emit_node_skipped(self.run.run_id, node_id, reason)
