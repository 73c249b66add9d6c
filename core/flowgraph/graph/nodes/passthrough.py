"""Handlers that forward their input unchanged: json and delay."""

import asyncio
import logging

from flowgraph.graph.node import DelayConfig, NodeType
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome

logger = logging.getLogger(__name__)


class JsonHandler(NodeHandler):
    """Shows its input on the node itself and forwards it."""

    node_type = NodeType.JSON
    default_error = "JSON node execution failed"

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        ctx.update_data({"inputData": ctx.input_data})
        return NodeOutcome.success(ctx.input_data)


class DelayHandler(NodeHandler):
    node_type = NodeType.DELAY
    default_error = "Delay execution failed"
    config_model = DelayConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: DelayConfig = self.load_config(ctx.node)
        delay_ms = max(config.delay_ms, 0)
        logger.debug(f"Delaying node '{ctx.node_id}' for {delay_ms}ms")
        await asyncio.sleep(delay_ms / 1000)
        return NodeOutcome.success(ctx.input_data)
