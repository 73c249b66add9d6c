"""Loop node: runs its ``loopBody`` branch once per item, then ``loopEnd`` once."""

import json
import logging
from typing import Any

from flowgraph.graph.jsonpath import find_all
from flowgraph.graph.node import LOOP_BODY_HANDLE, LOOP_END_HANDLE, LoopConfig, NodeResult, NodeType
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome

logger = logging.getLogger(__name__)


def items_to_iterate(path: str, data: Any) -> list[Any]:
    """
    The array a loop walks over.

    The list of matches is the array; a single match that is itself a list
    is walked directly. A single non-list match is an error.
    """
    matches = find_all(path, data)
    if len(matches) != 1:
        return matches
    value = matches[0]
    if isinstance(value, list):
        return value
    preview = json.dumps(value, default=str)[:100]
    raise ValueError(
        f'Resolved path "{path}" did not return an array. '
        f"Got type: {type(value).__name__}, value: {preview}..."
    )


class LoopHandler(NodeHandler):
    """
    Iterates sequentially: each item's whole downstream subtree finishes
    before the next item is dispatched. ``loopEnd`` receives the original
    input once every iteration is done.
    """

    node_type = NodeType.LOOP
    default_error = "Unknown error during loop execution"
    config_model = LoopConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: LoopConfig = self.load_config(ctx.node)
        path = ctx.resolve(config.input_array_path)
        if not path:
            raise ValueError("Input array path is not defined or could not be resolved.")

        items = items_to_iterate(path, ctx.input_data)
        logger.info(f"   ⟳ Looping over {len(items)} item(s)")

        for index, item in enumerate(items):
            logger.debug(f"Loop '{ctx.node_id}' iteration {index + 1}/{len(items)}")
            await ctx.dispatch(LOOP_BODY_HANDLE, item)

        return NodeOutcome(
            result=NodeResult.success({"itemCount": len(items)}),
            routes=[(LOOP_END_HANDLE, ctx.input_data)],
        )
