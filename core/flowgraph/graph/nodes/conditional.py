"""Conditional node: routes its input to the first condition that holds."""

import logging
from typing import Any

from flowgraph.graph.node import ConditionalConfig, NodeType
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome

logger = logging.getLogger(__name__)

FALSY_STRINGS = {"false", "null", "undefined", "0"}


def is_truthy(value: Any) -> bool:
    """
    Truthiness of a resolved expression.

    ``"true"`` holds; ``"false"``, ``"null"``, ``"undefined"``, ``"0"`` and
    blank strings do not; any other non-empty string holds. Comparison is
    case-insensitive. This is a heuristic, not an expression language.
    """
    if value is None:
        return False
    text = value if isinstance(value, str) else str(value)
    if not text.strip():
        return False
    return text.lower() not in FALSY_STRINGS


class ConditionalHandler(NodeHandler):
    node_type = NodeType.CONDITIONAL
    default_error = "Conditional node execution failed"
    config_model = ConditionalConfig

    def choose_handle(self, config: ConditionalConfig, ctx: NodeContext) -> str:
        for condition in config.conditions:
            if not condition.enabled or not condition.expression or not condition.output_handle_id:
                continue
            if is_truthy(ctx.resolve(condition.expression)):
                return condition.output_handle_id
        return config.default_output_handle_id

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: ConditionalConfig = self.load_config(ctx.node)
        handle = self.choose_handle(config, ctx)
        logger.info(f"   ↳ Branch '{handle}' chosen", extra={"handle": handle})
        return NodeOutcome.success(ctx.input_data, handle=handle)
