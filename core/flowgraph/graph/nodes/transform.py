"""Transform node: builds a new object from JSONPath -> property path mappings."""

from typing import Any

from flowgraph.graph.jsonpath import find_unwrapped, set_path
from flowgraph.graph.node import NodeType, TransformConfig
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome


class TransformHandler(NodeHandler):
    node_type = NodeType.TRANSFORM
    default_error = "Transform node execution failed"
    config_model = TransformConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: TransformConfig = self.load_config(ctx.node)
        if not isinstance(ctx.input_data, dict | list):
            raise ValueError("Input data is missing or not an object.")

        output: dict[str, Any] = {}
        for rule in config.mapping_rules:
            if not rule.enabled or not rule.input_path.strip() or not rule.output_path.strip():
                continue
            input_path = ctx.resolve(rule.input_path)
            output_path = ctx.resolve(rule.output_path)
            # No match -> None, one match -> the value, several -> a list
            set_path(output, output_path, find_unwrapped(input_path, ctx.input_data))

        return NodeOutcome.success(output)
