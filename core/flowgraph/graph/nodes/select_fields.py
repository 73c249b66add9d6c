"""Select-fields node: gathers the matches of several JSONPaths into one list."""

from typing import Any

from flowgraph.graph.jsonpath import JsonPathError, find_all
from flowgraph.graph.node import NodeType, SelectFieldsConfig
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome


def select(path: str, data: Any) -> list[Any]:
    """
    Values selected by one path, ready to be concatenated.

    A single match that is a list is spread, like several matches are.
    """
    matches = find_all(path, data)
    if len(matches) == 1:
        value = matches[0]
        return list(value) if isinstance(value, list) else [value]
    return matches


class SelectFieldsHandler(NodeHandler):
    node_type = NodeType.SELECT_FIELDS
    default_error = "SelectFields node execution failed"
    config_model = SelectFieldsConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: SelectFieldsConfig = self.load_config(ctx.node)
        if not isinstance(ctx.input_data, dict | list):
            raise ValueError("Input data must be a JSON object or array.")

        combined: list[Any] = []
        for entry in config.json_paths:
            if not entry.enabled or not entry.path.strip():
                continue
            path = ctx.resolve(entry.path)
            if not path:
                raise ValueError(f'Failed to resolve variables in path: "{entry.path}"')
            try:
                combined.extend(select(path, ctx.input_data))
            except JsonPathError as e:
                raise JsonPathError(f'Error executing JSONPath "{path}": {e}') from e

        return NodeOutcome.success(combined)
