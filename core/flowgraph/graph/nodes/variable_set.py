"""Variable-set node: writes a resolved value to the run context or the environment."""

import logging

from flowgraph.graph.node import NodeType, SaveToEnvironment, VariableSetConfig
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome
from flowgraph.graph.resolver import stringify

logger = logging.getLogger(__name__)


class VariableSetHandler(NodeHandler):
    """
    Sets ``variableName`` to the resolved ``variableValue``.

    ``flowContext`` writes straight into the run's ExecutionContext, so
    downstream nodes can read ``{{context.NAME}}``. ``selectedEnvironment``
    leaves the context alone and attaches a ``saveToEnvironment``
    instruction to the result instead.
    """

    node_type = NodeType.VARIABLE_SET
    default_error = "Variable Set node execution failed"
    config_model = VariableSetConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: VariableSetConfig = self.load_config(ctx.node)
        name = (config.variable_name or "").strip()
        if not name:
            raise ValueError("Variable Name is required.")

        raw_value = "" if config.variable_value is None else stringify(config.variable_value)
        value = ctx.resolve(raw_value)

        if config.target == "selectedEnvironment":
            save = SaveToEnvironment(
                variable_name=name, value=value, is_secret=config.mark_as_secret
            )
            logger.info(f"   Requesting environment save of '{name}'")
            return NodeOutcome.success(ctx.input_data, save_to_environment=save)

        await ctx.set_context_var(name, value)
        return NodeOutcome.success(ctx.input_data)
