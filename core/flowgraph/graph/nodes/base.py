"""
Node handler lifecycle.

Every handler follows the same steps, implemented once in
``NodeHandler.execute``:

1. record ``loading``
2. ``run()`` the type-specific work (resolving templated fields first)
3. record the terminal ``success`` or ``error`` result
4. on success, dispatch each route (handle, data) the handler asked for

``run()`` raises on failure; ``execute()`` turns any exception into an
error result, so nothing propagates past a handler.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from flowgraph.graph.edge import GraphSpec
from flowgraph.graph.node import DEFAULT_HANDLE, NodeResult, NodeSpec, NodeType
from flowgraph.graph.resolver import VariableResolver
from flowgraph.observability.logging import set_trace_context, trace_context
from flowgraph.runtime.run_state import RunState

if TYPE_CHECKING:
    from flowgraph.export.sinks import DownloadSink
    from flowgraph.export.worker import ExportWorkerFactory
    from flowgraph.graph.dispatcher import Dispatcher
    from flowgraph.proxy.base import HttpProxy

logger = logging.getLogger(__name__)


@dataclass
class NodeServices:
    """External collaborators handlers may call."""

    proxy: "HttpProxy | None" = None
    export_worker_factory: "ExportWorkerFactory | None" = None
    download_sink: "DownloadSink | None" = None


@dataclass
class NodeContext:
    """Everything a handler needs to execute one node once."""

    node: NodeSpec
    input_data: Any
    run: RunState
    resolver: VariableResolver
    dispatcher: "Dispatcher"
    services: NodeServices = field(default_factory=NodeServices)
    depth: int = 0

    @property
    def node_id(self) -> str:
        return self.node.id

    @property
    def graph(self) -> GraphSpec:
        return self.dispatcher.graph

    def resolve(self, template: Any) -> Any:
        return self.resolver.resolve(template)

    async def record(self, result: NodeResult) -> None:
        await self.run.record(self.node.id, result)

    def update_data(self, partial: dict[str, Any]) -> None:
        self.run.update_node_data(self.node.id, partial)

    async def set_context_var(self, name: str, value: Any) -> None:
        await self.run.set_context_variable(self.node.id, name, value)

    async def dispatch(self, handle: str, data: Any) -> None:
        """Run everything listening to ``handle`` of this node, depth-first."""
        await self.dispatcher.trigger_next_nodes(
            self.node.id, data, source_handle=handle, depth=self.depth + 1
        )


@dataclass
class NodeOutcome:
    """Terminal result of a handler plus the handles to dispatch on success."""

    result: NodeResult
    routes: list[tuple[str, Any]] = field(default_factory=list)

    @classmethod
    def success(cls, data: Any, handle: str = DEFAULT_HANDLE, **fields: Any) -> "NodeOutcome":
        """Succeed with ``data`` and forward it on ``handle``."""
        return cls(result=NodeResult.success(data, **fields), routes=[(handle, data)])

    @classmethod
    def failure(cls, error: str, **fields: Any) -> "NodeOutcome":
        return cls(result=NodeResult.failure(error, **fields))


def describe_error(error: Exception) -> str:
    """Single-line message for an exception raised inside a handler."""
    if isinstance(error, ValidationError):
        details = []
        for item in error.errors():
            location = ".".join(str(part) for part in item.get("loc", ()))
            details.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
        return f"Invalid node configuration ({'; '.join(details)})"
    return str(error)


class NodeHandler(ABC):
    """
    Base class for the per-type handlers.

    Subclasses set ``node_type`` and ``default_error`` and implement
    ``run``. Example:

        class DelayHandler(NodeHandler):
            node_type = NodeType.DELAY
            default_error = "Delay node execution failed"

            async def run(self, ctx):
                await asyncio.sleep(1)
                return NodeOutcome.success(ctx.input_data)
    """

    node_type: NodeType
    default_error: str = "Node execution failed"
    config_model: type[BaseModel] | None = None

    def load_config(self, node: NodeSpec) -> Any:
        """Validate the node's ``data`` against this handler's config model."""
        if self.config_model is None:
            return node.data
        return self.config_model.model_validate(node.data)

    @abstractmethod
    async def run(self, ctx: NodeContext) -> NodeOutcome:
        """Do the type-specific work. Raise to fail the node."""

    async def execute(self, ctx: NodeContext) -> NodeResult:
        """Run the full lifecycle and return the terminal result."""
        node = ctx.node
        previous_trace = trace_context.get()
        set_trace_context(node_id=node.id)
        try:
            await ctx.record(NodeResult.loading())
            started = time.perf_counter()

            try:
                outcome = await self.run(ctx)
            except Exception as e:
                outcome = NodeOutcome.failure(describe_error(e))

            latency_ms = int((time.perf_counter() - started) * 1000)
            result = outcome.result.model_copy(update={"latency_ms": latency_ms})
            if result.failed and not result.error:
                result.error = self.default_error
            await ctx.record(result)

            if not result.succeeded:
                logger.error(
                    f"   ✗ {node.label} ({self.node_type}) failed: {result.error}",
                    extra={"event": "node_failed", "node_id": node.id},
                )
                return result

            logger.info(
                f"   ✓ {node.label} ({self.node_type}) succeeded in {latency_ms}ms",
                extra={"event": "node_completed", "node_id": node.id, "latency_ms": latency_ms},
            )
            for handle, data in outcome.routes:
                await ctx.dispatch(handle, data)
            return result
        finally:
            trace_context.set(previous_trace)
