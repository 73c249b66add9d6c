"""
Flow Executor - Runs flow graphs.

The executor:
1. Takes a GraphSpec snapshot
2. Creates fresh run state (results, execution context) and a resolver
   bound to the active environment
3. Starts execution at the root nodes, or at one chosen node
4. Lets each handler drive its downstream edges through the Dispatcher
5. Returns the final ExecutionResult once every reachable branch finished
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from flowgraph.config import RuntimeConfig
from flowgraph.environment import EnvironmentStore
from flowgraph.export.sinks import DirectoryDownloadSink, DownloadSink
from flowgraph.export.worker import ExportWorkerFactory, create_worker_factory
from flowgraph.graph.dispatcher import Dispatcher
from flowgraph.graph.edge import GraphSpec
from flowgraph.graph.node import NodeResult, NodeSpec, SaveToEnvironment
from flowgraph.graph.nodes import NodeServices
from flowgraph.graph.resolver import VariableResolver
from flowgraph.observability import set_trace_context
from flowgraph.proxy import HttpProxy, create_proxy
from flowgraph.runtime.event_bus import EventBus
from flowgraph.runtime.run_state import ConfigSink, ResultSink, RunState


@dataclass
class ExecutionResult:
    """Result of running a flow (or part of it)."""

    run_id: str
    success: bool
    results: dict[str, NodeResult] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)
    path: list[str] = field(default_factory=list)  # Node IDs in start order
    errors: dict[str, str] = field(default_factory=dict)  # {node_id: error}
    environment_saves: list[SaveToEnvironment] = field(default_factory=list)
    duration_ms: int = 0

    def result_for(self, node_id: str) -> NodeResult | None:
        return self.results.get(node_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "success": self.success,
            "durationMs": self.duration_ms,
            "path": self.path,
            "errors": self.errors,
            "context": self.context,
            "environmentSaves": [
                s.model_dump(mode="json", by_alias=True) for s in self.environment_saves
            ],
            "results": {
                node_id: result.model_dump(mode="json", by_alias=True, exclude_none=True)
                for node_id, result in self.results.items()
            },
        }


class FlowExecutor:
    """
    Executes flow graphs.

    Example:
        executor = FlowExecutor(
            environment_store=InMemoryEnvironmentStore(env),
            result_sink=lambda node_id, result: print(node_id, result.status),
        )

        result = await executor.run_flow(graph)
        result.results["get-user"].data
    """

    def __init__(
        self,
        proxy: HttpProxy | None = None,
        environment_store: EnvironmentStore | None = None,
        event_bus: EventBus | None = None,
        result_sink: ResultSink | None = None,
        config_sink: ConfigSink | None = None,
        download_sink: DownloadSink | None = None,
        export_worker_factory: ExportWorkerFactory | None = None,
        config: RuntimeConfig | None = None,
    ):
        """
        Initialize the executor.

        Args:
            proxy: HTTP proxy used by HTTP request nodes (built from config if omitted)
            environment_store: Supplies the active environment and receives saves
            event_bus: Optional event bus for run/node lifecycle events
            result_sink: Called with every NodeResult as it is recorded
            config_sink: Called when a node mutates its own configuration
            download_sink: Destination of exported files (config.export_dir if omitted)
            export_worker_factory: Creates one-shot export workers
            config: Runtime configuration (loaded from ~/.flowgraph if omitted)
        """
        self.config = config or RuntimeConfig()
        self.proxy = proxy or create_proxy(self.config)
        self.environment_store = environment_store
        self.event_bus = event_bus
        self.result_sink = result_sink
        self.config_sink = config_sink
        self.download_sink = download_sink or DirectoryDownloadSink(self.config.export_dir)
        self.export_worker_factory = export_worker_factory or create_worker_factory(
            self.config.export_worker
        )
        self.logger = logging.getLogger(__name__)

    def _start_run(self, graph: GraphSpec) -> tuple[RunState, Dispatcher]:
        run_id = f"run_{uuid.uuid4().hex[:12]}"
        set_trace_context(run_id=run_id, flow_id=graph.id)

        environment = (
            self.environment_store.get_active_environment() if self.environment_store else None
        )
        run = RunState(
            run_id=run_id,
            environment_store=self.environment_store,
            result_sink=self.result_sink,
            config_sink=self.config_sink,
            event_bus=self.event_bus,
        )
        resolver = VariableResolver(
            environment=environment,
            context=run.context,
            results=run.results,
            max_depth=self.config.max_resolution_depth,
        )
        services = NodeServices(
            proxy=self.proxy,
            export_worker_factory=self.export_worker_factory,
            download_sink=self.download_sink,
        )
        dispatcher = Dispatcher(
            graph=graph,
            run=run,
            resolver=resolver,
            services=services,
            max_depth=self.config.max_dispatch_depth,
        )
        return run, dispatcher

    async def _finish_run(self, run: RunState, started: float) -> ExecutionResult:
        errors = run.failed_nodes()
        result = ExecutionResult(
            run_id=run.run_id,
            success=not errors,
            results=run.snapshot(),
            context=run.get_context(),
            path=list(run.path),
            errors=errors,
            environment_saves=list(run.environment_saves),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        if self.event_bus:
            await self.event_bus.emit_run_completed(run.run_id, result.success, list(errors))

        if result.success:
            self.logger.info(
                f"✓ Run {run.run_id} completed: {len(result.path)} node(s) "
                f"in {result.duration_ms}ms"
            )
        else:
            self.logger.warning(
                f"⚠ Run {run.run_id} finished with {len(errors)} failed node(s): "
                f"{', '.join(errors)}"
            )
        return result

    async def run_flow(self, graph: GraphSpec) -> ExecutionResult:
        """
        Run the whole graph from its root nodes.

        Every node is reset to idle first. Roots (nodes without incoming
        edges) start in snapshot order, one after another, unless
        ``concurrent_roots`` is enabled.
        """
        started = time.perf_counter()
        run, dispatcher = self._start_run(graph)
        run.reset([node.id for node in graph.nodes])

        roots = graph.root_nodes()
        self.logger.info(f"🚀 Starting run {run.run_id}: {graph.name or graph.id or 'flow'}")
        self.logger.info(f"   Root nodes: {[r.id for r in roots]}")
        if not roots and graph.nodes:
            self.logger.warning("⚠ No root nodes found (every node has an incoming edge)")

        if self.event_bus:
            await self.event_bus.emit_run_started(run.run_id, graph.id, [r.id for r in roots])

        runnable = [r for r in roots if self._is_runnable(r)]
        if self.config.concurrent_roots and len(runnable) > 1:
            await asyncio.gather(*(dispatcher.execute_node(r, None) for r in runnable))
        else:
            for root in runnable:
                await dispatcher.execute_node(root, None)

        return await self._finish_run(run, started)

    async def execute_single_node(self, graph: GraphSpec, node_id: str) -> ExecutionResult:
        """
        Start execution at ``node_id`` with no input data.

        The node still drives its downstream edges, so this runs the node
        and everything reachable from it.

        Raises:
            KeyError: if the graph has no node ``node_id``
        """
        node = graph.get_node(node_id)
        if node is None:
            raise KeyError(f"Node '{node_id}' not found in flow")

        started = time.perf_counter()
        run, dispatcher = self._start_run(graph)
        self.logger.info(f"▶ Executing from node '{node_id}' (run {run.run_id})")
        if self.event_bus:
            await self.event_bus.emit_run_started(run.run_id, graph.id, [node_id])

        await dispatcher.execute_node(node, None)
        return await self._finish_run(run, started)

    def _is_runnable(self, node: NodeSpec) -> bool:
        if node.node_type is None:
            self.logger.warning(f"Skipping root '{node.id}' of unknown type '{node.type}'")
            return False
        return True
