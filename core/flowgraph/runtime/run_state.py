"""
Run State - Everything one run of a flow reads and writes.

A run owns:
- the NodeResult map (one result per node, overwritten on re-execution)
- the ExecutionContext written by variable-set nodes
- the order in which nodes started (the run path)

Results are mirrored to the embedding application's result sink as they
are recorded, so observers see partial progress while the run is still
going. Writes go through a lock: the default dispatch is single-task, but
concurrent roots and embedding threads may read or write at the same time.
"""

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from flowgraph.environment import EnvironmentStore
from flowgraph.graph.node import NodeResult, NodeStatus, SaveToEnvironment

if TYPE_CHECKING:
    from flowgraph.runtime.event_bus import EventBus

logger = logging.getLogger(__name__)

# setNodeResult(node_id, result) / updateNodeData(node_id, partial_config)
ResultSink = Callable[[str, NodeResult], None]
ConfigSink = Callable[[str, dict[str, Any]], None]


class RunState:
    """
    Mutable state of a single run.

    Example:
        run = RunState(run_id="run_1", result_sink=store.set_node_result)
        await run.record("get-user", NodeResult.success({"id": 5}))
        run.get_result("get-user").data  # {"id": 5}
    """

    def __init__(
        self,
        run_id: str,
        environment_store: EnvironmentStore | None = None,
        result_sink: ResultSink | None = None,
        config_sink: ConfigSink | None = None,
        event_bus: "EventBus | None" = None,
    ):
        self.run_id = run_id
        self.environment_store = environment_store
        self.result_sink = result_sink
        self.config_sink = config_sink
        self.event_bus = event_bus

        self.results: dict[str, NodeResult] = {}
        self.context: dict[str, Any] = {}
        self.path: list[str] = []
        self.environment_saves: list[SaveToEnvironment] = []
        self._lock = threading.Lock()

    # === RESULTS ===

    def reset(self, node_ids: list[str]) -> None:
        """Set every node back to idle, e.g. at the start of a full run."""
        with self._lock:
            for node_id in node_ids:
                self.results[node_id] = NodeResult()
        for node_id in node_ids:
            self._emit_to_sink(node_id, NodeResult())

    async def record(self, node_id: str, result: NodeResult) -> None:
        """Store a node's result, forward it to the sink and publish it."""
        with self._lock:
            self.results[node_id] = result
            if result.status == NodeStatus.LOADING:
                self.path.append(node_id)

        self._emit_to_sink(node_id, result)

        if self.event_bus:
            await self.event_bus.emit_node_status(
                run_id=self.run_id,
                node_id=node_id,
                status=result.status.value,
                error=result.error,
                latency_ms=result.latency_ms,
            )

        if result.status == NodeStatus.SUCCESS and result.save_to_environment:
            await self._apply_environment_save(node_id, result.save_to_environment)

    def get_result(self, node_id: str) -> NodeResult | None:
        with self._lock:
            return self.results.get(node_id)

    def snapshot(self) -> dict[str, NodeResult]:
        """Copy of the result map, safe to read while the run continues."""
        with self._lock:
            return {node_id: result.model_copy() for node_id, result in self.results.items()}

    def failed_nodes(self) -> dict[str, str]:
        """Map of node id to error message for every node that ended in error."""
        with self._lock:
            return {
                node_id: result.error or "Unknown error"
                for node_id, result in self.results.items()
                if result.status == NodeStatus.ERROR
            }

    def _emit_to_sink(self, node_id: str, result: NodeResult) -> None:
        if self.result_sink is None:
            return
        try:
            self.result_sink(node_id, result)
        except Exception as e:
            logger.error(f"Result sink failed for node '{node_id}': {e}")

    # === NODE CONFIG ===

    def update_node_data(self, node_id: str, partial: dict[str, Any]) -> None:
        """Forward a config mutation to the config sink (fire-and-forget)."""
        if self.config_sink is None:
            return
        try:
            self.config_sink(node_id, partial)
        except Exception as e:
            logger.error(f"Config sink failed for node '{node_id}': {e}")

    # === EXECUTION CONTEXT ===

    async def set_context_variable(self, node_id: str, key: str, value: Any) -> None:
        with self._lock:
            self.context[key] = value
        logger.debug(f"Context variable '{key}' set by node '{node_id}'")
        if self.event_bus:
            await self.event_bus.emit_context_variable_set(self.run_id, node_id, key)

    def get_context(self) -> dict[str, Any]:
        with self._lock:
            return dict(self.context)

    # === ENVIRONMENT ===

    async def _apply_environment_save(self, node_id: str, save: SaveToEnvironment) -> None:
        with self._lock:
            self.environment_saves.append(save)

        if self.event_bus:
            await self.event_bus.emit_environment_save_requested(
                self.run_id, node_id, save.variable_name, save.is_secret
            )

        if self.environment_store is None:
            logger.warning(
                f"Node '{node_id}' requested saving '{save.variable_name}' "
                "but no environment store is configured"
            )
            return
        try:
            self.environment_store.save_variable(
                save.variable_name, save.value, is_secret=save.is_secret
            )
        except Exception as e:
            # An already-recorded success is not rolled back
            logger.error(f"Failed to save environment variable '{save.variable_name}': {e}")
