"""Tests for edge dispatch: ordering, handle routing, skipping and the depth guard."""

import pytest
from conftest import make_edge, make_node

from flowgraph.graph.dispatcher import Dispatcher
from flowgraph.graph.edge import EdgeSpec, GraphSpec
from flowgraph.graph.executor import FlowExecutor
from flowgraph.graph.node import NodeResult, NodeStatus, NodeType
from flowgraph.graph.nodes import NodeContext, NodeHandler, NodeOutcome
from flowgraph.graph.resolver import VariableResolver
from flowgraph.runtime import EventBus, EventType, RunState


def json_nodes(*ids: str):
    return [make_node(node_id, "json") for node_id in ids]


class RecordingHandler(NodeHandler):
    """Json-like handler that remembers the inputs it received."""

    node_type = NodeType.JSON

    def __init__(self):
        self.calls: list[tuple[str, object]] = []

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        self.calls.append((ctx.node_id, ctx.input_data))
        return NodeOutcome.success(ctx.input_data)


class TestOrdering:
    @pytest.mark.asyncio
    async def test_depth_first_in_edge_order(self, runtime_config, fake_proxy):
        graph = GraphSpec(
            nodes=json_nodes("A", "B", "C", "D"),
            edges=[make_edge("A", "B"), make_edge("A", "C"), make_edge("B", "D")],
        )
        result = await FlowExecutor(proxy=fake_proxy, config=runtime_config).run_flow(graph)

        assert result.path == ["A", "B", "D", "C"]
        assert result.success is True

    @pytest.mark.asyncio
    async def test_fan_in_target_runs_once_per_incoming_edge(self, runtime_config, fake_proxy):
        graph = GraphSpec(
            nodes=json_nodes("A", "B", "C", "D"),
            edges=[
                make_edge("A", "B"),
                make_edge("A", "C"),
                make_edge("B", "D"),
                make_edge("C", "D"),
            ],
        )
        result = await FlowExecutor(proxy=fake_proxy, config=runtime_config).run_flow(graph)

        assert result.path == ["A", "B", "D", "C", "D"]


class TestRouting:
    def _dispatcher(self, graph: GraphSpec, handler: NodeHandler, bus=None) -> Dispatcher:
        run = RunState(run_id="run_test", event_bus=bus)
        return Dispatcher(
            graph=graph,
            run=run,
            resolver=VariableResolver(context=run.context, results=run.results),
            handlers={NodeType.JSON: handler},
        )

    @pytest.mark.asyncio
    async def test_only_edges_on_the_emitted_handle_fire(self):
        graph = GraphSpec(
            nodes=json_nodes("src", "yes", "no", "plain"),
            edges=[
                make_edge("src", "yes", "yes"),
                make_edge("src", "no", "no"),
                make_edge("src", "plain"),
            ],
        )
        handler = RecordingHandler()
        dispatcher = self._dispatcher(graph, handler)

        await dispatcher.trigger_next_nodes("src", {"v": 1}, source_handle="yes")

        assert handler.calls == [("yes", {"v": 1})]

    @pytest.mark.asyncio
    async def test_default_handle_matches_edges_without_source_handle(self):
        graph = GraphSpec(
            nodes=json_nodes("src", "a", "b"),
            edges=[
                make_edge("src", "a"),
                EdgeSpec(id="explicit", source="src", target="b", source_handle="output"),
            ],
        )
        handler = RecordingHandler()
        await self._dispatcher(graph, handler).trigger_next_nodes("src", 1)

        assert [node_id for node_id, _ in handler.calls] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_missing_and_unknown_targets_are_skipped(self):
        bus = EventBus()
        graph = GraphSpec(
            nodes=[*json_nodes("src", "ok"), make_node("odd", "mystery")],
            edges=[
                make_edge("src", "ghost"),
                make_edge("src", "odd"),
                make_edge("src", "ok"),
            ],
        )
        handler = RecordingHandler()
        dispatcher = self._dispatcher(graph, handler, bus)

        await dispatcher.trigger_next_nodes("src", "x")

        assert handler.calls == [("ok", "x")]
        skipped = bus.get_history(event_type=EventType.NODE_SKIPPED)
        assert {e.node_id for e in skipped} == {"ghost", "odd"}
        assert "odd" not in dispatcher.run.results

    @pytest.mark.asyncio
    async def test_unknown_type_started_directly_is_an_error(self):
        graph = GraphSpec(nodes=[make_node("odd", "mystery")])
        dispatcher = self._dispatcher(graph, RecordingHandler())

        result = await dispatcher.execute_node(graph.nodes[0], None)

        assert result.status == NodeStatus.ERROR
        assert result.error == "Unsupported node type 'mystery'"
        assert dispatcher.run.get_result("odd") == result


class TestDepthGuard:
    @pytest.mark.asyncio
    async def test_self_loop_is_cut_at_max_depth(self, runtime_config, fake_proxy):
        runtime_config.max_dispatch_depth = 5
        graph = GraphSpec(
            nodes=json_nodes("start", "spin"),
            edges=[make_edge("start", "spin"), make_edge("spin", "spin")],
        )
        result = await FlowExecutor(proxy=fake_proxy, config=runtime_config).run_flow(graph)

        assert result.path == ["start"] + ["spin"] * 5
        assert result.results["spin"].status == NodeStatus.ERROR
        assert "Maximum dispatch depth (5) exceeded" in result.results["spin"].error
        assert result.success is False

    @pytest.mark.asyncio
    async def test_two_node_cycle_terminates(self, runtime_config, fake_proxy):
        runtime_config.max_dispatch_depth = 4
        graph = GraphSpec(
            nodes=json_nodes("start", "ping", "pong"),
            edges=[
                make_edge("start", "ping"),
                make_edge("ping", "pong"),
                make_edge("pong", "ping"),
            ],
        )
        result = await FlowExecutor(proxy=fake_proxy, config=runtime_config).run_flow(graph)

        assert result.path == ["start", "ping", "pong", "ping", "pong"]
        assert result.errors == {
            "ping": "Maximum dispatch depth (4) exceeded; the flow probably contains a cycle"
        }

    @pytest.mark.asyncio
    async def test_acyclic_chain_below_limit_succeeds(self, runtime_config, fake_proxy):
        runtime_config.max_dispatch_depth = 3
        graph = GraphSpec(
            nodes=json_nodes("a", "b", "c", "d"),
            edges=[make_edge("a", "b"), make_edge("b", "c"), make_edge("c", "d")],
        )
        result = await FlowExecutor(proxy=fake_proxy, config=runtime_config).run_flow(graph)

        assert result.success is True
        assert result.results["d"].status == NodeStatus.SUCCESS


def test_outcome_success_routes_on_its_handle():
    outcome = NodeOutcome.success("x", handle="yes", status_code=201)
    assert outcome.routes == [("yes", "x")]
    assert outcome.result == NodeResult(
        status=NodeStatus.SUCCESS,
        data="x",
        status_code=201,
        timestamp=outcome.result.timestamp,
    )
