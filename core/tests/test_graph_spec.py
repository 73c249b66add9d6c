"""Tests for node/edge models and graph structure checks."""

import pytest
from conftest import make_edge, make_node

from flowgraph.graph.edge import EdgeSpec, GraphSpec
from flowgraph.graph.node import NodeResult, NodeSpec, NodeStatus, NodeType


class TestNodeType:
    @pytest.mark.parametrize(
        "tag, expected",
        [
            ("http-request", NodeType.HTTP_REQUEST),
            ("httpRequest", NodeType.HTTP_REQUEST),
            ("jsonNode", NodeType.JSON),
            ("selectFields", NodeType.SELECT_FIELDS),
            ("selectFieldsNode", NodeType.SELECT_FIELDS),
            ("delayNode", NodeType.DELAY),
            ("variableSetNode", NodeType.VARIABLE_SET),
            ("transformNode", NodeType.TRANSFORM),
            ("conditionalNode", NodeType.CONDITIONAL),
            ("loopNode", NodeType.LOOP),
            ("exportNode", NodeType.EXPORT),
        ],
    )
    def test_parse(self, tag, expected):
        assert NodeType.parse(tag) == expected

    def test_unknown_tag(self):
        assert NodeType.parse("stickyNote") is None


class TestNodeSpec:
    def test_editor_tag_is_normalised(self):
        node = NodeSpec(id="a", type="httpRequest")
        assert node.type == "http-request"
        assert node.node_type == NodeType.HTTP_REQUEST

    def test_unknown_type_is_kept(self):
        node = NodeSpec(id="a", type="stickyNote", data=None)
        assert node.type == "stickyNote"
        assert node.node_type is None
        assert node.data == {}

    def test_label_falls_back_to_id(self):
        assert NodeSpec(id="a", type="json").label == "a"
        assert NodeSpec(id="a", type="json", data={"label": "Show"}).label == "Show"

    def test_extra_editor_fields_are_allowed(self):
        node = NodeSpec.model_validate(
            {"id": "a", "type": "json", "position": {"x": 1, "y": 2}, "data": {}}
        )
        assert node.model_extra == {"position": {"x": 1, "y": 2}}


class TestNodeResult:
    def test_constructors(self):
        assert NodeResult().status == NodeStatus.IDLE
        assert NodeResult.loading().status == NodeStatus.LOADING
        ok = NodeResult.success([1], status_code=200)
        assert ok.succeeded and ok.data == [1] and ok.status_code == 200
        failed = NodeResult.failure("boom")
        assert failed.failed and failed.error == "boom"

    def test_camel_case_dump(self):
        dumped = NodeResult.success(None, status_code=200).model_dump(
            by_alias=True, exclude_none=True
        )
        assert dumped["statusCode"] == 200
        assert "timestamp" in dumped


class TestGraphSpec:
    def test_edges_accept_camel_case(self):
        graph = GraphSpec.model_validate(
            {
                "nodes": [{"id": "a", "type": "json"}, {"id": "b", "type": "json"}],
                "edges": [{"id": "e", "source": "a", "target": "b", "sourceHandle": "yes"}],
            }
        )
        assert graph.edges[0].source_handle == "yes"
        assert graph.edges[0].handle == "yes"

    def test_missing_handle_defaults_to_output(self):
        assert EdgeSpec(id="e", source="a", target="b").handle == "output"

    def test_roots_and_edges(self):
        graph = GraphSpec(
            nodes=[make_node("a", "json"), make_node("b", "json"), make_node("c", "json")],
            edges=[make_edge("a", "b", "yes"), make_edge("a", "c")],
        )
        assert [n.id for n in graph.root_nodes()] == ["a"]
        assert [e.target for e in graph.get_outgoing_edges("a")] == ["b", "c"]
        assert [e.target for e in graph.get_outgoing_edges("a", "yes")] == ["b"]
        assert [e.source for e in graph.get_incoming_edges("c")] == ["a"]
        assert graph.get_node("zzz") is None

    def test_null_lists(self):
        graph = GraphSpec.model_validate({"nodes": None, "edges": None})
        assert graph.nodes == [] and graph.edges == []


class TestValidateStructure:
    def test_valid_graph(self):
        graph = GraphSpec(
            nodes=[
                make_node(
                    "check",
                    "conditional",
                    conditions=[{"id": "c", "expression": "true", "outputHandleId": "yes"}],
                ),
                make_node("a", "json"),
                make_node("b", "json"),
            ],
            edges=[make_edge("check", "a", "yes"), make_edge("check", "b", "default")],
        )
        assert graph.validate_structure() == []

    def test_reports_every_problem(self):
        graph = GraphSpec(
            nodes=[
                make_node("a", "json"),
                make_node("a", "json"),
                make_node("odd", "mystery"),
                make_node("check", "conditional"),
                make_node("b", "json"),
            ],
            edges=[
                make_edge("ghost", "b"),
                make_edge("a", "nowhere"),
                make_edge("check", "b", "never"),
            ],
        )
        errors = graph.validate_structure()

        assert "Duplicate node ID: 'a'" in errors
        assert "Node 'odd' has unknown type 'mystery'" in errors
        assert any("missing source 'ghost'" in e for e in errors)
        assert any("missing target 'nowhere'" in e for e in errors)
        assert any("handle 'never'" in e for e in errors)

    def test_no_root(self):
        graph = GraphSpec(
            nodes=[make_node("a", "json"), make_node("b", "json")],
            edges=[make_edge("a", "b"), make_edge("b", "a")],
        )
        assert graph.validate_structure() == [
            "Flow has no root node (every node has an incoming edge)"
        ]
