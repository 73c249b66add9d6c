"""Shared fixtures and fakes for flowgraph tests."""

from pathlib import Path
from typing import Any

import pytest

from flowgraph.config import RuntimeConfig
from flowgraph.graph.edge import EdgeSpec
from flowgraph.graph.node import NodeSpec
from flowgraph.observability import clear_trace_context
from flowgraph.proxy import ProxyRequest, ProxyResponse


@pytest.fixture(autouse=True)
def _clean_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def runtime_config(tmp_path: Path) -> RuntimeConfig:
    """Fully explicit config, independent of ~/.flowgraph and FLOWGRAPH_* variables."""
    return RuntimeConfig(
        max_resolution_depth=10,
        max_dispatch_depth=100,
        concurrent_roots=False,
        proxy_url=None,
        proxy_base_url="https://api.example.test",
        proxy_timeout=5.0,
        export_dir=tmp_path / "exports",
        export_worker="thread",
    )


class FakeProxy:
    """Answers proxy requests from a URL -> response table and records them."""

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = responses or {}
        self.requests: list[ProxyRequest] = []

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        self.requests.append(request)
        answer = self.responses.get(request.url)
        if answer is None:
            return ProxyResponse(status=404, status_text="Not Found", body={"error": "missing"})
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, ProxyResponse):
            return answer
        return ProxyResponse(
            status=200,
            status_text="OK",
            headers={"content-type": "application/json"},
            body=answer,
        )


@pytest.fixture
def fake_proxy() -> FakeProxy:
    return FakeProxy()


def make_node(node_id: str, node_type: str, **data: Any) -> NodeSpec:
    return NodeSpec(id=node_id, type=node_type, data=data)


def make_edge(source: str, target: str, handle: str | None = None) -> EdgeSpec:
    return EdgeSpec(
        id=f"{source}->{target}:{handle or 'output'}",
        source=source,
        target=target,
        source_handle=handle,
    )
