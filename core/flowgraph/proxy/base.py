"""
HTTP proxy collaborator contract.

HTTP request nodes never call external URLs themselves. They hand a
ProxyRequest to an HttpProxy and map the ProxyResponse onto their result.
"""

import json
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from flowgraph.graph.node import KeyValueEntry

_CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}


class ProxyError(Exception):
    """The proxy could not perform the request (network, timeout, bad URL)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProxyRequest(BaseModel):
    """Payload sent to the proxy: ``{url, method, queryParams, headers, bodyType, body}``."""

    url: str
    method: str = "GET"
    query_params: list[KeyValueEntry] = Field(default_factory=list)
    headers: list[KeyValueEntry] = Field(default_factory=list)
    body_type: Literal["none", "json", "text"] = "none"
    body: Any = None

    model_config = _CAMEL_CONFIG

    def enabled_query_params(self) -> dict[str, str]:
        return {e.key: e.value for e in self.query_params if e.enabled and e.key}

    def enabled_headers(self) -> dict[str, str]:
        return {e.key: e.value for e in self.headers if e.enabled and e.key}


class ProxyResponse(BaseModel):
    """Upstream response as seen through the proxy: ``{status, headers, body}``."""

    status: int
    status_text: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None

    model_config = _CAMEL_CONFIG

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class HttpProxy(Protocol):
    """Anything that can perform a ProxyRequest."""

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        """Perform the request. Raises ProxyError when no response was obtained."""
        ...


def parse_body(text: str) -> Any:
    """Parse a response body as JSON, falling back to the raw text."""
    try:
        return json.loads(text)
    except ValueError:
        return text
