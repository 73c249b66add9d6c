"""In-process HTTP proxy backed by httpx."""

import json
import logging

import httpx

from flowgraph.config import DEFAULT_PROXY_BASE_URL, DEFAULT_PROXY_TIMEOUT
from flowgraph.proxy.base import ProxyError, ProxyRequest, ProxyResponse, parse_body

logger = logging.getLogger(__name__)

_STRIPPED_HEADERS = {"host", "content-length"}
_BODYLESS_METHODS = {"GET", "HEAD"}
_CONTENT_TYPES = {"json": "application/json", "text": "text/plain"}


class DirectHttpProxy:
    """
    Performs proxy requests from the current process.

    Relative URLs starting with ``/`` are resolved against ``base_url``;
    any other relative URL is rejected. The response body is parsed as JSON
    when possible and returned as text otherwise.

    Example:
        proxy = DirectHttpProxy(base_url="https://api.example.com")
        response = await proxy.send(ProxyRequest(url="/users/1"))
    """

    def __init__(
        self,
        base_url: str = DEFAULT_PROXY_BASE_URL,
        timeout: float = DEFAULT_PROXY_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def target_url(self, url: str) -> str:
        """Absolute URL for ``url``. Raises ProxyError for unusable URLs."""
        if not url or not isinstance(url, str):
            raise ProxyError("Invalid URL provided", status_code=400)
        if url.startswith("/"):
            return self.base_url.rstrip("/") + url
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise ProxyError(f"Invalid URL provided: {e}", status_code=400) from e
        if not parsed.scheme or not parsed.host:
            raise ProxyError(
                "Invalid relative URL format. Must start with / or be absolute.",
                status_code=400,
            )
        return url

    def build_headers(self, request: ProxyRequest) -> dict[str, str]:
        headers = {
            key: value
            for key, value in request.enabled_headers().items()
            if key.lower() not in _STRIPPED_HEADERS
        }
        content_type = _CONTENT_TYPES.get(request.body_type)
        if request.body is not None and content_type:
            # Overrides a user-supplied Content-Type, whatever its casing
            headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
            headers["Content-Type"] = content_type
        return headers

    def build_content(self, request: ProxyRequest) -> str | None:
        if request.method.upper() in _BODYLESS_METHODS or request.body is None:
            return None
        if isinstance(request.body, str):
            return request.body
        return json.dumps(request.body)

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        url = self.target_url(request.url)
        method = request.method.upper()

        logger.debug(f"Proxying {method} {url}")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    params=request.enabled_query_params(),
                    headers=self.build_headers(request),
                    content=self.build_content(request),
                )
        except httpx.TimeoutException as e:
            raise ProxyError(f"Request to {url} timed out") from e
        except httpx.RequestError as e:
            raise ProxyError(f"Proxy failed to execute request. Cause: {e}") from e

        return ProxyResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            body=parse_body(response.text),
        )
