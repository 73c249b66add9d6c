"""HTTP proxy that forwards requests to a proxy endpoint over HTTP."""

import logging

import httpx
from pydantic import ValidationError

from flowgraph.config import DEFAULT_PROXY_TIMEOUT
from flowgraph.proxy.base import ProxyError, ProxyRequest, ProxyResponse

logger = logging.getLogger(__name__)


class RemoteHttpProxy:
    """
    POSTs the camelCase request payload to ``proxy_url``.

    The endpoint answers ``{status, statusText, headers, body}`` on success
    and ``{error}`` with a non-2xx status when it could not reach upstream.
    """

    def __init__(
        self,
        proxy_url: str,
        timeout: float = DEFAULT_PROXY_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.proxy_url = proxy_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        payload = request.model_dump(mode="json", by_alias=True)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.proxy_url, json=payload)
        except httpx.TimeoutException as e:
            raise ProxyError(f"Proxy at {self.proxy_url} timed out") from e
        except httpx.RequestError as e:
            raise ProxyError(f"Network error reaching proxy: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProxyError(
                f"Proxy returned a non-JSON response ({response.status_code})",
                status_code=response.status_code,
            ) from e

        if not response.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            raise ProxyError(
                error or f"Proxy Error: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return ProxyResponse.model_validate(data)
        except ValidationError as e:
            raise ProxyError(f"Proxy returned an unexpected payload: {e}") from e
