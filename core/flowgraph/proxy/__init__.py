"""HTTP proxy collaborators used by HTTP request nodes."""

from flowgraph.config import RuntimeConfig
from flowgraph.proxy.base import HttpProxy, ProxyError, ProxyRequest, ProxyResponse
from flowgraph.proxy.direct import DirectHttpProxy
from flowgraph.proxy.remote import RemoteHttpProxy


def create_proxy(config: RuntimeConfig) -> HttpProxy:
    """Remote proxy when ``proxy_url`` is configured, in-process otherwise."""
    if config.proxy_url:
        return RemoteHttpProxy(config.proxy_url, timeout=config.proxy_timeout)
    return DirectHttpProxy(base_url=config.proxy_base_url, timeout=config.proxy_timeout)


__all__ = [
    "DirectHttpProxy",
    "HttpProxy",
    "ProxyError",
    "ProxyRequest",
    "ProxyResponse",
    "RemoteHttpProxy",
    "create_proxy",
]
