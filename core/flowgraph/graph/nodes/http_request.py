"""HTTP request node: resolves its request, sends it through the proxy."""

import base64
import json
import logging
from typing import Any

from flowgraph.graph.node import AuthConfig, HttpRequestConfig, KeyValueEntry, NodeType
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome
from flowgraph.proxy.base import ProxyError, ProxyRequest

logger = logging.getLogger(__name__)


def resolve_entries(entries: list[KeyValueEntry], ctx: NodeContext) -> list[KeyValueEntry]:
    """Resolve entry values, keeping the original when resolution yields nothing."""
    return [
        entry.model_copy(update={"value": ctx.resolve(entry.value) or entry.value})
        for entry in entries
    ]


def resolve_body(config: HttpRequestConfig, ctx: NodeContext) -> Any:
    if config.body_type == "json":
        if not config.body:
            return None
        if "{{" in config.body:
            resolved = ctx.resolve(config.body)
            try:
                return json.loads(resolved)
            except ValueError:
                # Templated bodies may legitimately resolve to non-JSON text
                return resolved
        try:
            return json.loads(config.body)
        except ValueError as e:
            raise ValueError(f"Invalid JSON format in body: {e}") from e
    if config.body_type == "text":
        return ctx.resolve(config.body)
    return None


def auth_entries(auth: AuthConfig, ctx: NodeContext) -> tuple[dict[str, str], dict[str, str]]:
    """Compute ``(headers, query_params)`` contributed by the auth settings."""
    headers: dict[str, str] = {}
    params: dict[str, str] = {}

    if auth.type == "bearer":
        token = ctx.resolve(auth.token)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning(f"Bearer auth on node '{ctx.node_id}' has no token")
    elif auth.type == "basic":
        username = ctx.resolve(auth.username)
        password = ctx.resolve(auth.password)
        if username is not None and password is not None:
            encoded = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
            headers["Authorization"] = f"Basic {encoded}"
        else:
            logger.warning(f"Basic auth on node '{ctx.node_id}' is missing credentials")
    elif auth.type == "apiKey":
        key = ctx.resolve(auth.key)
        value = ctx.resolve(auth.value)
        if key and value:
            if auth.add_to == "header":
                headers[key] = value
            else:
                params[key] = value
        else:
            logger.warning(f"API key auth on node '{ctx.node_id}' is missing its key or value")

    return headers, params


class HttpRequestHandler(NodeHandler):
    node_type = NodeType.HTTP_REQUEST
    default_error = "Network request failed"
    config_model = HttpRequestConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: HttpRequestConfig = self.load_config(ctx.node)

        url = ctx.resolve(config.url)
        query_params = resolve_entries(config.query_params, ctx)
        headers = resolve_entries(config.headers, ctx)
        body = resolve_body(config, ctx)

        if not url:
            raise ValueError("URL is required after variable resolution.")

        if config.auth and config.auth.type != "none":
            auth_headers, auth_params = auth_entries(config.auth, ctx)
            headers = [h for h in headers if h.key.lower() != "authorization"]
            headers += [
                KeyValueEntry(id=f"auth-{k}", key=k, value=v) for k, v in auth_headers.items()
            ]
            query_params += [
                KeyValueEntry(id=f"auth-{k}", key=k, value=v) for k, v in auth_params.items()
            ]

        proxy = ctx.services.proxy
        if proxy is None:
            raise ProxyError("No HTTP proxy configured")

        request = ProxyRequest(
            url=url,
            method=config.method,
            query_params=query_params,
            headers=headers,
            body_type=config.body_type,
            body=body,
        )
        logger.info(f"   → {config.method} {url}")
        try:
            response = await proxy.send(request)
        except ProxyError as e:
            return NodeOutcome.failure(str(e) or self.default_error, status_code=e.status_code)

        if not response.ok:
            reason = f" {response.status_text}" if response.status_text else ""
            return NodeOutcome.failure(
                f"HTTP {response.status}{reason}",
                status_code=response.status,
                headers=response.headers,
                data=response.body,
            )

        return NodeOutcome.success(
            response.body,
            status_code=response.status,
            headers=response.headers,
        )
