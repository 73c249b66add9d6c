"""Shared flowgraph configuration utilities.

Centralises reading of ~/.flowgraph/configuration.json so that the CLI,
the executor and embedding applications share one implementation.
Every runtime setting can be overridden with a ``FLOWGRAPH_<NAME>``
environment variable.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWGRAPH_CONFIG_FILE = Path.home() / ".flowgraph" / "configuration.json"

DEFAULT_MAX_RESOLUTION_DEPTH = 10
DEFAULT_MAX_DISPATCH_DEPTH = 100
DEFAULT_PROXY_BASE_URL = "https://jsonplaceholder.typicode.com"
DEFAULT_PROXY_TIMEOUT = 30.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_flowgraph_config() -> dict[str, Any]:
    """Load flowgraph configuration from ~/.flowgraph/configuration.json."""
    if not FLOWGRAPH_CONFIG_FILE.exists():
        return {}
    try:
        with open(FLOWGRAPH_CONFIG_FILE, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


def _setting(name: str, default: Any) -> Any:
    """Look a runtime setting up in the environment, then the config file."""
    env_value = os.environ.get(f"FLOWGRAPH_{name.upper()}")
    if env_value is not None:
        return env_value
    return get_flowgraph_config().get("runtime", {}).get(name, default)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_max_resolution_depth() -> int:
    """Maximum number of template expansion passes per resolved string."""
    return int(_setting("max_resolution_depth", DEFAULT_MAX_RESOLUTION_DEPTH))


def get_max_dispatch_depth() -> int:
    """Maximum depth of nested edge dispatches within one run."""
    return int(_setting("max_dispatch_depth", DEFAULT_MAX_DISPATCH_DEPTH))


def get_concurrent_roots() -> bool:
    return _as_bool(_setting("concurrent_roots", False))


def get_proxy_url() -> str | None:
    """URL of a remote HTTP proxy endpoint; None means proxy in-process."""
    return _setting("proxy_url", None) or None


def get_proxy_base_url() -> str:
    """Base URL used for request URLs that start with '/'."""
    fallback = os.environ.get("DEFAULT_PROXY_BASE_URL", DEFAULT_PROXY_BASE_URL)
    return _setting("proxy_base_url", fallback)


def get_proxy_timeout() -> float:
    return float(_setting("proxy_timeout", DEFAULT_PROXY_TIMEOUT))


def get_export_dir() -> Path:
    return Path(_setting("export_dir", "exports")).expanduser()


def get_export_worker() -> str:
    """Export worker backend: 'process' or 'thread'."""
    return str(_setting("export_worker", "process")).lower()


# ---------------------------------------------------------------------------
# RuntimeConfig – shared by the executor and the CLI
# ---------------------------------------------------------------------------


@dataclass
class RuntimeConfig:
    """Flow runtime configuration loaded from ~/.flowgraph/configuration.json."""

    max_resolution_depth: int = field(default_factory=get_max_resolution_depth)
    max_dispatch_depth: int = field(default_factory=get_max_dispatch_depth)
    concurrent_roots: bool = field(default_factory=get_concurrent_roots)
    proxy_url: str | None = field(default_factory=get_proxy_url)
    proxy_base_url: str = field(default_factory=get_proxy_base_url)
    proxy_timeout: float = field(default_factory=get_proxy_timeout)
    export_dir: Path = field(default_factory=get_export_dir)
    export_worker: str = field(default_factory=get_export_worker)
