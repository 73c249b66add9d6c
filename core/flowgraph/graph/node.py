"""
Node Protocol - The typed units of work in a flow.

A node is ``{id, type, data}`` where ``data`` is the type-specific
configuration edited on the canvas. The configuration is validated lazily,
by the handler for the node's type, so that a malformed node fails on its
own without rejecting the whole graph snapshot.

Every execution of a node produces a NodeResult that moves through
``idle → loading → success | error``.
"""

import time
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_HANDLE = "output"
LOOP_BODY_HANDLE = "loopBody"
LOOP_END_HANDLE = "loopEnd"

_CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}


def now_ms() -> int:
    return int(time.time() * 1000)


class NodeType(StrEnum):
    """The closed set of executable node types."""

    HTTP_REQUEST = "http-request"
    JSON = "json"
    SELECT_FIELDS = "select-fields"
    DELAY = "delay"
    VARIABLE_SET = "variable-set"
    TRANSFORM = "transform"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    EXPORT = "export"

    @classmethod
    def parse(cls, tag: str) -> "NodeType | None":
        """Map a canonical or editor tag to a NodeType, None if unknown."""
        try:
            return cls(tag)
        except ValueError:
            return _EDITOR_TAGS.get(tag)


# Tags written by the canvas editor
_EDITOR_TAGS: dict[str, NodeType] = {
    "httpRequest": NodeType.HTTP_REQUEST,
    "jsonNode": NodeType.JSON,
    "selectFields": NodeType.SELECT_FIELDS,
    "selectFieldsNode": NodeType.SELECT_FIELDS,
    "delayNode": NodeType.DELAY,
    "variableSetNode": NodeType.VARIABLE_SET,
    "transformNode": NodeType.TRANSFORM,
    "conditionalNode": NodeType.CONDITIONAL,
    "loopNode": NodeType.LOOP,
    "exportNode": NodeType.EXPORT,
}


class NodeStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SaveToEnvironment(BaseModel):
    """Instruction to persist a variable in the active environment."""

    variable_name: str
    value: str
    is_secret: bool = False

    model_config = _CAMEL_CONFIG


class NodeResult(BaseModel):
    """
    The outcome of one node execution.

    ``data`` is defined and stable once ``status`` is success. HTTP nodes
    also fill ``status_code`` and ``headers``; variable-set nodes targeting
    the environment fill ``save_to_environment``.
    """

    status: NodeStatus = NodeStatus.IDLE
    data: Any = None
    error: str | None = None
    status_code: int | None = None
    headers: dict[str, str] | None = None
    timestamp: int = Field(default_factory=now_ms)
    latency_ms: int | None = None
    save_to_environment: SaveToEnvironment | None = None

    model_config = _CAMEL_CONFIG

    @property
    def succeeded(self) -> bool:
        return self.status == NodeStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status == NodeStatus.ERROR

    @classmethod
    def loading(cls) -> "NodeResult":
        return cls(status=NodeStatus.LOADING)

    @classmethod
    def success(cls, data: Any = None, **fields: Any) -> "NodeResult":
        return cls(status=NodeStatus.SUCCESS, data=data, **fields)

    @classmethod
    def failure(cls, error: str, **fields: Any) -> "NodeResult":
        return cls(status=NodeStatus.ERROR, error=error, **fields)


class NodeSpec(BaseModel):
    """
    A node in the graph snapshot.

    Example:
        NodeSpec(
            id="get-user",
            type="http-request",
            data={"method": "GET", "url": "{{env.API}}/users/1"},
        )
    """

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @field_validator("type")
    @classmethod
    def _normalise_type(cls, value: str) -> str:
        node_type = NodeType.parse(value)
        return node_type.value if node_type else value

    @field_validator("data", mode="before")
    @classmethod
    def _default_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def node_type(self) -> NodeType | None:
        """The NodeType, or None when the tag is not executable."""
        return NodeType.parse(self.type)

    @property
    def label(self) -> str:
        return str(self.data.get("label") or self.id)


# ---------------------------------------------------------------------------
# Type-specific configuration
# ---------------------------------------------------------------------------


class KeyValueEntry(BaseModel):
    """A header or query parameter row."""

    id: str = ""
    key: str = ""
    value: str = ""
    enabled: bool = True

    model_config = _CAMEL_CONFIG


class AuthConfig(BaseModel):
    """Authentication settings of an HTTP request node."""

    type: Literal["none", "basic", "bearer", "apiKey"] = "none"
    username: str | None = None
    password: str | None = None
    token: str | None = None
    key: str | None = None
    value: str | None = None
    add_to: Literal["header", "query"] = "header"

    model_config = _CAMEL_CONFIG


class HttpRequestConfig(BaseModel):
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"] = "GET"
    url: str = ""
    query_params: list[KeyValueEntry] = Field(default_factory=list)
    headers: list[KeyValueEntry] = Field(default_factory=list)
    body_type: Literal["none", "json", "text"] = "none"
    body: str | None = None
    auth: AuthConfig | None = None

    model_config = _CAMEL_CONFIG

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class PathEntry(BaseModel):
    id: str = ""
    path: str = ""
    enabled: bool = True

    model_config = _CAMEL_CONFIG


class SelectFieldsConfig(BaseModel):
    json_paths: list[PathEntry] = Field(default_factory=list)

    model_config = _CAMEL_CONFIG


class DelayConfig(BaseModel):
    delay_ms: float = 1000

    model_config = _CAMEL_CONFIG

    @field_validator("delay_ms", mode="before")
    @classmethod
    def _default_delay(cls, value: Any) -> Any:
        return 1000 if value is None else value


class VariableSetConfig(BaseModel):
    variable_name: str | None = None
    variable_value: Any = None
    target: Literal["flowContext", "selectedEnvironment"] = "flowContext"
    mark_as_secret: bool = False

    model_config = _CAMEL_CONFIG


class MappingRule(BaseModel):
    id: str = ""
    input_path: str = ""
    output_path: str = ""
    enabled: bool = True

    model_config = _CAMEL_CONFIG


class TransformConfig(BaseModel):
    mapping_rules: list[MappingRule] = Field(default_factory=list)

    model_config = _CAMEL_CONFIG


class ConditionRule(BaseModel):
    id: str = ""
    expression: str = ""
    output_handle_id: str = ""
    enabled: bool = True

    model_config = _CAMEL_CONFIG


class ConditionalConfig(BaseModel):
    conditions: list[ConditionRule] = Field(default_factory=list)
    default_output_handle_id: str = "default"

    model_config = _CAMEL_CONFIG


class LoopConfig(BaseModel):
    input_array_path: str = "$"

    model_config = _CAMEL_CONFIG


class ExportConfig(BaseModel):
    export_format: str = "csv"
    file_name: str | None = None
    include_timestamp: bool = False
    flatten: bool = False
    custom_separator: str | None = None

    model_config = _CAMEL_CONFIG
