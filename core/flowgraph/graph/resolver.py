"""
Variable Resolver - ``{{...}}`` template expansion for node fields.

A token is one of:
- ``{{env.NAME}}``: enabled variable NAME of the active environment
- ``{{context.NAME}}``: variable NAME of the run's execution context
- ``{{nodeId::$.json.path}}`` or ``{{nodeId.path}}``: the data of a node
  that already succeeded in the current run, optionally narrowed by a
  JSONPath (first match wins)
- ``{{NAME}}``: a node id, or failing that an environment variable

Resolution is best-effort: a token that cannot be resolved is left in the
string verbatim and nothing is raised. Resolved values may contain tokens
themselves; expansion repeats until the string stops changing or the
depth limit is hit, which guards against self-referencing variables.
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from flowgraph.config import DEFAULT_MAX_RESOLUTION_DEPTH
from flowgraph.environment import Environment
from flowgraph.graph.jsonpath import JsonPathError, find_all
from flowgraph.graph.node import NodeResult, NodeStatus

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)

ENV_SOURCE = "env"
CONTEXT_SOURCE = "context"


def stringify(value: Any) -> str:
    """Render a value for substitution: JSON for containers, text for scalars."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def split_expression(expression: str) -> tuple[str, str | None]:
    """Split a token body into ``(source, path)``."""
    if "::" in expression:
        source, path = expression.split("::", 1)
    else:
        source, _, path = expression.partition(".")
    return source.strip(), path.strip() or None


class VariableResolver:
    """
    Resolves templates against the environment, run context and node results.

    The resolver holds live references to the run's context and result
    maps, so values written earlier in the run are visible to later nodes.

    Example:
        resolver = VariableResolver(environment=env, context={}, results={})
        resolver.resolve("{{env.BASE_URL}}/users")
    """

    def __init__(
        self,
        environment: Environment | None = None,
        context: Mapping[str, Any] | None = None,
        results: Mapping[str, NodeResult] | None = None,
        max_depth: int = DEFAULT_MAX_RESOLUTION_DEPTH,
    ):
        self.environment = environment
        self.context = context if context is not None else {}
        self.results = results if results is not None else {}
        self.max_depth = max_depth

    def __call__(self, template: Any) -> Any:
        return self.resolve(template)

    def resolve(self, template: Any) -> Any:
        """
        Expand every token in ``template``.

        Non-strings and strings without ``{{`` are returned unchanged.
        """
        if not isinstance(template, str) or "{{" not in template:
            return template

        current = template
        for _ in range(self.max_depth):
            expanded = TOKEN_PATTERN.sub(self._replace, current)
            if expanded == current or "{{" not in expanded:
                return expanded
            current = expanded

        logger.warning(
            f"Max variable resolution depth ({self.max_depth}) reached while resolving "
            f"{template!r}. Check for circular references."
        )
        return current

    def _replace(self, match: re.Match) -> str:
        value = self._lookup(match.group(1).strip())
        return match.group(0) if value is None else value

    def _lookup(self, expression: str) -> str | None:
        source, path = split_expression(expression)

        if source == ENV_SOURCE and path:
            return self._lookup_env(path)
        if source == CONTEXT_SOURCE and path:
            if path in self.context:
                return stringify(self.context[path])
            return None

        result = self.results.get(source)
        if result is None and path is None and "::" not in expression:
            return self._lookup_env(source)
        if result is None or result.status != NodeStatus.SUCCESS:
            return None
        if path is None:
            return stringify(result.data)

        try:
            matches = find_all(path, result.data)
        except JsonPathError as e:
            logger.warning(f"Cannot resolve '{{{{{expression}}}}}': {e}")
            return None
        if not matches:
            return None
        return stringify(matches[0])

    def _lookup_env(self, name: str) -> str | None:
        if self.environment is None:
            return None
        return self.environment.lookup(name)
