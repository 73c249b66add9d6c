"""
Tests for VariableResolver template expansion.

Covers:
- Pass-through of non-templates
- env / context / node-result sources
- Best-effort behaviour for unresolvable tokens
- Recursive expansion and the depth bound
"""

import logging

import pytest

from flowgraph.environment import Environment, EnvironmentVariable
from flowgraph.graph.node import NodeResult, NodeStatus
from flowgraph.graph.resolver import VariableResolver, split_expression, stringify


def env(**values: str) -> Environment:
    return Environment(
        name="test",
        variables=[EnvironmentVariable(key=k, value=v) for k, v in values.items()],
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestStringify:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("text", "text"),
            (5, "5"),
            (5.0, "5"),
            (2.5, "2.5"),
            (True, "true"),
            (False, "false"),
            (None, "null"),
            ({"id": 5}, '{"id":5}'),
            ([1, "a"], '[1,"a"]'),
        ],
    )
    def test_stringify(self, value, expected):
        assert stringify(value) == expected


class TestSplitExpression:
    def test_double_colon_splits_once(self):
        assert split_expression("node-1::$.a::b") == ("node-1", "$.a::b")

    def test_dot_splits_leading_segment(self):
        assert split_expression("env.API_URL") == ("env", "API_URL")
        assert split_expression("node.data.items") == ("node", "data.items")

    def test_bare_name_has_no_path(self):
        assert split_expression("TOKEN") == ("TOKEN", None)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestPassThrough:
    def test_string_without_template_is_unchanged(self):
        resolver = VariableResolver()
        assert resolver.resolve("https://example.com/{id}") == "https://example.com/{id}"

    @pytest.mark.parametrize("value", [None, 42, {"a": "{{env.X}}"}, ["{{env.X}}"]])
    def test_non_strings_are_unchanged(self, value):
        assert VariableResolver(environment=env(X="1")).resolve(value) == value

    def test_callable(self):
        resolver = VariableResolver(environment=env(X="1"))
        assert resolver("{{env.X}}") == "1"


class TestEnvironmentSource:
    def test_resolves_enabled_variable(self):
        resolver = VariableResolver(environment=env(BASE_URL="https://api.test"))
        assert resolver.resolve("{{env.BASE_URL}}/users") == "https://api.test/users"

    def test_whitespace_inside_braces_is_ignored(self):
        resolver = VariableResolver(environment=env(BASE_URL="https://api.test"))
        assert resolver.resolve("{{ env.BASE_URL }}") == "https://api.test"

    def test_disabled_variable_leaves_token(self):
        environment = Environment(
            variables=[EnvironmentVariable(key="X", value="secret", enabled=False)]
        )
        resolver = VariableResolver(environment=environment)
        assert resolver.resolve("{{env.X}}") == "{{env.X}}"

    def test_absent_variable_leaves_token(self):
        resolver = VariableResolver(environment=env(A="1"))
        assert resolver.resolve("{{env.B}}") == "{{env.B}}"

    def test_no_environment_leaves_token(self):
        assert VariableResolver().resolve("{{env.B}}") == "{{env.B}}"

    def test_secret_variables_resolve_like_others(self):
        environment = Environment(
            variables=[EnvironmentVariable(key="TOKEN", value="abc", is_secret=True)]
        )
        assert VariableResolver(environment=environment).resolve("{{env.TOKEN}}") == "abc"

    def test_bare_token_falls_back_to_environment(self):
        resolver = VariableResolver(environment=env(TOKEN="abc"))
        assert resolver.resolve("Bearer {{TOKEN}}") == "Bearer abc"


class TestContextSource:
    def test_resolves_context_value(self):
        resolver = VariableResolver(context={"user_id": "42"})
        assert resolver.resolve("/users/{{context.user_id}}") == "/users/42"

    def test_structured_context_value_is_json(self):
        resolver = VariableResolver(context={"ids": [1, 2]})
        assert resolver.resolve("{{context.ids}}") == "[1,2]"

    def test_missing_context_value_leaves_token(self):
        assert VariableResolver(context={}).resolve("{{context.x}}") == "{{context.x}}"

    def test_context_does_not_read_environment(self):
        resolver = VariableResolver(environment=env(x="from-env"), context={})
        assert resolver.resolve("{{context.x}}") == "{{context.x}}"

    def test_context_is_a_live_reference(self):
        context: dict = {}
        resolver = VariableResolver(context=context)
        context["late"] = "value"
        assert resolver.resolve("{{context.late}}") == "value"


class TestNodeResultSource:
    @pytest.fixture
    def resolver(self) -> VariableResolver:
        return VariableResolver(
            environment=env(fetch="env-value"),
            results={
                "fetch": NodeResult.success({"id": 5, "tags": ["a", "b"], "name": "Ann"}),
                "broken": NodeResult.failure("boom"),
                "pending": NodeResult(status=NodeStatus.LOADING),
            },
        )

    def test_jsonpath_first_match(self, resolver):
        assert resolver.resolve("{{fetch::$.id}}") == "5"
        assert resolver.resolve("{{fetch::$.tags[*]}}") == "a"

    def test_dotted_path(self, resolver):
        assert resolver.resolve("{{fetch.name}}") == "Ann"

    def test_structured_match_is_json(self, resolver):
        assert resolver.resolve("{{fetch::$.tags}}") == '["a","b"]'

    def test_whole_data_without_path(self, resolver):
        assert resolver.resolve("{{fetch}}") == '{"id":5,"tags":["a","b"],"name":"Ann"}'

    def test_node_id_wins_over_environment(self, resolver):
        assert resolver.resolve("{{fetch}}") != "env-value"

    def test_failed_or_unfinished_node_leaves_token(self, resolver):
        assert resolver.resolve("{{broken::$.id}}") == "{{broken::$.id}}"
        assert resolver.resolve("{{pending::$}}") == "{{pending::$}}"

    def test_unknown_node_leaves_token(self, resolver):
        assert resolver.resolve("{{other::$.id}}") == "{{other::$.id}}"

    def test_no_match_leaves_token(self, resolver):
        assert resolver.resolve("{{fetch::$.missing}}") == "{{fetch::$.missing}}"

    def test_malformed_path_leaves_token_and_warns(self, resolver, caplog):
        with caplog.at_level(logging.WARNING, logger="flowgraph"):
            assert resolver.resolve("{{fetch::$[}}") == "{{fetch::$[}}"
        assert any("Cannot resolve" in r.getMessage() for r in caplog.records)

    def test_mixed_tokens(self, resolver):
        template = "{{fetch::$.name}} has {{unknown}} and id {{fetch::$.id}}"
        assert resolver.resolve(template) == "Ann has {{unknown}} and id 5"


class TestRecursion:
    def test_resolved_values_are_expanded_again(self):
        resolver = VariableResolver(
            environment=env(URL="{{env.HOST}}/api", HOST="https://example.test")
        )
        assert resolver.resolve("{{env.URL}}") == "https://example.test/api"

    def test_self_reference_terminates(self):
        resolver = VariableResolver(environment=env(X="{{env.X}}"))
        assert resolver.resolve("{{env.X}}") == "{{env.X}}"

    def test_indirect_cycle_stops_at_depth_and_warns(self, caplog):
        resolver = VariableResolver(environment=env(A="{{env.B}}", B="{{env.A}}"))
        with caplog.at_level(logging.WARNING, logger="flowgraph"):
            result = resolver.resolve("{{env.A}}")
        assert result in ("{{env.A}}", "{{env.B}}")
        assert any("Max variable resolution depth" in r.getMessage() for r in caplog.records)

    def test_growing_expansion_is_bounded(self):
        resolver = VariableResolver(environment=env(A="x{{env.A}}"), max_depth=10)
        result = resolver.resolve("{{env.A}}")
        assert result == "x" * 10 + "{{env.A}}"

    def test_custom_depth(self):
        resolver = VariableResolver(environment=env(A="x{{env.A}}"), max_depth=3)
        assert resolver.resolve("{{env.A}}") == "xxx{{env.A}}"
