"""Tests for environments and the in-memory environment store."""

from flowgraph.environment import (
    Environment,
    EnvironmentStore,
    EnvironmentVariable,
    InMemoryEnvironmentStore,
)


def test_lookup_ignores_disabled_variables():
    env = Environment(
        variables=[
            EnvironmentVariable(key="A", value="1"),
            EnvironmentVariable(key="B", value="2", enabled=False),
        ]
    )
    assert env.lookup("A") == "1"
    assert env.lookup("B") is None
    assert env.lookup("C") is None


def test_upsert_updates_and_reenables():
    env = Environment(variables=[EnvironmentVariable(key="A", value="1", enabled=False)])

    env.upsert("A", "2", is_secret=True)
    env.upsert("B", "3")

    assert env.lookup("A") == "2"
    assert env.variables[0].is_secret is True
    assert [v.key for v in env.variables] == ["A", "B"]


def test_environment_accepts_camel_case():
    env = Environment.model_validate(
        {"name": "dev", "variables": [{"key": "TOKEN", "value": "x", "isSecret": True}]}
    )
    assert env.variables[0].is_secret is True


class TestInMemoryEnvironmentStore:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryEnvironmentStore(), EnvironmentStore)

    def test_returns_independent_copies(self):
        store = InMemoryEnvironmentStore(Environment(name="dev"))

        snapshot = store.get_active_environment()
        snapshot.upsert("A", "1")

        assert store.get_active_environment().lookup("A") is None

    def test_save_variable(self):
        store = InMemoryEnvironmentStore(Environment(name="dev"))
        store.save_variable("A", "1")
        store.save_variable("A", "2", is_secret=True)

        env = store.get_active_environment()
        assert env.lookup("A") == "2"
        assert len(env.variables) == 1

    def test_save_without_environment_creates_default(self):
        store = InMemoryEnvironmentStore()
        assert store.get_active_environment() is None

        store.save_variable("A", "1")

        env = store.get_active_environment()
        assert env.name == "default"
        assert env.lookup("A") == "1"
