"""
Environment variables supplied to a run.

The environment is owned by an external store (persisted and encrypted at
rest elsewhere). The runtime only reads a decrypted snapshot taken at run
start and forwards ``saveToEnvironment`` instructions back to the store.
"""

import logging
import threading
import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class EnvironmentVariable(BaseModel):
    """A single key/value entry of an environment."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    key: str
    value: str = ""
    enabled: bool = True
    is_secret: bool = False

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}


class Environment(BaseModel):
    """A named set of variables, already decrypted in memory."""

    id: str = ""
    name: str = ""
    variables: list[EnvironmentVariable] = Field(default_factory=list)

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}

    def lookup(self, key: str) -> str | None:
        """Return the value of the enabled variable ``key``, or None."""
        for variable in self.variables:
            if variable.key == key and variable.enabled:
                return variable.value
        return None

    def upsert(self, key: str, value: str, is_secret: bool = False) -> EnvironmentVariable:
        """Create or update ``key``. Updating re-enables a disabled variable."""
        for variable in self.variables:
            if variable.key == key:
                variable.value = value
                variable.is_secret = is_secret
                variable.enabled = True
                return variable
        variable = EnvironmentVariable(key=key, value=value, is_secret=is_secret)
        self.variables.append(variable)
        return variable


@runtime_checkable
class EnvironmentStore(Protocol):
    """Collaborator that owns the active environment."""

    def get_active_environment(self) -> Environment | None:
        """Return the decrypted active environment, or None if none is selected."""
        ...

    def save_variable(self, key: str, value: str, is_secret: bool = False) -> None:
        """Persist a new or updated variable in the active environment."""
        ...


class InMemoryEnvironmentStore:
    """
    Environment store kept in process memory.

    Used by the CLI and by tests. Embedding applications plug in their own
    store (database-backed, with encryption) through the same protocol.
    """

    def __init__(self, environment: Environment | None = None):
        self._environment = environment
        self._lock = threading.Lock()

    def get_active_environment(self) -> Environment | None:
        with self._lock:
            if self._environment is None:
                return None
            return self._environment.model_copy(deep=True)

    def save_variable(self, key: str, value: str, is_secret: bool = False) -> None:
        with self._lock:
            if self._environment is None:
                self._environment = Environment(name="default")
            self._environment.upsert(key, value, is_secret=is_secret)
        logger.info(f"Saved environment variable '{key}'{' (secret)' if is_secret else ''}")
