#!/usr/bin/env python3
"""
Users Flow Demo

Runs a small flow against the public JSONPlaceholder API:
  GET /users → select e-mails → loop (log each) → export CSV

Real HTTP through the in-process proxy, real EventBus, real export worker.
Node lifecycle events are printed as they happen.

Usage:
    cd core
    python demos/users_flow_demo.py

The exported CSV lands in a temporary directory printed at the end.
"""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path

# Add core to path
_CORE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_CORE_DIR))

from flowgraph import (  # noqa: E402
    Environment,
    EnvironmentVariable,
    EventBus,
    EventType,
    FlowEvent,
    FlowExecutor,
    GraphSpec,
    InMemoryEnvironmentStore,
    RuntimeConfig,
)
from flowgraph.observability import configure_logging  # noqa: E402

logger = logging.getLogger("users_flow_demo")

EXPORT_DIR = Path(tempfile.mkdtemp(prefix="flowgraph_demo_"))

FLOW = {
    "id": "users-demo",
    "name": "Users demo",
    "nodes": [
        {
            "id": "get-users",
            "type": "httpRequest",
            "data": {"method": "GET", "url": "{{env.API}}/users"},
        },
        {
            "id": "emails",
            "type": "selectFields",
            "data": {"jsonPaths": [{"id": "p1", "path": "$[*].email"}]},
        },
        {"id": "each", "type": "loopNode", "data": {"inputArrayPath": "$"}},
        {"id": "show", "type": "jsonNode", "data": {}},
        {
            "id": "count",
            "type": "variableSetNode",
            "data": {"variableName": "loop_result", "variableValue": "{{each::$.itemCount}}"},
        },
        {
            "id": "save",
            "type": "exportNode",
            "data": {"exportFormat": "csv", "fileName": "users", "includeTimestamp": True},
        },
    ],
    "edges": [
        {"id": "e1", "source": "get-users", "target": "emails"},
        {"id": "e2", "source": "emails", "target": "each"},
        {"id": "e3", "source": "each", "target": "show", "sourceHandle": "loopBody"},
        {"id": "e4", "source": "each", "target": "count", "sourceHandle": "loopEnd"},
        {"id": "e5", "source": "get-users", "target": "save"},
    ],
}


async def print_event(event: FlowEvent) -> None:
    detail = event.data.get("error") or event.data.get("latency_ms", "")
    print(f"  {event.type.value:<16} {event.node_id or '':<10} {detail}")


async def main() -> None:
    configure_logging(level="WARNING", format="human")

    bus = EventBus()
    bus.subscribe(
        event_types=[EventType.NODE_STARTED, EventType.NODE_COMPLETED, EventType.NODE_FAILED],
        handler=print_event,
    )

    environment = Environment(
        name="demo",
        variables=[EnvironmentVariable(key="API", value="https://jsonplaceholder.typicode.com")],
    )
    executor = FlowExecutor(
        environment_store=InMemoryEnvironmentStore(environment),
        event_bus=bus,
        config=RuntimeConfig(export_dir=EXPORT_DIR, export_worker="process"),
    )

    result = await executor.run_flow(GraphSpec.model_validate(FLOW))

    print()
    print(f"Run {result.run_id}: {'ok' if result.success else 'failed'} in {result.duration_ms}ms")
    print(f"Context: {result.context}")
    for node_id, error in result.errors.items():
        print(f"  ✗ {node_id}: {error}")
    saved = result.result_for("save")
    if saved and saved.succeeded:
        print(f"Exported {saved.data['recordCount']} record(s) to {saved.data['filePath']}")


if __name__ == "__main__":
    asyncio.run(main())
