"""
Command-line interface for flowgraph.

Usage:
    flowgraph run flows/users.json
    flowgraph run flows/users.json --env envs/dev.json
    flowgraph run flows/users.json --node get-user
    flowgraph validate flows/users.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from flowgraph.environment import Environment, EnvironmentVariable, InMemoryEnvironmentStore
from flowgraph.graph.edge import GraphSpec
from flowgraph.graph.executor import FlowExecutor
from flowgraph.observability import configure_logging

logger = logging.getLogger(__name__)


def load_graph(path: str) -> GraphSpec:
    """Load a flow snapshot ``{id, name, nodes, edges}`` from a JSON file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return GraphSpec.model_validate(data)


def load_environment(path: str) -> Environment:
    """
    Load an environment from JSON.

    Accepts either ``{"name": ..., "variables": [{key, value, ...}]}`` or a
    flat ``{"KEY": "value"}`` object.
    """
    data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict) and isinstance(data.get("variables"), list):
        return Environment.model_validate(data)
    if isinstance(data, dict):
        return Environment(
            name=Path(path).stem,
            variables=[EnvironmentVariable(key=k, value=str(v)) for k, v in data.items()],
        )
    raise ValueError(f"Unsupported environment file format: {path}")


def cmd_run(args: argparse.Namespace) -> int:
    try:
        graph = load_graph(args.flow)
        environment = load_environment(args.env) if args.env else None
    except (OSError, ValueError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    executor = FlowExecutor(environment_store=InMemoryEnvironmentStore(environment))

    try:
        if args.node:
            result = asyncio.run(executor.execute_single_node(graph, args.node))
        else:
            result = asyncio.run(executor.run_flow(graph))
    except KeyError as e:
        print(f"Error: {e.args[0] if e.args else e}", file=sys.stderr)
        return 2

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        graph = load_graph(args.flow)
    except (OSError, ValueError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    errors = graph.validate_structure()
    if errors:
        print(f"✗ {len(errors)} problem(s) in {args.flow}:")
        for error in errors:
            print(f"  • {error}")
        return 1

    print(f"✓ {args.flow} is valid ({len(graph.nodes)} nodes, {len(graph.edges)} edges)")
    return 0


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    run_parser = subparsers.add_parser("run", help="Run a flow from its root nodes")
    run_parser.add_argument("flow", help="Path to the flow JSON snapshot")
    run_parser.add_argument("--env", help="Path to an environment JSON file")
    run_parser.add_argument("--node", help="Start execution at this node instead of the roots")
    run_parser.set_defaults(func=cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Check a flow's structure")
    validate_parser.add_argument("flow", help="Path to the flow JSON snapshot")
    validate_parser.set_defaults(func=cmd_validate)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="flowgraph",
        description="Flowgraph - run and validate API flow graphs",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    parser.add_argument(
        "--log-format",
        default="auto",
        choices=["auto", "json", "human"],
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, format=args.log_format)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
