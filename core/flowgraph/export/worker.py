"""
One-shot export worker.

Formatting runs off the event loop, in a single-use process (default) or
thread pool: the node posts one message, awaits one response and the pool
is shut down right after.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any

from flowgraph.export.formatters import format_export

logger = logging.getLogger(__name__)

WORKER_BACKENDS = ("process", "thread")


class ExportWorker:
    """
    Formats export payloads in the background.

    Example:
        worker = ExportWorker(backend="thread")
        response = await worker.post_message({"inputData": rows, "config": {...}})
        if response["success"]:
            save(response["fileName"], response["fileContent"])
    """

    def __init__(self, backend: str = "process"):
        if backend not in WORKER_BACKENDS:
            raise ValueError(
                f"Unknown export worker backend '{backend}', expected one of {WORKER_BACKENDS}"
            )
        self.backend = backend
        self._used = False

    def _create_executor(self) -> Executor:
        if self.backend == "process":
            return ProcessPoolExecutor(max_workers=1)
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="flowgraph-export")

    async def post_message(self, message: dict[str, Any]) -> dict[str, Any]:
        """Send the message and wait for the single response."""
        if self._used:
            raise RuntimeError("Export worker already terminated")
        self._used = True

        executor = self._create_executor()
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(executor, format_export, message)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            logger.debug(f"Export worker ({self.backend}) terminated")


ExportWorkerFactory = Callable[[], ExportWorker]


def create_worker_factory(backend: str = "process") -> ExportWorkerFactory:
    """Factory producing a fresh worker per export."""

    def factory() -> ExportWorker:
        return ExportWorker(backend=backend)

    return factory
