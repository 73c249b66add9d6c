"""Destinations for exported files."""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class DownloadSink(Protocol):
    """Receives a finished export, e.g. to offer it as a download."""

    async def deliver(self, file_name: str, content: str, mime_type: str) -> str | None:
        """Hand over the file. Returns where it ended up, if anywhere."""
        ...


class DirectoryDownloadSink:
    """Writes exported files into a local directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    async def deliver(self, file_name: str, content: str, mime_type: str) -> str:
        # Only the final path component is honoured
        target = self.directory / Path(file_name).name

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".export-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                    f.write(content)
                os.replace(tmp_path, target)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise

        await asyncio.to_thread(_write)
        logger.info(f"Exported {file_name} ({mime_type}) to {target}")
        return str(target)
