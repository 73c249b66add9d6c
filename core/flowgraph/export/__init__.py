"""Export formatting, background worker and file delivery."""

from flowgraph.export.formatters import EXPORT_FORMATS, flatten_object, format_export
from flowgraph.export.sinks import DirectoryDownloadSink, DownloadSink
from flowgraph.export.worker import ExportWorker, ExportWorkerFactory, create_worker_factory

__all__ = [
    "EXPORT_FORMATS",
    "DirectoryDownloadSink",
    "DownloadSink",
    "ExportWorker",
    "ExportWorkerFactory",
    "create_worker_factory",
    "flatten_object",
    "format_export",
]
