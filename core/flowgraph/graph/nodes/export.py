"""Export node: formats its input in a background worker and delivers the file."""

import logging

from flowgraph.graph.node import ExportConfig, NodeType, now_ms
from flowgraph.graph.nodes.base import NodeContext, NodeHandler, NodeOutcome

logger = logging.getLogger(__name__)


class ExportHandler(NodeHandler):
    node_type = NodeType.EXPORT
    default_error = "Export operation failed"
    config_model = ExportConfig

    async def run(self, ctx: NodeContext) -> NodeOutcome:
        config: ExportConfig = self.load_config(ctx.node)
        ctx.update_data({"inputData": ctx.input_data})

        input_data = ctx.input_data
        if input_data is None or (not isinstance(input_data, dict | list) and not input_data):
            raise ValueError("No input data provided for export")
        records = input_data if isinstance(input_data, list) else [input_data]

        factory = ctx.services.export_worker_factory
        if factory is None:
            raise RuntimeError("Background export workers are not available in this environment.")
        sink = ctx.services.download_sink
        if sink is None:
            raise RuntimeError("No download destination configured for exports.")

        worker = factory()
        response = await worker.post_message(
            {"inputData": input_data, "config": config.model_dump(mode="json", by_alias=True)}
        )
        if not response.get("success"):
            return NodeOutcome.failure(response.get("error") or "Worker formatting failed")

        file_name = response["fileName"]
        location = await sink.deliver(file_name, response["fileContent"], response["mimeType"])

        data = {
            "exportedFormat": config.export_format,
            "fileName": file_name,
            "recordCount": len(records),
            "timestamp": now_ms(),
        }
        if location:
            data["filePath"] = location
        return NodeOutcome.success(data)
