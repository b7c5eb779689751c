from __future__ import annotations

from pixelbatch.application.pipeline.base import PipelineContext, BaseStep
from pixelbatch.core.config import settings
from pixelbatch.core.pyd_schemas import (
    FilenameMetadata,
    ProcessedResult,
    TransformOptions,
)
from pixelbatch.utils.filename_utils import FilenameRegistry, expand_template


class AssignFilenameStep(BaseStep):
    """Name the output from the batch template and build the final result.

    The name is registered in the batch registry before the next image runs.

    Input:  encoded, output_size, options, index, timestamp, registry
    Output: filename, result (ProcessedResult)
    """

    name = "assign_filename"
    required_keys = ["encoded", "output_size"]

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        options: TransformOptions = context.input["options"]
        registry: FilenameRegistry = context.input["registry"]
        encoded: bytes = context.get("encoded")
        width, height = context.get("output_size")

        metadata = FilenameMetadata(
            original_name=context.input["image_name"],
            width=width,
            height=height,
            output_format=options.output_format,
            preset_label=options.preset_label,
            timestamp=context.input["timestamp"],
            index=context.input["index"],
        )
        candidate = expand_template(
            options.filename_template,
            metadata,
            max_length=settings.filename_max_length,
        )
        filename = registry.make_unique(candidate)

        context.set("filename", filename)
        context.set(
            "result",
            ProcessedResult(
                data=encoded,
                filename=filename,
                width=width,
                height=height,
                size=len(encoded),
                original_id=str(context.input["image_id"]),
            ),
        )
