from __future__ import annotations

from pixelbatch.application.interfaces import IImageCodec
from pixelbatch.application.pipeline.base import PipelineContext, BaseStep
from pixelbatch.core.pyd_schemas import TransformOptions


class EncodeImageStep(BaseStep):
    """Encode the finished canvas.

    Input:  canvas, options
    Output: encoded (bytes)
    """

    name = "encode_image"
    required_keys = ["canvas"]

    def __init__(self, codec: IImageCodec) -> None:
        self.codec = codec

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        options: TransformOptions = context.input["options"]
        canvas = context.get("canvas")
        encoded = await self.codec.encode(
            canvas,
            output_format=options.output_format,
            quality=options.encode_quality,
        )
        context.set("encoded", encoded)
        context.set("output_size", (canvas.shape[1], canvas.shape[0]))
        context.remove("canvas")
