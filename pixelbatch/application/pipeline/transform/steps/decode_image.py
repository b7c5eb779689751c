from __future__ import annotations

from pixelbatch.application.interfaces import IImageCodec
from pixelbatch.application.pipeline.base import PipelineContext, BaseStep


class DecodeImageStep(BaseStep):
    """Decode the uploaded bytes.

    Input:  data, image_name
    Output: source_pixels (H, W, 4 uint8)
    """

    name = "decode_image"

    def __init__(self, codec: IImageCodec) -> None:
        self.codec = codec

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        pixels = await self.codec.decode(
            context.input["data"], name=context.input.get("image_name")
        )
        context.set("source_pixels", pixels)
