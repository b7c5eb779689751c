from __future__ import annotations

import asyncio

from pixelbatch.application.pipeline.base import PipelineContext, BaseStep
from pixelbatch.core.config import settings
from pixelbatch.core.pyd_schemas import TransformOptions
from pixelbatch.utils.geometry_utils import resolve_geometry
from pixelbatch.utils.image_utils import draw_image, new_canvas


class FitCanvasStep(BaseStep):
    """Draw the source onto a canvas of the target size under the fit policy.

    Formats without transparency get an opaque matte, the others start fully
    transparent so letterbox margins stay clear.

    Input:  source_pixels, options
    Output: canvas (target_height, target_width, 4 uint8)
    """

    name = "fit_canvas"
    required_keys = ["source_pixels"]

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        options: TransformOptions = context.input["options"]
        source = context.get("source_pixels")
        src_h, src_w = source.shape[:2]

        geometry = resolve_geometry(
            src_w, src_h, options.target_width, options.target_height, options.fit
        )
        fill = None
        if not options.output_format.supports_alpha:
            fill = settings.jpeg_background_rgb

        def _draw():
            canvas = new_canvas(options.target_width, options.target_height, fill=fill)
            return draw_image(canvas, source, geometry)

        context.set("canvas", await asyncio.to_thread(_draw))
        context.set("geometry", geometry)
        # The decoded source is no longer needed once drawn
        context.remove("source_pixels")
