from __future__ import annotations

import asyncio

from pixelbatch.application.pipeline.base import PipelineContext, BaseStep
from pixelbatch.utils.mask_utils import apply_alpha_mask, corner_mask


class RoundCornersStep(BaseStep):
    """Intersect the canvas alpha with a rounded rectangle.

    Runs after background removal so both masks combine.
    """

    name = "round_corners"
    required_keys = ["canvas"]

    def can_skip(self, context: PipelineContext) -> bool:
        return context.input["options"].corner_radius <= 0

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        canvas = context.get("canvas")
        radius = context.input["options"].corner_radius

        def _round():
            height, width = canvas.shape[:2]
            return apply_alpha_mask(canvas, corner_mask(width, height, radius))

        context.set("canvas", await asyncio.to_thread(_round))
