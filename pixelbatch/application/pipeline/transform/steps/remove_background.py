from __future__ import annotations

import asyncio
import logging

from pixelbatch.application.interfaces import ISegmentationBackend
from pixelbatch.application.pipeline.base import PipelineContext, BaseStep
from pixelbatch.utils.mask_utils import apply_alpha_mask

logger = logging.getLogger(__name__)


class RemoveBackgroundStep(BaseStep):
    """Ask the segmentation backend for a mask and multiply it into alpha.

    Input:  canvas, options.remove_background, progress (optional callback)
    Output: canvas with background alpha cleared
    """

    name = "remove_background"
    required_keys = ["canvas"]

    def __init__(self, segmenter: ISegmentationBackend) -> None:
        self.segmenter = segmenter

    def can_skip(self, context: PipelineContext) -> bool:
        return not context.input["options"].remove_background

    async def run(self, context: PipelineContext) -> None:  # type: ignore[override]
        canvas = context.get("canvas")
        height, width = canvas.shape[:2]
        mask = await self.segmenter.segment(
            canvas, width, height, progress=context.input.get("progress")
        )
        logger.debug(
            "Background mask from %s for %s",
            getattr(self.segmenter, "name", type(self.segmenter).__name__),
            context.get_run_id(),
        )
        context.set("canvas", await asyncio.to_thread(apply_alpha_mask, canvas, mask))
