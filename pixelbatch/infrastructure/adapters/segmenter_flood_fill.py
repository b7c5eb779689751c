from __future__ import annotations

import asyncio
from typing import Optional

import numpy as np

from pixelbatch.application.interfaces.segmentation import (
    ISegmentationBackend,
    ProgressCallback,
)
from pixelbatch.core.config import settings
from pixelbatch.utils.mask_utils import background_alpha_mask


class FloodFillSegmenter(ISegmentationBackend):
    """Built-in background removal: flood fill from the border color.

    Needs no model or network, so it is always available.
    """

    name = "heuristic"

    def __init__(
        self, tolerance: Optional[float] = None, feather: Optional[float] = None
    ) -> None:
        self.tolerance = settings.background_tolerance if tolerance is None else tolerance
        self.feather = settings.feather_factor if feather is None else feather

    async def segment(
        self,
        pixels: np.ndarray,
        width: int,
        height: int,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> np.ndarray:
        return await asyncio.to_thread(
            background_alpha_mask, pixels, self.tolerance, self.feather
        )
