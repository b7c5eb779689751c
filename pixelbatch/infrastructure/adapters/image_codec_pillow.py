from __future__ import annotations

import asyncio
from typing import Optional, Tuple

import numpy as np

from pixelbatch.application.interfaces.image_codec import IImageCodec
from pixelbatch.core.config import settings
from pixelbatch.core.pyd_schemas import OutputFormat
from pixelbatch.utils.image_utils import decode_image_bytes, encode_image_array


class PillowImageCodec(IImageCodec):
    """IImageCodec backed by Pillow; blocking work runs in a worker thread."""

    def __init__(self, matte: Optional[Tuple[int, int, int]] = None) -> None:
        self.matte = matte or settings.jpeg_background_rgb

    async def decode(self, data: bytes, *, name: Optional[str] = None) -> np.ndarray:
        return await asyncio.to_thread(decode_image_bytes, data, name)

    async def encode(
        self,
        pixels: np.ndarray,
        *,
        output_format: OutputFormat,
        quality: Optional[int] = None,
    ) -> bytes:
        def _run():
            return encode_image_array(
                pixels, output_format, quality=quality, matte=self.matte
            )

        return await asyncio.to_thread(_run)
