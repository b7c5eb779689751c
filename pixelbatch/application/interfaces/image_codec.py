from __future__ import annotations

from typing import Optional, Protocol

import numpy as np

from pixelbatch.core.pyd_schemas import OutputFormat


class IImageCodec(Protocol):
    """Turns raw uploads into RGBA pixel arrays and back into encoded bytes."""

    async def decode(self, data: bytes, *, name: Optional[str] = None) -> np.ndarray:
        """Return an (H, W, 4) uint8 array; raise DecodeFailure on bad input."""
        ...

    async def encode(
        self,
        pixels: np.ndarray,
        *,
        output_format: OutputFormat,
        quality: Optional[int] = None,
    ) -> bytes:
        """Encode an (H, W, 4) uint8 array; raise EncodeFailure on error.

        quality is 0..100 and ignored for PNG.
        """
        ...
