from __future__ import annotations

from typing import Callable, Optional, Protocol

import numpy as np

# (stage_key, current, total), e.g. ("fetch:isnet-general-use", 1048576, 44173029)
ProgressCallback = Callable[[str, int, int], None]


class ISegmentationBackend(Protocol):
    """Separates foreground from background.

    Implementations return a float32 (H, W) coverage mask in [0, 1]; the
    pipeline multiplies it into the alpha channel. Backends that load a model
    may report download/compute progress through ``progress``.
    """

    name: str

    async def segment(
        self,
        pixels: np.ndarray,
        width: int,
        height: int,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> np.ndarray:
        ...
