from __future__ import annotations

from functools import lru_cache
from types import SimpleNamespace
from typing import Optional

from pixelbatch.application.interfaces import ISegmentationBackend
from pixelbatch.application.interfaces.transform_adapters import (
    ITransformPipelineAdapters,
)
from pixelbatch.infrastructure.adapters import (
    FloodFillSegmenter,
    PillowImageCodec,
    RembgSegmenter,
    SystemClock,
)
from pixelbatch.core.config import settings


@lru_cache(maxsize=None)
def _shared_segmenter(backend: str) -> ISegmentationBackend:
    # One instance per backend so model state survives across requests
    if backend == "rembg":
        return RembgSegmenter()
    if backend == "heuristic":
        return FloodFillSegmenter()
    raise ValueError(f"Unknown segmentation backend: {backend}")


def get_segmenter(backend: Optional[str] = None) -> ISegmentationBackend:
    return _shared_segmenter(backend or settings.segmentation_backend)


def get_transform_adapter_bundle(
    *, segmentation_backend: Optional[str] = None
) -> ITransformPipelineAdapters:
    """Provide the adapters container for the transform pipeline."""
    return SimpleNamespace(
        codec=PillowImageCodec(),
        segmenter=get_segmenter(segmentation_backend),
        clock=SystemClock(),
    )
