from __future__ import annotations

from typing import Protocol, runtime_checkable

from .image_codec import IImageCodec
from .segmentation import ISegmentationBackend
from .utils import IClock


@runtime_checkable
class ITransformPipelineAdapters(Protocol):
    codec: IImageCodec
    segmenter: ISegmentationBackend
    clock: IClock
