from .utils import IClock
from .image_codec import IImageCodec
from .segmentation import ISegmentationBackend, ProgressCallback
from .transform_adapters import ITransformPipelineAdapters

__all__ = [
    "IClock",
    "IImageCodec",
    "ISegmentationBackend",
    "ProgressCallback",
    "ITransformPipelineAdapters",
]
