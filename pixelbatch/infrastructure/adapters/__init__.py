from .image_codec_pillow import PillowImageCodec
from .segmenter_flood_fill import FloodFillSegmenter
from .segmenter_rembg import RembgSegmenter
from .system_clock import SystemClock

__all__ = [
    "PillowImageCodec",
    "FloodFillSegmenter",
    "RembgSegmenter",
    "SystemClock",
]
