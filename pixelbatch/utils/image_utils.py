"""
Image processing utilities for batch transformation.

This module provides decoding, canvas compositing and encoding helpers that
operate on RGBA numpy arrays of shape (height, width, 4).
"""

import io
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from pixelbatch.core.exceptions import DecodeFailure, EncodeFailure
from pixelbatch.core.pyd_schemas import OutputFormat
from pixelbatch.utils.geometry_utils import Geometry
from pixelbatch.utils.mask_utils import RGBAImage


def decode_image_bytes(data: bytes, name: Optional[str] = None) -> RGBAImage:
    """
    Decode raw bytes into an RGBA array.

    EXIF orientation is applied so the pixels match what a viewer shows.
    Multi-frame files contribute their first frame only.
    """
    if not data:
        raise DecodeFailure("Empty image data", image_name=name)
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Unable to decode image: {e}", image_name=name) from e
    return np.array(rgba, dtype=np.uint8)


def new_canvas(
    width: int, height: int, fill: Optional[Tuple[int, int, int]] = None
) -> RGBAImage:
    """Transparent canvas, or an opaque one filled with ``fill``."""
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    if fill is not None:
        canvas[..., :3] = fill
        canvas[..., 3] = 255
    return canvas


def _pixel_span(start: float, length: float, limit: int) -> Tuple[int, int]:
    """Round a fractional span to whole pixels inside [0, limit], at least 1 wide."""
    lo = min(max(int(round(start)), 0), limit - 1)
    hi = min(max(int(round(start + length)), lo + 1), limit)
    return lo, hi


def composite_over(dst: RGBAImage, src: RGBAImage) -> None:
    """Source-over blend ``src`` onto ``dst`` in place (straight alpha)."""
    src_a = src[..., 3:4].astype(np.float32) / 255.0
    dst_a = dst[..., 3:4].astype(np.float32) / 255.0
    out_a = src_a + dst_a * (1.0 - src_a)
    src_rgb = src[..., :3].astype(np.float32)
    dst_rgb = dst[..., :3].astype(np.float32)
    out_rgb = np.divide(
        src_rgb * src_a + dst_rgb * dst_a * (1.0 - src_a),
        out_a,
        out=np.zeros_like(src_rgb),
        where=out_a > 0,
    )
    dst[..., :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    dst[..., 3:4] = np.clip(np.rint(out_a * 255.0), 0, 255).astype(np.uint8)


def draw_image(canvas: RGBAImage, img: RGBAImage, geometry: Geometry) -> RGBAImage:
    """
    Scale ``geometry.src_rect`` of ``img`` into ``geometry.dst_rect`` of ``canvas``.

    Rect edges are rounded to whole pixels. Shrinking uses area interpolation,
    enlarging uses bilinear.
    """
    canvas_h, canvas_w = canvas.shape[:2]
    img_h, img_w = img.shape[:2]

    src, dst = geometry.src_rect, geometry.dst_rect
    sx0, sx1 = _pixel_span(src.x, src.width, img_w)
    sy0, sy1 = _pixel_span(src.y, src.height, img_h)
    dx0, dx1 = _pixel_span(dst.x, dst.width, canvas_w)
    dy0, dy1 = _pixel_span(dst.y, dst.height, canvas_h)

    crop = img[sy0:sy1, sx0:sx1]
    out_w, out_h = dx1 - dx0, dy1 - dy0
    shrinking = out_w < crop.shape[1] or out_h < crop.shape[0]
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    tile = cv2.resize(crop, (out_w, out_h), interpolation=interpolation)

    composite_over(canvas[dy0:dy1, dx0:dx1], tile)
    return canvas


def flatten_alpha(img: RGBAImage, matte: Tuple[int, int, int]) -> np.ndarray:
    """Blend onto an opaque ``matte`` and drop alpha, returning RGB."""
    base = new_canvas(img.shape[1], img.shape[0], fill=matte)
    composite_over(base, img)
    return base[..., :3]


def encode_image_array(
    img: RGBAImage,
    output_format: OutputFormat,
    quality: Optional[int] = None,
    matte: Tuple[int, int, int] = (255, 255, 255),
) -> bytes:
    """
    Encode an RGBA array as JPEG, PNG or WebP.

    JPEG has no alpha channel, so transparent pixels are flattened onto
    ``matte`` first. ``quality`` is ignored for PNG.
    """
    if output_format.supports_alpha:
        pil_img = Image.fromarray(np.ascontiguousarray(img))
    else:
        pil_img = Image.fromarray(np.ascontiguousarray(flatten_alpha(img, matte)))

    save_kwargs = {}
    if output_format is not OutputFormat.png and quality is not None:
        save_kwargs["quality"] = int(quality)

    buf = io.BytesIO()
    try:
        pil_img.save(buf, format=output_format.pillow_format, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeFailure(
            f"Unable to encode {output_format.value}: {e}",
            output_format=output_format.value,
        ) from e
    return buf.getvalue()
