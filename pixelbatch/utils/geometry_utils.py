"""
Geometry helpers for placing a source image onto a target canvas.
"""

from dataclasses import dataclass
from typing import Optional

from pixelbatch.core.exceptions import InvalidDimensions
from pixelbatch.core.pyd_schemas import FitPolicy


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class Geometry:
    src_rect: Rect
    dst_rect: Rect


def validate_dimensions(
    width: float, height: float, label: str = "image", max_side: Optional[int] = None
) -> None:
    """Raise InvalidDimensions unless both sides are strictly positive.

    When max_side is given, sides above it are rejected as well.
    """
    if width is None or height is None or width <= 0 or height <= 0:
        raise InvalidDimensions(
            f"Invalid {label} dimensions: {width}x{height}", width=width, height=height
        )
    if max_side is not None and max(width, height) > max_side:
        raise InvalidDimensions(
            f"{label.capitalize()} dimensions {width}x{height} exceed the {max_side}px limit",
            width=width,
            height=height,
        )


def resolve_geometry(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
    fit: FitPolicy,
) -> Geometry:
    """
    Compute which part of the source is drawn where on the canvas.

    Args:
        source_width, source_height: Decoded source size in pixels
        target_width, target_height: Canvas size in pixels
        fit: contain letterboxes the whole source; cover and crop fill the
            canvas and cut the overflowing axis symmetrically

    Returns:
        Geometry with src_rect in source pixels and dst_rect in canvas pixels
    """
    validate_dimensions(source_width, source_height, "source")
    validate_dimensions(target_width, target_height, "target")

    src_aspect = source_width / source_height
    dst_aspect = target_width / target_height

    if fit == FitPolicy.contain:
        if src_aspect > dst_aspect:
            # Wider than the canvas: full width, letterbox top and bottom
            dst_w = float(target_width)
            dst_h = min(target_width / src_aspect, float(target_height))
        else:
            dst_w = min(target_height * src_aspect, float(target_width))
            dst_h = float(target_height)
        dst = Rect(
            (target_width - dst_w) / 2, (target_height - dst_h) / 2, dst_w, dst_h
        )
        src = Rect(0.0, 0.0, float(source_width), float(source_height))
        return Geometry(src_rect=src, dst_rect=dst)

    if fit in (FitPolicy.cover, FitPolicy.crop):
        if src_aspect > dst_aspect:
            src_w = min(source_height * dst_aspect, float(source_width))
            src_h = float(source_height)
        else:
            src_w = float(source_width)
            src_h = min(source_width / dst_aspect, float(source_height))
        src = Rect((source_width - src_w) / 2, (source_height - src_h) / 2, src_w, src_h)
        dst = Rect(0.0, 0.0, float(target_width), float(target_height))
        return Geometry(src_rect=src, dst_rect=dst)

    raise ValueError(f"Unsupported fit policy: {fit}")
