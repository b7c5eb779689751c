"""
Alpha mask utilities: edge-sampling background removal and rounded corners.

Masks are float32 arrays of shape (height, width) holding coverage in [0, 1]:
0 is fully transparent, 1 keeps the pixel's alpha unchanged.
"""

from typing import Dict, Optional, Tuple

import numpy as np
import numpy.typing as npt

# Type aliases
RGBAImage = npt.NDArray[np.uint8]
AlphaMask = npt.NDArray[np.float32]

BACKGROUND_TOLERANCE = 20.0
FEATHER_FACTOR = 0.5

# Pixel classes produced by classify_background
FOREGROUND = 0
BACKGROUND = 1
FEATHERED_EDGE = 2


def border_indices(width: int, height: int) -> npt.NDArray[np.int64]:
    """
    Flat pixel indices of the image border in scan order.

    Order: full top row, full bottom row, full left column, full right column.
    Corner pixels appear more than once, matching a plain edge walk.
    """
    xs = np.arange(width, dtype=np.int64)
    ys = np.arange(height, dtype=np.int64)
    return np.concatenate(
        [
            xs,  # Top edge
            (height - 1) * width + xs,  # Bottom edge
            ys * width,  # Left edge
            ys * width + (width - 1),  # Right edge
        ]
    )


def estimate_background_color(img: RGBAImage) -> Tuple[int, int, int]:
    """
    Pick the most frequent exact RGB triple on the image border.

    The scan keeps a running winner that only changes when another color
    strictly overtakes it, so ties go to the color that reached the count first.

    Args:
        img: (H, W, 3) or (H, W, 4) uint8 array

    Returns:
        Tuple of (R, G, B); white for an empty image
    """
    h, w = img.shape[:2]
    if h == 0 or w == 0:
        return (255, 255, 255)

    flat = img[..., :3].reshape(-1, 3)
    samples = flat[border_indices(w, h)]

    counts: Dict[Tuple[int, int, int], int] = {}
    max_count = 0
    dominant = (255, 255, 255)
    for r, g, b in samples.tolist():
        key = (r, g, b)
        counts[key] = counts.get(key, 0) + 1
        if counts[key] > max_count:
            max_count = counts[key]
            dominant = key
    return dominant


def classify_background(
    img: RGBAImage,
    tolerance: float = BACKGROUND_TOLERANCE,
    bg_color: Optional[Tuple[int, int, int]] = None,
) -> npt.NDArray[np.uint8]:
    """
    Flood fill the background inward from every border pixel.

    Every border pixel seeds the fill. A 4-connected neighbor joins the
    background when its Euclidean RGB distance to the background color is
    below ``tolerance``; regions walled off from the border are never reached.
    Foreground pixels touching the background are then marked as edges.

    The fill walks a flat work list of pixel indices one BFS level at a time.

    Returns:
        (H, W) uint8 array of FOREGROUND / BACKGROUND / FEATHERED_EDGE
    """
    h, w = img.shape[:2]
    if bg_color is None:
        bg_color = estimate_background_color(img)

    flat = img[..., :3].reshape(-1, 3).astype(np.int32)
    diff = flat - np.asarray(bg_color, dtype=np.int32)
    matches = np.sqrt((diff * diff).sum(axis=1)) < tolerance

    background = np.zeros(h * w, dtype=bool)
    frontier = np.unique(border_indices(w, h))
    background[frontier] = True

    while frontier.size:
        x = frontier % w
        y = frontier // w
        neighbors = np.concatenate(
            [
                frontier[y > 0] - w,  # N
                frontier[y < h - 1] + w,  # S
                frontier[x > 0] - 1,  # W
                frontier[x < w - 1] + 1,  # E
            ]
        )
        neighbors = np.unique(neighbors)
        neighbors = neighbors[~background[neighbors] & matches[neighbors]]
        background[neighbors] = True
        frontier = neighbors

    bg = background.reshape(h, w)
    touches_bg = np.zeros_like(bg)
    touches_bg[1:, :] |= bg[:-1, :]
    touches_bg[:-1, :] |= bg[1:, :]
    touches_bg[:, 1:] |= bg[:, :-1]
    touches_bg[:, :-1] |= bg[:, 1:]

    labels = np.full((h, w), FOREGROUND, dtype=np.uint8)
    labels[bg] = BACKGROUND
    labels[~bg & touches_bg] = FEATHERED_EDGE
    return labels


def background_alpha_mask(
    img: RGBAImage,
    tolerance: float = BACKGROUND_TOLERANCE,
    feather: float = FEATHER_FACTOR,
) -> AlphaMask:
    """Alpha mask for edge-sampled background removal: 0 / feather / 1."""
    labels = classify_background(img, tolerance=tolerance)
    mask = np.ones(labels.shape, dtype=np.float32)
    mask[labels == BACKGROUND] = 0.0
    mask[labels == FEATHERED_EDGE] = feather
    return mask


def clamp_corner_radius(width: int, height: int, radius: float) -> float:
    return min(max(float(radius), 0.0), min(width, height) / 2)


def corner_mask(width: int, height: int, radius: float) -> AlphaMask:
    """
    Hard-edged rounded rectangle covering the whole canvas.

    A pixel is kept when its center lies within ``radius`` of the inner
    rectangle [r, w - r] x [r, h - r]; the radius is clamped to min(w, h) / 2.
    """
    r = clamp_corner_radius(width, height, radius)
    mask = np.ones((height, width), dtype=np.float32)
    if r <= 0:
        return mask

    xs = np.arange(width, dtype=np.float64) + 0.5
    ys = np.arange(height, dtype=np.float64) + 0.5
    dx = xs - np.clip(xs, r, width - r)
    dy = ys - np.clip(ys, r, height - r)
    outside = dy[:, None] ** 2 + dx[None, :] ** 2 > r * r
    mask[outside] = 0.0
    return mask


def apply_alpha_mask(img: RGBAImage, mask: AlphaMask) -> RGBAImage:
    """Multiply ``mask`` into the alpha channel, so successive masks intersect."""
    if mask.shape != img.shape[:2]:
        raise ValueError(
            f"Mask shape {mask.shape} does not match image {img.shape[:2]}"
        )
    out = img.copy()
    alpha = out[..., 3].astype(np.float32) * np.clip(mask, 0.0, 1.0)
    out[..., 3] = np.floor(alpha).astype(np.uint8)
    return out
