"""
Filename templating, sanitizing and per-batch uniqueness.
"""

import math
import re
from typing import Iterator, Set

from pixelbatch.core.pyd_schemas import FilenameMetadata

MAX_FILENAME_LENGTH = 200
EMPTY_FILENAME = "untitled"

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
_INVALID_CHARS_RE = re.compile(r'[/\\?%*:|"<>]')
_REPEATED_DASH_RE = re.compile(r"-{2,}")
_EDGE_RE = re.compile(r"^[ -]+|[ -]+$")


def split_extension(filename: str) -> tuple:
    """Split at the last dot; a leading dot (".env") is not an extension.

    Returns:
        (stem, ext) where ext keeps its dot, e.g. ("photo", ".png")
    """
    dot = filename.rfind(".")
    if dot > 0:
        return filename[:dot], filename[dot:]
    return filename, ""


def aspect_ratio_label(width: int, height: int) -> str:
    """Reduce width:height by their gcd, rendered as e.g. ``16x9``."""
    if not width or not height:
        return ""
    divisor = math.gcd(width, height)
    return f"{width // divisor}x{height // divisor}"


def sanitize_filename(filename: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """
    Make a filename safe for common file systems.

    Invalid characters become "-", dash runs collapse, leading/trailing dashes
    and spaces are trimmed and the length is capped. The trim runs again after
    the cut so that sanitizing twice changes nothing.
    """
    safe = _INVALID_CHARS_RE.sub("-", filename)
    safe = _REPEATED_DASH_RE.sub("-", safe)
    safe = _EDGE_RE.sub("", safe)
    if len(safe) > max_length:
        safe = _EDGE_RE.sub("", safe[:max_length])
    return safe or EMPTY_FILENAME


def expand_template(
    template: str,
    metadata: FilenameMetadata,
    max_length: int = MAX_FILENAME_LENGTH,
) -> str:
    """
    Fill a filename template such as ``{name}_{width}x{height}.{ext}``.

    Supported placeholders: name, ext, index, width, height, ratio, preset,
    timestamp. Anything else in braces is kept as literal text. When the
    template never mentions ``{ext}`` the output extension is appended unless
    the name already ends with it.
    """
    stem, _ = split_extension(metadata.original_name)
    ext = metadata.output_format.extension
    values = {
        "name": stem,
        "ext": ext,
        "index": str(metadata.index),
        "width": str(metadata.width),
        "height": str(metadata.height),
        "ratio": aspect_ratio_label(metadata.width, metadata.height),
        "preset": metadata.preset_label or "",
        "timestamp": str(metadata.timestamp),
    }

    def _substitute(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    filename = sanitize_filename(_PLACEHOLDER_RE.sub(_substitute, template), max_length)

    if "{ext}" not in template and not filename.endswith(f".{ext}"):
        filename = f"{filename}.{ext}"
    return filename


def _candidates(preferred: str) -> Iterator[str]:
    yield preferred
    stem, ext = split_extension(preferred)
    counter = 1
    while True:
        yield f"{stem}({counter}){ext}"
        counter += 1


class FilenameRegistry:
    """Names already handed out in one batch; discarded with the batch."""

    def __init__(self) -> None:
        self._names: Set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def register(self, name: str) -> None:
        self._names.add(name)

    def make_unique(self, preferred: str) -> str:
        """Return ``preferred`` or ``stem(N).ext`` and register the result."""
        name = next(c for c in _candidates(preferred) if c not in self._names)
        self.register(name)
        return name
