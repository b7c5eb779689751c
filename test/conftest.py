"""
Shared fixtures for the pixelbatch test-suite.
"""

import datetime as _dt
import io
import logging
import os
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Tuple

import numpy as np
import pytest
from PIL import Image

from pixelbatch.infrastructure.adapters import FloodFillSegmenter, PillowImageCodec


def setup_logging():
    """Route all test logging to test/test_output/logs/test_run.log and the console."""
    log_dir = Path("test/test_output/logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "test_run.log"

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(filename=log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Quiet noisy libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("pixelbatch").setLevel(logging.DEBUG)

    return log_file


def pytest_configure(config):  # pylint: disable=unused-argument
    log_file = setup_logging()
    logger = logging.getLogger("pytest")
    logger.info("=" * 80)
    logger.info("Python: %s", os.sys.version)
    logger.info("Working directory: %s", os.getcwd())
    logger.info("Log file: %s", log_file)
    logger.info("-" * 80)


@pytest.fixture(autouse=True)
def log_test_name(request):
    """Log test name when test starts and finishes."""
    logger = logging.getLogger(request.node.nodeid)
    logger.info("🚀 Test start: %s", request.node.name)
    start_time = datetime.now()

    def log_test_end():
        duration = (datetime.now() - start_time).total_seconds()
        rep_call = getattr(request.node, "rep_call", None)
        if rep_call is not None and rep_call.failed:
            logger.error("❌ Test failed after %.2fs", duration)
        else:
            logger.info("✅ Test finished after %.2fs", duration)

    request.addfinalizer(log_test_end)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Expose each phase's report on the item (rep_setup/rep_call/rep_teardown)."""
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)


# -------------------- Image fixtures --------------------
def solid_rgba(
    width: int, height: int, color: Tuple[int, int, int, int] = (200, 30, 30, 255)
) -> np.ndarray:
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[...] = color
    return img


def encode_pil(img: Image.Image, fmt: str = "PNG", **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """Factory: solid-color image of the given size encoded as PNG/JPEG/WEBP."""

    def _make(width: int, height: int, color=(200, 30, 30), fmt: str = "PNG") -> bytes:
        mode = "RGBA" if len(color) == 4 else "RGB"
        return encode_pil(Image.new(mode, (width, height), color), fmt)

    return _make


@pytest.fixture
def framed_subject() -> np.ndarray:
    """40x40 white image with a 20x20 blue square in the middle."""
    img = solid_rgba(40, 40, (255, 255, 255, 255))
    img[10:30, 10:30] = (20, 40, 220, 255)
    return img


class FixedClock:
    def __init__(self, moment: _dt.datetime) -> None:
        self.moment = moment

    def now(self) -> _dt.datetime:
        return self.moment


FIXED_MOMENT = _dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=_dt.timezone.utc)


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(FIXED_MOMENT)


@pytest.fixture
def fake_adapters(fixed_clock):
    """Real codec and heuristic segmenter, deterministic clock."""
    return SimpleNamespace(
        codec=PillowImageCodec(matte=(255, 255, 255)),
        segmenter=FloodFillSegmenter(tolerance=20.0, feather=0.5),
        clock=fixed_clock,
    )


@pytest.fixture
def rgba() -> Callable[..., np.ndarray]:
    """Factory for solid RGBA arrays."""
    return solid_rgba
