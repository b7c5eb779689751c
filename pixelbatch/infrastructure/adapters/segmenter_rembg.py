from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import aiofiles
import aiohttp
import cv2
import numpy as np
from PIL import Image

from pixelbatch.application.interfaces.segmentation import (
    ISegmentationBackend,
    ProgressCallback,
)
from pixelbatch.core.config import settings
from pixelbatch.core.exceptions import SegmentationUnavailable

logger = logging.getLogger(__name__)

INFERENCE_KEY = "compute:inference"

# One download per model file, shared by every segmenter in the process
_DOWNLOAD_LOCKS: Dict[str, asyncio.Lock] = {}

# Model sessions cache to avoid reloading per request
_SESSION_CACHE: Dict[Tuple[str, str], Any] = {}
_SESSION_LOCK = threading.Lock()


def _download_lock(dest: Path) -> asyncio.Lock:
    key = str(dest.resolve())
    lock = _DOWNLOAD_LOCKS.get(key)
    if lock is None:
        lock = _DOWNLOAD_LOCKS[key] = asyncio.Lock()
    return lock


class RembgSegmenter(ISegmentationBackend):
    """Background removal through a rembg ONNX model.

    Model weights are fetched once into ``model_dir`` with streamed progress
    reported as ``("fetch:<model>", bytes_so_far, total_bytes)``. Inference
    runs in a worker thread. Any failure surfaces as SegmentationUnavailable
    so the batch skips only the affected image.
    """

    name = "rembg"

    def __init__(
        self,
        *,
        model_name: Optional[str] = None,
        model_dir: Optional[str] = None,
        model_url: Optional[str] = None,
    ) -> None:
        self.model_name = model_name or settings.rembg_model
        self.model_dir = Path(model_dir or settings.rembg_model_dir)
        self.model_url = model_url or settings.rembg_model_source(self.model_name)

    @property
    def model_path(self) -> Path:
        return self.model_dir / f"{self.model_name}.onnx"

    @property
    def fetch_key(self) -> str:
        return f"fetch:{self.model_name}"

    async def segment(
        self,
        pixels: np.ndarray,
        width: int,
        height: int,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> np.ndarray:
        try:
            await self.ensure_model(progress=progress)
            if progress:
                progress(INFERENCE_KEY, 0, 1)
            mask = await asyncio.to_thread(self._infer, pixels)
            if progress:
                progress(INFERENCE_KEY, 1, 1)
        except SegmentationUnavailable:
            raise
        except Exception as e:
            logger.error("rembg segmentation failed: %s", e)
            raise SegmentationUnavailable(
                f"Background removal failed: {type(e).__name__}: {e}",
                backend=self.name,
            ) from e

        if mask.shape != (height, width):
            mask = cv2.resize(mask, (width, height), interpolation=cv2.INTER_LINEAR)
        return np.clip(mask, 0.0, 1.0).astype(np.float32)

    async def ensure_model(self, *, progress: Optional[ProgressCallback] = None) -> Path:
        """Download the model weights unless they are already on disk.

        Concurrent callers for the same file wait for the first download
        instead of starting their own.
        """
        dest = self.model_path
        if dest.exists():
            logger.debug("Model already present, skipping download: %s", dest)
            return dest

        async with _download_lock(dest):
            if dest.exists():
                logger.debug("Model downloaded by another request: %s", dest)
                return dest
            await self._download(dest, progress)
        return dest

    async def _download(self, dest: Path, progress: Optional[ProgressCallback]) -> None:
        os.makedirs(self.model_dir, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.model_dir, prefix=f".{self.model_name}-", suffix=".part"
        )
        os.close(fd)
        partial = Path(tmp_name)
        logger.info("⬇️ Downloading segmentation model %s", self.model_url)
        try:
            timeout = aiohttp.ClientTimeout(total=settings.download_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.model_url) as response:
                    response.raise_for_status()
                    total = int(response.content_length or 0)
                    received = 0
                    if progress:
                        progress(self.fetch_key, 0, total)

                    async with aiofiles.open(partial, "wb") as f:
                        async for chunk in response.content.iter_chunked(
                            settings.download_chunk_size
                        ):
                            await f.write(chunk)
                            received += len(chunk)
                            if progress:
                                progress(self.fetch_key, received, max(total, received))
            os.replace(partial, dest)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error("Failed to download %s: %s", self.model_url, e)
            raise SegmentationUnavailable(
                f"Failed to download model {self.model_name}: {e}", backend=self.name
            ) from e
        finally:
            if partial.exists():
                partial.unlink()
        logger.info("✅ Downloaded %s to %s", self.model_url, dest)

    def _get_session(self) -> Any:
        key = (self.model_name, str(self.model_dir.resolve()))
        with _SESSION_LOCK:
            session = _SESSION_CACHE.get(key)
            if session is None:
                try:
                    from rembg import new_session
                except ImportError as e:
                    raise SegmentationUnavailable(
                        "rembg is not installed; install the 'ml' extra", backend=self.name
                    ) from e
                # rembg resolves model files from U2NET_HOME
                os.environ["U2NET_HOME"] = key[1]
                session = new_session(self.model_name)
                _SESSION_CACHE[key] = session
        return session

    def _infer(self, pixels: np.ndarray) -> np.ndarray:
        from rembg import remove

        session = self._get_session()
        rgb = Image.fromarray(np.ascontiguousarray(pixels[..., :3]))
        mask_img = remove(rgb, session=session, only_mask=True)
        return np.asarray(mask_img.convert("L"), dtype=np.float32) / 255.0
