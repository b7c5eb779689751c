from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from enum import Enum
from time import perf_counter
from typing import AsyncIterator, Callable, List, Optional, Sequence

from pixelbatch.application.interfaces import ITransformPipelineAdapters, ProgressCallback
from pixelbatch.application.pipeline.base import PipelineContext
from pixelbatch.application.pipeline.transform.builder import (
    build_transform_pipeline_via_container,
)
from pixelbatch.core.config import settings
from pixelbatch.core.exceptions import ImageProcessingError
from pixelbatch.core.pyd_schemas import (
    BatchDone,
    BatchEvent,
    BatchProgress,
    BatchRequest,
    ModelLoadProgress,
    ProcessedResult,
    SourceImage,
    TransformOptions,
)
from pixelbatch.utils.filename_utils import FilenameRegistry
from pixelbatch.utils.geometry_utils import validate_dimensions

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class _Aborted:
    """Queue marker: the batch task died before its terminal event."""

    def __init__(self, error: BaseException) -> None:
        self.error = error


class BatchTransformUseCase:
    """Run one batch of images through the per-image pipeline.

    Images are processed strictly one at a time in input order, inside a
    dedicated task that talks to the caller only through an event queue.
    A failing image is logged and left out of the results; it never stops
    the batch. Every run ends with exactly one ``done`` event.
    """

    def __init__(
        self,
        adapters: ITransformPipelineAdapters,
        *,
        enable_logging_middleware: bool = True,
    ) -> None:
        self._adapters = adapters
        self._enable_logging_middleware = enable_logging_middleware
        self.state = BatchState.IDLE

    def prepare(self, request: BatchRequest) -> TransformOptions:
        """Resolve the options every image will share.

        Raises InvalidDimensions for a bad canvas before any image is touched.
        """
        options = request.options.effective()
        if options.output_format != request.options.output_format:
            logger.info(
                "Background removal requested: output format %s -> %s",
                request.options.output_format.value,
                options.output_format.value,
            )
        validate_dimensions(
            options.target_width,
            options.target_height,
            "target",
            max_side=settings.max_canvas_side,
        )
        return options

    async def run(self, request: BatchRequest) -> AsyncIterator[BatchEvent]:
        """Yield progress events, model progress events and one final BatchDone."""
        if self.state is BatchState.RUNNING:
            raise RuntimeError("A batch is already running on this use case")
        options = self.prepare(request)

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(
            self._process(request.images, options, queue, self._make_relay(loop, queue))
        )
        try:
            while True:
                event = await queue.get()
                if isinstance(event, _Aborted):
                    break
                yield event
                if isinstance(event, BatchDone):
                    break
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def execute(
        self,
        request: BatchRequest,
        on_event: Optional[Callable[[BatchEvent], None]] = None,
    ) -> List[ProcessedResult]:
        """Consume a whole batch and return its results."""
        results: List[ProcessedResult] = []
        async for event in self.run(request):
            if on_event is not None:
                on_event(event)
            if isinstance(event, BatchDone):
                results = list(event.results)
        return results

    @staticmethod
    def _make_relay(
        loop: asyncio.AbstractEventLoop, queue: asyncio.Queue
    ) -> ProgressCallback:
        loop_thread = threading.get_ident()

        def _relay(key: str, current: int, total: int) -> None:
            event = ModelLoadProgress(key=key, current=int(current), total=int(total))
            if threading.get_ident() == loop_thread:
                queue.put_nowait(event)
            else:
                loop.call_soon_threadsafe(queue.put_nowait, event)

        return _relay

    async def _process(
        self,
        images: Sequence[SourceImage],
        options: TransformOptions,
        queue: asyncio.Queue,
        relay: ProgressCallback,
    ) -> None:
        self.state = BatchState.RUNNING
        total = len(images)
        results: List[ProcessedResult] = []
        # Registry and timestamp live exactly as long as this batch
        registry = FilenameRegistry()
        timestamp = int(self._adapters.clock.now().timestamp() * 1000)
        pipeline = build_transform_pipeline_via_container(
            self._adapters, enable_logging_middleware=self._enable_logging_middleware
        )
        batch_start = perf_counter()
        logger.info(
            "🖼️ Batch started: %d image(s) -> %dx%d %s fit=%s",
            total,
            options.target_width,
            options.target_height,
            options.output_format.value,
            options.fit.value,
        )

        try:
            for position, image in enumerate(images, start=1):
                context = PipelineContext(
                    input={
                        "image_id": image.id,
                        "image_name": image.name,
                        "data": image.data,
                        "options": options,
                        "index": position,
                        "timestamp": timestamp,
                        "registry": registry,
                        "progress": relay,
                    }
                )
                try:
                    await pipeline.execute(context)
                except ImageProcessingError as e:
                    logger.warning(
                        "Skipping image %s (%s): %s", image.name, e.error_code, e.message
                    )
                    continue

                results.append(context.get("result"))
                queue.put_nowait(
                    BatchProgress(
                        processed_count=len(results),
                        total_count=total,
                        image_name=image.name,
                    )
                )

            self.state = BatchState.COMPLETED
            logger.info(
                "✅ Batch finished: %d/%d image(s) in %.3fs",
                len(results),
                total,
                perf_counter() - batch_start,
            )
            queue.put_nowait(BatchDone(results=results))
        except BaseException as e:
            self.state = BatchState.ABORTED
            logger.error("Batch aborted after %d result(s): %r", len(results), e)
            queue.put_nowait(_Aborted(e))
            raise
