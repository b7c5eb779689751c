from __future__ import annotations

import asyncio
import io
import threading
from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

from pixelbatch.application.use_cases.batch_transform import (
    BatchState,
    BatchTransformUseCase,
)
from pixelbatch.core.exceptions import InvalidDimensions
from pixelbatch.core.pyd_schemas import (
    BatchDone,
    BatchProgress,
    BatchRequest,
    ModelLoadProgress,
    SourceImage,
    TransformOptions,
)


def _request(images, **options) -> BatchRequest:
    return BatchRequest(
        images=[SourceImage(id=f"id{i}", name=name, data=data) for i, (name, data) in enumerate(images)],
        options=TransformOptions(**options),
    )


async def _collect(use_case, request):
    return [event async for event in use_case.run(request)]


@pytest.mark.asyncio
async def test_cover_png_produces_square_output(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request(
        [("landscape.jpg", make_image_bytes(1200, 800, fmt="JPEG"))],
        target_width=512,
        target_height=512,
        fit="cover",
        output_format="png",
    )

    events = await _collect(use_case, request)

    assert isinstance(events[-1], BatchDone)
    [result] = events[-1].results
    assert (result.width, result.height) == (512, 512)
    assert result.filename == "landscape_1.png"
    assert result.original_id == "id0"
    assert result.size == len(result.data)
    with Image.open(io.BytesIO(result.data)) as img:
        assert img.format == "PNG"
        assert img.size == (512, 512)
    assert use_case.state is BatchState.COMPLETED


@pytest.mark.asyncio
async def test_background_removal_forces_png(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request(
        [("logo.jpg", make_image_bytes(64, 64, (250, 250, 250), fmt="JPEG"))],
        output_format="jpeg",
        remove_background=True,
        target_width=32,
        target_height=32,
    )

    results = await use_case.execute(request)

    assert results[0].filename.endswith(".png")
    with Image.open(io.BytesIO(results[0].data)) as img:
        assert img.mode == "RGBA"
        # Single-color image: everything is background
        assert np.all(np.asarray(img)[..., 3] == 0)


@pytest.mark.asyncio
async def test_undecodable_image_is_skipped(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request(
        [
            ("a.png", make_image_bytes(20, 20)),
            ("broken.png", b"definitely not an image"),
            ("c.png", make_image_bytes(30, 10)),
        ],
        target_width=16,
        target_height=16,
    )

    events = await _collect(use_case, request)

    progress = [e for e in events if isinstance(e, BatchProgress)]
    done = [e for e in events if isinstance(e, BatchDone)]
    assert len(progress) == 2
    assert [(p.processed_count, p.total_count, p.image_name) for p in progress] == [
        (1, 3, "a.png"),
        (2, 3, "c.png"),
    ]
    assert len(done) == 1 and events[-1] is done[0]
    assert [r.filename for r in done[0].results] == ["a_1.jpeg", "c_3.jpeg"]


@pytest.mark.asyncio
async def test_duplicate_names_get_counter(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    data = make_image_bytes(10, 10)
    request = _request(
        [("same.png", data), ("same.png", data), ("same.png", data)],
        filename_template="{name}",
        output_format="webp",
    )

    results = await use_case.execute(request)

    assert [r.filename for r in results] == ["same.webp", "same(1).webp", "same(2).webp"]


@pytest.mark.asyncio
async def test_registry_is_reset_between_batches(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request([("x.png", make_image_bytes(8, 8))], filename_template="{name}")

    first = await use_case.execute(request)
    second = await use_case.execute(request)

    assert first[0].filename == second[0].filename == "x.jpeg"


@pytest.mark.asyncio
async def test_timestamp_is_shared_by_batch(fake_adapters, fixed_clock, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request(
        [("a.png", make_image_bytes(8, 8)), ("b.png", make_image_bytes(8, 8))],
        filename_template="{timestamp}_{name}",
    )

    results = await use_case.execute(request)

    stamp = int(fixed_clock.now().timestamp() * 1000)
    assert [r.filename for r in results] == [f"{stamp}_a.jpeg", f"{stamp}_b.jpeg"]


@pytest.mark.asyncio
async def test_invalid_target_fails_before_any_event(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request([("a.png", make_image_bytes(8, 8))], target_width=-10)
    seen = []

    with pytest.raises(InvalidDimensions):
        await use_case.execute(request, on_event=seen.append)

    assert seen == []
    assert use_case.state is BatchState.IDLE


@pytest.mark.asyncio
async def test_oversized_target_fails_before_any_event(fake_adapters, make_image_bytes):
    use_case = BatchTransformUseCase(fake_adapters)
    request = _request(
        [("a.png", make_image_bytes(8, 8))], target_width=100_000, target_height=100_000
    )
    seen = []

    with pytest.raises(InvalidDimensions):
        await use_case.execute(request, on_event=seen.append)

    assert seen == []
    assert use_case.state is BatchState.IDLE


@pytest.mark.asyncio
async def test_empty_batch_emits_only_done(fake_adapters):
    events = await _collect(BatchTransformUseCase(fake_adapters), _request([]))
    assert len(events) == 1
    assert isinstance(events[0], BatchDone) and events[0].results == []


@pytest.mark.asyncio
async def test_model_progress_from_worker_thread_precedes_done(fake_adapters, make_image_bytes):
    class ThreadedSegmenter:
        name = "threaded"

        async def segment(self, pixels, width, height, *, progress=None):
            def _work():
                assert threading.current_thread() is not threading.main_thread()
                for i in range(3):
                    progress("fetch:test-model", i + 1, 3)
                return np.ones((height, width), dtype=np.float32)

            return await asyncio.to_thread(_work)

    adapters = SimpleNamespace(
        codec=fake_adapters.codec, segmenter=ThreadedSegmenter(), clock=fake_adapters.clock
    )
    use_case = BatchTransformUseCase(adapters)
    request = _request(
        [("a.png", make_image_bytes(8, 8))],
        remove_background=True,
        target_width=8,
        target_height=8,
    )

    events = await _collect(use_case, request)

    kinds = [e.type for e in events]
    assert kinds == [
        "model-load-progress",
        "model-load-progress",
        "model-load-progress",
        "progress",
        "done",
    ]
    loads = [e for e in events if isinstance(e, ModelLoadProgress)]
    assert [e.current for e in loads] == [1, 2, 3]


@pytest.mark.asyncio
async def test_cancelled_consumer_aborts_batch(fake_adapters, make_image_bytes):
    gate = asyncio.Event()

    class SlowSegmenter:
        name = "slow"

        async def segment(self, pixels, width, height, *, progress=None):
            await gate.wait()
            return np.ones((height, width), dtype=np.float32)

    adapters = SimpleNamespace(
        codec=fake_adapters.codec, segmenter=SlowSegmenter(), clock=fake_adapters.clock
    )
    use_case = BatchTransformUseCase(adapters)
    request = _request([("a.png", make_image_bytes(8, 8))], remove_background=True)

    consumer = asyncio.create_task(_collect(use_case, request))
    while use_case.state is not BatchState.RUNNING:
        await asyncio.sleep(0)
    consumer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await consumer

    assert use_case.state is BatchState.ABORTED
