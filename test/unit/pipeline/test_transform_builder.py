from __future__ import annotations

import pytest

from pixelbatch.application.pipeline.base import PipelineContext, StepStatus
from pixelbatch.application.pipeline.transform.builder import (
    build_transform_pipeline_via_container,
)
from pixelbatch.core.pyd_schemas import TransformOptions
from pixelbatch.utils.filename_utils import FilenameRegistry


def test_builder_step_order(fake_adapters):
    pipeline = build_transform_pipeline_via_container(fake_adapters)
    names = [getattr(s, "name", s.__class__.__name__) for s in pipeline.steps]
    assert names == [
        "decode_image",
        "fit_canvas",
        "remove_background",
        "round_corners",
        "encode_image",
        "assign_filename",
    ]


@pytest.mark.asyncio
async def test_builder_runs_end_to_end(fake_adapters, make_image_bytes):
    pipeline = build_transform_pipeline_via_container(
        fake_adapters, enable_logging_middleware=False
    )
    ctx = PipelineContext(
        input={
            "image_id": "a",
            "image_name": "wide.png",
            "data": make_image_bytes(300, 100),
            "options": TransformOptions(target_width=64, target_height=64, output_format="webp"),
            "index": 1,
            "timestamp": 0,
            "registry": FilenameRegistry(),
        }
    )
    await pipeline.execute(ctx)

    skipped = [s.name for s in pipeline.steps if s.status is StepStatus.SKIPPED]
    assert skipped == ["remove_background", "round_corners"]
    assert ctx.get("result").filename == "wide_1.webp"
