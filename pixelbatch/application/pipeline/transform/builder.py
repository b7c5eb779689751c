from __future__ import annotations

from pixelbatch.application.pipeline.base import Pipeline, make_logging_middleware
from pixelbatch.application.pipeline.transform.steps.decode_image import DecodeImageStep
from pixelbatch.application.pipeline.transform.steps.fit_canvas import FitCanvasStep
from pixelbatch.application.pipeline.transform.steps.remove_background import (
    RemoveBackgroundStep,
)
from pixelbatch.application.pipeline.transform.steps.round_corners import RoundCornersStep
from pixelbatch.application.pipeline.transform.steps.encode_image import EncodeImageStep
from pixelbatch.application.pipeline.transform.steps.assign_filename import (
    AssignFilenameStep,
)
from pixelbatch.application.interfaces import ITransformPipelineAdapters


def build_transform_pipeline_via_container(
    adapters: ITransformPipelineAdapters,
    *,
    enable_logging_middleware: bool = True,
) -> Pipeline:
    """Per-image pipeline: decode, fit, background, corners, encode, name.

    An image either completes every step or yields nothing.
    """
    middlewares = [make_logging_middleware()] if enable_logging_middleware else []
    steps = [
        DecodeImageStep(adapters.codec),
        FitCanvasStep(),
        RemoveBackgroundStep(adapters.segmenter),
        RoundCornersStep(),
        EncodeImageStep(adapters.codec),
        AssignFilenameStep(),
    ]
    return Pipeline(steps, middlewares=middlewares)
