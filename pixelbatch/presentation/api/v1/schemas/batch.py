from typing import Dict, Optional

from pydantic import BaseModel

from pixelbatch.core.presets import Preset, apply_preset
from pixelbatch.core.pyd_schemas import TransformOptions


class BatchOptionsPayload(TransformOptions):
    """Options form field of a batch upload; may name a preset."""

    preset: Optional[str] = None

    def to_transform_options(self) -> TransformOptions:
        options = TransformOptions(**self.model_dump(exclude={"preset"}))
        if self.preset:
            options = apply_preset(options, self.preset)
        return options


PresetCatalog = Dict[str, Dict[str, Preset]]


class ServiceStatus(BaseModel):
    message: str
    status: str
