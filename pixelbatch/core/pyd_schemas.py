from __future__ import annotations

from enum import Enum
from typing import List, Optional, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from pixelbatch.core.config import settings


class FitPolicy(str, Enum):
    contain = "contain"
    cover = "cover"
    crop = "crop"


class OutputFormat(str, Enum):
    jpeg = "jpeg"
    png = "png"
    webp = "webp"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @property
    def supports_alpha(self) -> bool:
        return self is not OutputFormat.jpeg


class TransformOptions(BaseModel):
    """Options shared by every image of one batch."""

    model_config = ConfigDict(frozen=True)

    target_width: int = settings.default_target_size
    target_height: int = settings.default_target_size
    fit: FitPolicy = FitPolicy(settings.default_fit)
    corner_radius: float = Field(0, ge=0)
    output_format: OutputFormat = OutputFormat(settings.default_output_format)
    quality: int = Field(settings.default_quality, ge=0, le=100)
    remove_background: bool = False
    filename_template: str = settings.default_filename_template
    preset_label: Optional[str] = None

    @field_validator("target_width", "target_height", mode="before")
    @classmethod
    def default_unset_size(cls, v):
        # Zero or missing sizes fall back to the default canvas
        if v is None or v == 0 or v == "":
            return settings.default_target_size
        return v

    @property
    def encode_quality(self) -> Optional[int]:
        """Quality handed to the encoder; PNG ignores it."""
        if self.output_format is OutputFormat.png:
            return None
        return self.quality

    def effective(self) -> "TransformOptions":
        """Return the options actually used for the batch.

        JPEG cannot carry transparency, so background removal forces PNG.
        """
        if self.remove_background and self.output_format is OutputFormat.jpeg:
            return self.model_copy(update={"output_format": OutputFormat.png})
        return self


class SourceImage(BaseModel):
    id: constr(strip_whitespace=True, min_length=1)
    name: str
    data: bytes


class BatchRequest(BaseModel):
    images: List[SourceImage]
    options: TransformOptions = Field(default_factory=TransformOptions)


class ProcessedResult(BaseModel):
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    data: bytes
    filename: str
    width: int
    height: int
    size: int
    original_id: str


class FilenameMetadata(BaseModel):
    original_name: str
    width: int
    height: int
    output_format: OutputFormat
    preset_label: Optional[str] = None
    timestamp: int
    index: int  # 1-based position in the batch


# ----- Batch events -----
class BatchProgress(BaseModel):
    type: Literal["progress"] = "progress"
    processed_count: int
    total_count: int
    image_name: str  # original name, not the output filename


class ModelLoadProgress(BaseModel):
    type: Literal["model-load-progress"] = "model-load-progress"
    key: str
    current: int
    total: int


class BatchDone(BaseModel):
    model_config = ConfigDict(ser_json_bytes="base64")

    type: Literal["done"] = "done"
    results: List[ProcessedResult]


BatchEvent = Union[BatchProgress, ModelLoadProgress, BatchDone]
