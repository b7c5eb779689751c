"""
Application configuration using Pydantic Settings
"""

from typing import Literal, Optional, Tuple
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # API Settings
    api_title: str = "Pixelbatch API"
    api_description: str = (
        "Batch image resizing, background removal and re-encoding service"
    )
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Upload Settings
    max_file_size: int = 25 * 1024 * 1024  # 25MB per image
    max_batch_images: int = 200

    # Security Settings
    max_requests_per_minute: int = 30

    # Logging Settings
    log_level: str = "INFO"
    log_format: str = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    log_file: str = ""

    # Transform Defaults
    default_target_size: int = 512
    # Largest accepted canvas side, in pixels
    max_canvas_side: int = 8192
    default_fit: Literal["contain", "cover", "crop"] = "cover"
    default_output_format: Literal["jpeg", "png", "webp"] = "jpeg"
    default_quality: int = 90
    default_filename_template: str = "{name}_{index}"
    # Matte used under formats that cannot hold transparency, "R,G,B"
    jpeg_background_color: str = "255,255,255"

    # Filename Settings
    filename_max_length: int = 200

    # Background Removal Settings
    segmentation_backend: Literal["heuristic", "rembg"] = "heuristic"
    background_tolerance: float = 20.0  # Euclidean RGB distance
    feather_factor: float = 0.5

    # External model (rembg) Settings
    rembg_model: str = "isnet-general-use"
    rembg_model_url: str = (
        "https://github.com/danielgatis/rembg/releases/download/v0.0.0/{model}.onnx"
    )
    rembg_model_dir: str = "data/models"
    download_timeout: int = 300  # 5 minutes for model weights
    download_chunk_size: int = 64 * 1024

    @field_validator("jpeg_background_color")
    @classmethod
    def validate_background_color(cls, v):
        """Validate the JPEG matte color.

        Args:
            v: Comma-separated "R,G,B" string, each channel in 0..255.

        Returns:
            str: normalized "R,G,B" string

        Example:
            >>> validate_background_color(" 255, 255,255 ")
            '255,255,255'
        """
        parts = [p.strip() for p in str(v).split(",") if p.strip()]
        try:
            channels = [int(p) for p in parts]
        except ValueError as e:
            raise ValueError("jpeg_background_color must be integers") from e
        if len(channels) != 3 or any(c < 0 or c > 255 for c in channels):
            raise ValueError("jpeg_background_color must be three values in 0..255")
        return ",".join(str(c) for c in channels)

    @property
    def jpeg_background_rgb(self) -> Tuple[int, int, int]:
        """Matte color as an (R, G, B) tuple."""
        r, g, b = (int(p) for p in self.jpeg_background_color.split(","))
        return (r, g, b)

    def rembg_model_source(self, model: Optional[str] = None) -> str:
        """Download URL for a rembg model, the configured one by default"""
        return self.rembg_model_url.format(model=model or self.rembg_model)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()
