"""
Built-in canvas presets grouped by category
"""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel

from pixelbatch.core.pyd_schemas import FitPolicy, TransformOptions


class Preset(BaseModel):
    name: str
    width: int
    height: int
    fit: FitPolicy
    radius: Optional[float] = None


PRESETS: Dict[str, Dict[str, Preset]] = {
    "App Icons": {
        "ios": Preset(name="iOS App Icon", width=1024, height=1024, fit=FitPolicy.contain, radius=0),
        "android_play": Preset(name="Android Play Store", width=512, height=512, fit=FitPolicy.contain, radius=0),
        "android_fg": Preset(name="Android Adaptive (FG)", width=432, height=432, fit=FitPolicy.contain, radius=0),
        "android_bg": Preset(name="Android Adaptive (BG)", width=432, height=432, fit=FitPolicy.cover, radius=0),
    },
    "Social Media": {
        "instagram_post": Preset(name="Instagram Post", width=1080, height=1080, fit=FitPolicy.cover),
        "instagram_story": Preset(name="Instagram Story / Reel", width=1080, height=1920, fit=FitPolicy.cover),
        "twitter_post": Preset(name="Twitter/X Post", width=1200, height=675, fit=FitPolicy.cover),
        "facebook_post": Preset(name="Facebook Post", width=1200, height=630, fit=FitPolicy.cover),
        "linkedin_post": Preset(name="LinkedIn Post", width=1200, height=627, fit=FitPolicy.cover),
        "youtube_thumb": Preset(name="YouTube Thumbnail", width=1280, height=720, fit=FitPolicy.cover),
    },
}


def find_preset(key: str) -> Preset:
    for items in PRESETS.values():
        if key in items:
            return items[key]
    raise KeyError(f"Unknown preset: {key}")


def apply_preset(options: TransformOptions, key: str) -> TransformOptions:
    """Return options resized to the preset canvas and labelled with its key.

    The corner radius is only overridden when the preset defines one.
    """
    preset = find_preset(key)
    update = {
        "target_width": preset.width,
        "target_height": preset.height,
        "fit": preset.fit,
        "preset_label": key,
    }
    if preset.radius is not None:
        update["corner_radius"] = preset.radius
    return options.model_copy(update=update)
