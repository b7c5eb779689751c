from fastapi import APIRouter

from pixelbatch.core.presets import PRESETS
from pixelbatch.presentation.api.v1.schemas.batch import PresetCatalog

router = APIRouter(tags=["presets"])


@router.get("/presets", response_model=PresetCatalog)
async def list_presets():
    """Built-in canvas presets grouped by category"""
    return PRESETS
