import json
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from pixelbatch.application.use_cases.batch_transform import BatchTransformUseCase
from pixelbatch.core.config import settings
from pixelbatch.core.exceptions import BatchRequestError
from pixelbatch.core.pyd_schemas import BatchRequest, SourceImage, TransformOptions
from pixelbatch.presentation.api.v1.dependencies.batch import (
    get_batch_transform_use_case,
)
from pixelbatch.presentation.api.v1.schemas.batch import BatchOptionsPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batches")

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def parse_options(raw: Optional[str]) -> TransformOptions:
    """Parse the JSON ``options`` form field; raise 422 when it is invalid."""
    if not raw:
        return TransformOptions()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "Invalid options", "details": f"Malformed JSON: {e.msg}"},
        )
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=422,
            detail={"error": "Invalid options", "details": "options must be a JSON object"},
        )
    try:
        return BatchOptionsPayload(**payload).to_transform_options()
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "Invalid options",
                "details": "Option validation failed",
                "errors": json.loads(e.json(include_url=False)),
            },
        )
    except KeyError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "Invalid options", "details": str(e.args[0])},
        )


async def read_uploads(files: List[UploadFile]) -> List[SourceImage]:
    if len(files) > settings.max_batch_images:
        raise BatchRequestError(
            f"Too many images. Max per batch: {settings.max_batch_images}"
        )
    images: List[SourceImage] = []
    for position, upload in enumerate(files, start=1):
        name = upload.filename or f"image_{position}"
        data = await upload.read()
        if len(data) > settings.max_file_size:
            raise BatchRequestError(
                f"File too large: {name}. Max size: {settings.max_file_size} bytes",
                file_name=name,
            )
        images.append(SourceImage(id=uuid.uuid4().hex, name=name, data=data))
    return images


@router.post("")
async def create_batch(
    files: List[UploadFile] = File(...),
    options: Optional[str] = Form(None),
    use_case: BatchTransformUseCase = Depends(get_batch_transform_use_case),
):
    """Transform the uploaded images and stream batch events as NDJSON.

    One JSON object per line: ``progress`` after every finished image,
    ``model-load-progress`` while a segmentation model loads, and a final
    ``done`` carrying the results with base64 image data.
    """
    transform_options = parse_options(options)
    request = BatchRequest(images=await read_uploads(files), options=transform_options)
    # Fails with 422 before the stream starts
    use_case.prepare(request)
    logger.info("Accepted batch of %d image(s)", len(request.images))

    async def event_stream():
        async for event in use_case.run(request):
            yield event.model_dump_json() + "\n"

    return StreamingResponse(event_stream(), media_type=NDJSON_MEDIA_TYPE)
