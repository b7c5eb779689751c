"""
Custom exception handlers and error types
"""

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging
import traceback
from typing import Optional

logger = logging.getLogger(__name__)


class ImageProcessingError(Exception):
    """Base exception for image transformation errors"""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class InvalidDimensions(ImageProcessingError):
    """Raised when a source or target size is zero or negative.

    A bad target size fails the whole batch before any image is touched,
    because the canvas geometry is shared by every image.
    """

    def __init__(
        self,
        message: str,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ):
        super().__init__(message, "INVALID_DIMENSIONS")
        self.width = width
        self.height = height


class DecodeFailure(ImageProcessingError):
    """Raised when raw bytes cannot be decoded into pixels"""

    def __init__(self, message: str, image_name: Optional[str] = None):
        super().__init__(message, "DECODE_FAILURE")
        self.image_name = image_name


class SegmentationUnavailable(ImageProcessingError):
    """Raised when the external segmentation backend cannot produce a mask"""

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message, "SEGMENTATION_UNAVAILABLE")
        self.backend = backend


class EncodeFailure(ImageProcessingError):
    """Raised when the canvas cannot be encoded to the requested format"""

    def __init__(self, message: str, output_format: Optional[str] = None):
        super().__init__(message, "ENCODE_FAILURE")
        self.output_format = output_format


class PipelineError(ImageProcessingError):
    """Exception raised when a per-image pipeline fails

    Args:
        message (str): Error message
        stage_name (Optional[str]): Step that raised
    Example:
        raise PipelineError("decode failed", stage_name="decode_image")
    """

    def __init__(self, message: str, stage_name: Optional[str] = None):
        super().__init__(message, "PIPELINE_ERROR")
        self.stage_name = stage_name


class BatchRequestError(ImageProcessingError):
    """Exception raised when an uploaded batch is rejected before processing"""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message, "BATCH_REQUEST_ERROR")
        self.file_name = file_name


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "detail": {
                "error": "Validation error",
                "details": "Invalid request data",
                "errors": exc.errors(),
            }
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format"""
    logger.warning(f"HTTP exception: {exc.status_code} - {exc.detail}")

    if isinstance(exc.detail, dict):
        detail = exc.detail
    else:
        detail = {"error": "HTTP Error", "details": str(exc.detail)}

    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


async def image_processing_exception_handler(
    request: Request, exc: ImageProcessingError
):
    """Handle image processing errors.

    Request-level problems (bad dimensions, rejected uploads) are the
    client's fault and map to 4xx.
    """
    if isinstance(exc, InvalidDimensions):
        status_code = 422
    elif isinstance(exc, BatchRequestError):
        status_code = 400
    else:
        status_code = 500
    log = logger.warning if status_code < 500 else logger.error
    log(f"Image processing error: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": {
                "error": "Image processing failed",
                "details": exc.message,
                "error_code": exc.error_code,
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unexpected error: {type(exc).__name__}: {str(exc)}")
    logger.error(f"Traceback: {traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": {
                "error": "Internal server error",
                "details": "An unexpected error occurred",
            }
        },
    )
