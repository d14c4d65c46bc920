import logging
from typing import List, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ImageVaultError(Exception):
    """Base class for errors raised by the ingestion and storage core."""


class ValidationError(ImageVaultError):
    """Input rejected before any side effect took place."""


class EmptyImageError(ValidationError):
    def __init__(self, message: str = "image buffer empty"):
        super().__init__(message)


class NoDefaultRenditionError(ValidationError):
    def __init__(self, message: str = "no default image was provided"):
        super().__init__(message)


class InvalidImageFitError(ValidationError):
    def __init__(self, value: str):
        super().__init__(f"invalid image fit: {value!r}")
        self.value = value


class UnsupportedFormatError(ImageVaultError):
    def __init__(self, message: str = "unsupported image format"):
        super().__init__(message)


class ImageCodecError(ImageVaultError):
    """The codec failed on input it was able to parse."""


class NotFoundError(ImageVaultError):
    def __init__(self, image_id: str):
        super().__init__(f"image {image_id} not found")
        self.image_id = image_id


class StorageError(ImageVaultError):
    """Disk or relational failure. Files written before the failure are not
    cleaned up by the rollback."""


class BulkDeleteError(StorageError):
    def __init__(self, deleted: List[str], failed_id: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"bulk delete stopped at {failed_id} after deleting {len(deleted)} image(s): {cause}"
        )
        self.deleted = deleted
        self.failed_id = failed_id
        self.cause = cause


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )


async def image_vault_exception_handler(request: Request, exc: ImageVaultError) -> JSONResponse:
    """Map core errors onto client or server failures"""
    if isinstance(exc, (ValidationError, UnsupportedFormatError)):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    else:
        status_code = 500

    if status_code == 500:
        logger.error(f"500 error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        message = "Internal server error"
    else:
        message = str(exc)

    content = create_error_response(message, status_code)
    if isinstance(exc, BulkDeleteError):
        content["data"] = {"deleted": exc.deleted, "failed": exc.failed_id}
    return JSONResponse(status_code=status_code, content=content)
