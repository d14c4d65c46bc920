import json
import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from ..application.ports.storage_repo import StorageRepository
from ..application.services.image_service import ImageService, create_image_service
from ..core.config import settings
from ..database import get_session
from ..exceptions import InvalidImageFitError
from ..infrastructure.storage.local_storage import LocalStorageRepository
from ..schemas.media.image import BulkDeleteResponse, ImageResponse, SaveImageArg
from ..services.media.geometry import ImageFit, ImageSize
from ..services.media.identifier import Identifier, IdentifierFormatError, IdentifierGenerator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Images"])

# One random source for every request in this process.
_id_generator = IdentifierGenerator()


def get_storage_repo() -> StorageRepository:
    return LocalStorageRepository()


def get_image_service(
    session: Session = Depends(get_session),
    storage_repo: StorageRepository = Depends(get_storage_repo),
) -> ImageService:
    return create_image_service(session, storage_repo=storage_repo, id_generator=_id_generator)


def parse_image_id(image_id: str) -> Identifier:
    try:
        return Identifier.from_hex(image_id)
    except IdentifierFormatError:
        raise HTTPException(status_code=404, detail="Not found")


@router.post("/api/images")
def add_image(
    image: UploadFile = File(...),
    copies: Optional[str] = Form(None),
    service: ImageService = Depends(get_image_service),
):
    image.file.seek(0, 2)
    file_size = image.file.tell()
    image.file.seek(0)
    if file_size > settings.MAX_FILE_SIZE:
        raise HTTPException(status_code=413, detail=f"File too large (max {settings.MAX_FILE_SIZE // (1024*1024)}MB)")

    if not copies:
        raise HTTPException(status_code=400, detail="no copies to make")
    try:
        args = [SaveImageArg.model_validate(item) for item in json.loads(copies)]
    except (ValueError, TypeError, PydanticValidationError):
        raise HTTPException(status_code=400, detail="invalid json")

    buf = image.file.read()
    record = service.save(buf, [arg.to_spec() for arg in args])
    return ImageResponse.from_record(record).to_json()


@router.delete("/api/images/_bulk", response_model=BulkDeleteResponse)
def bulk_delete_images(
    image_ids: List[str] = Body(...),
    service: ImageService = Depends(get_image_service),
):
    try:
        ids = [Identifier.from_hex(i) for i in image_ids]
    except IdentifierFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    deleted = service.bulk_delete(ids)
    return BulkDeleteResponse(deleted=[r.id.hex for r in deleted])


@router.get("/api/images/{image_id}")
def get_image(image_id: str, service: ImageService = Depends(get_image_service)):
    record = service.get(parse_image_id(image_id))
    return ImageResponse.from_record(record).to_json()


@router.delete("/api/images/{image_id}")
def delete_image(image_id: str, service: ImageService = Depends(get_image_service)):
    record = service.delete(parse_image_id(image_id))
    return ImageResponse.from_record(record).to_json()


@router.get("/images/{shard_id}/{filename}")
def serve_image(
    shard_id: str,
    filename: str,
    size: Optional[str] = None,
    fit: Optional[str] = None,
    storage_repo: StorageRepository = Depends(get_storage_repo),
):
    """Serve a stored rendition, /images/{shard}/{id}.jpg[?size=1440x720&fit=cover]"""
    not_found = HTTPException(status_code=404, detail="Not found")
    if not shard_id.isdigit() or not filename.endswith(".jpg"):
        raise not_found
    try:
        name = Identifier.from_hex(filename[:-len(".jpg")]).hex
    except IdentifierFormatError:
        raise not_found

    if size:
        try:
            box = ImageSize.parse(size)
            image_fit = ImageFit.parse(fit)
        except (ValueError, InvalidImageFitError):
            raise not_found
        name = f"{name}_{box.width}_{box.height}_{image_fit.value}"

    path = storage_repo.path_for(int(shard_id), f"{name}.jpg")
    if not os.path.isfile(path):
        raise not_found

    return FileResponse(
        path,
        media_type="image/jpeg",
        headers={
            "Cache-Control": f"max-age={settings.IMAGE_CACHE_MAX_AGE}, no-transform",
            "Cross-Origin-Resource-Policy": "cross-origin",
        },
    )
