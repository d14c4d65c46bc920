# imagevault/schemas/media/image.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime

from ...application.ports.image_repo import ImageRecord
from ...services.media.geometry import ImageFit
from ...services.media.variant_pipeline import RenditionSpec

class SaveImageArg(BaseModel):
    """How one rendition of an uploaded image is to be created."""
    model_config = ConfigDict(populate_by_name=True)

    max_width: int = Field(..., gt=0, alias="maxWidth")
    max_height: int = Field(..., gt=0, alias="maxHeight")
    image_fit: ImageFit = Field(ImageFit.CONTAIN, alias="imageFit")
    is_default: bool = Field(False, alias="default")

    @field_validator("image_fit", mode="before")
    @classmethod
    def _default_fit(cls, value):
        return ImageFit.parse(value)

    def to_spec(self) -> RenditionSpec:
        return RenditionSpec(
            max_width=self.max_width,
            max_height=self.max_height,
            fit=self.image_fit,
            is_default=self.is_default,
        )

class RGBResponse(BaseModel):
    r: int
    g: int
    b: int

class ImageCopyResponse(BaseModel):
    w: int
    h: int
    mw: int
    mh: int
    fit: ImageFit
    size: int

class ImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    shard_id: int = Field(..., alias="shardId")
    type: str
    width: int
    height: int
    max_width: int = Field(..., alias="maxWidth")
    max_height: int = Field(..., alias="maxHeight")
    size: int
    average_color: RGBResponse = Field(..., alias="averageColor")
    copies: List[ImageCopyResponse] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")
    deleted: bool
    deleted_at: Optional[datetime] = Field(None, alias="deletedAt")
    url: Optional[str] = None
    urls: Optional[List[str]] = None

    @classmethod
    def from_record(cls, record: ImageRecord) -> "ImageResponse":
        return cls(
            id=record.id.hex,
            shard_id=record.shard_id,
            type=record.type,
            width=record.width,
            height=record.height,
            max_width=record.max_width,
            max_height=record.max_height,
            size=record.size,
            average_color=RGBResponse(r=record.average_color.r, g=record.average_color.g, b=record.average_color.b),
            copies=[ImageCopyResponse(**c.to_dict()) for c in record.copies],
            created_at=record.created_at,
            deleted=record.is_deleted,
            deleted_at=record.deleted_at,
            url=record.url,
            urls=record.urls or None,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

class BulkDeleteResponse(BaseModel):
    deleted: List[str]
