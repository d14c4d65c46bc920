import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

from ...services.media.color import RGB
from ...services.media.geometry import ImageFit, ImageSize
from ...services.media.identifier import Identifier


@dataclass(frozen=True)
class ImageCopy:
    """A stored rendition other than the default one."""
    width: int
    height: int
    max_width: int
    max_height: int
    fit: ImageFit
    # Size in bytes
    size: int

    def filename(self, image_id: str, extension: str = "jpg") -> str:
        return f"{image_id}_{self.max_width}_{self.max_height}_{self.fit.value}.{extension}"

    def to_dict(self) -> dict:
        return {
            "w": self.width,
            "h": self.height,
            "mw": self.max_width,
            "mh": self.max_height,
            "fit": self.fit.value,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImageCopy":
        return cls(
            width=int(data["w"]),
            height=int(data["h"]),
            max_width=int(data["mw"]),
            max_height=int(data["mh"]),
            fit=ImageFit.parse(data.get("fit")),
            size=int(data["size"]),
        )


def copies_to_json(copies: List[ImageCopy]) -> str:
    return json.dumps([c.to_dict() for c in copies])


def copies_from_json(text: Optional[str]) -> List[ImageCopy]:
    if not text:
        return []
    return [ImageCopy.from_dict(item) for item in json.loads(text) or []]


@dataclass
class ImageRecord:
    id: Identifier
    shard_id: int
    type: str
    width: int
    height: int
    max_width: int
    max_height: int
    size: int
    uploaded_size: int
    average_color: RGB
    copies: List[ImageCopy]
    created_at: datetime
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    # URL pathname of the default rendition, /images/{shard}/{id}.jpg
    url: Optional[str] = None
    # URL of the default rendition followed by one per copy
    urls: List[str] = field(default_factory=list)

    def generate_urls(self, extension: str = "jpg") -> None:
        self.url = f"/images/{self.shard_id}/{self.id.hex}.{extension}"
        self.urls = [self.url]
        for c in self.copies:
            size = ImageSize(c.max_width, c.max_height)
            self.urls.append(f"{self.url}?size={size}&fit={c.fit.value}")


@dataclass
class NewImage:
    id: Identifier
    shard_id: int
    type: str
    width: int
    height: int
    max_width: int
    max_height: int
    size: int
    uploaded_size: int
    average_color: RGB
    copies: List[ImageCopy]
    created_at: datetime


class ImageRepository(Protocol):
    def insert(self, image: NewImage) -> None:
        ...

    def get(self, image_id: Identifier) -> Optional[ImageRecord]:
        ...

    def mark_deleted(self, image_id: Identifier, deleted_at: datetime) -> None:
        ...
