import logging
from datetime import datetime
from typing import Optional
from sqlmodel import Session

from .....db.models import Image
from .....application.ports.image_repo import (
    ImageRecord,
    ImageRepository,
    NewImage,
    copies_from_json,
    copies_to_json,
)
from .....services.media.color import RGB
from .....services.media.identifier import Identifier

logger = logging.getLogger(__name__)


class SqlImageRepository(ImageRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, row: Image) -> ImageRecord:
        try:
            color = RGB.from_json(row.average_color)
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"error decoding average color of image {row.id.hex()}: {e}") from e
        try:
            copies = copies_from_json(row.copies)
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"error decoding copies of image {row.id.hex()}: {e}") from e
        return ImageRecord(
            id=Identifier.from_bytes(row.id),
            shard_id=row.shard_id,
            type=row.type,
            width=row.width,
            height=row.height,
            max_width=row.max_width,
            max_height=row.max_height,
            size=row.size,
            uploaded_size=row.uploaded_size,
            average_color=color,
            copies=copies,
            created_at=row.created_at,
            is_deleted=row.is_deleted,
            deleted_at=row.deleted_at,
        )

    def insert(self, image: NewImage) -> None:
        row = Image(
            id=bytes(image.id),
            shard_id=image.shard_id,
            type=image.type,
            width=image.width,
            height=image.height,
            max_width=image.max_width,
            max_height=image.max_height,
            size=image.size,
            uploaded_size=image.uploaded_size,
            average_color=image.average_color.to_json(),
            copies=copies_to_json(image.copies),
            created_at=image.created_at,
        )
        self.session.add(row)
        self.session.flush()

    def get(self, image_id: Identifier) -> Optional[ImageRecord]:
        row = self.session.get(Image, bytes(image_id))
        return self._to_record(row) if row else None

    def mark_deleted(self, image_id: Identifier, deleted_at: datetime) -> None:
        row = self.session.get(Image, bytes(image_id))
        if row is None:
            return
        row.is_deleted = True
        row.deleted_at = deleted_at
        self.session.add(row)
        self.session.flush()
