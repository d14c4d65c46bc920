import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..ports.image_codec import ImageCodec
from ..ports.image_repo import ImageRecord, ImageRepository, NewImage
from ..ports.shard_repo import ShardRepository
from ..ports.storage_repo import StorageRepository
from .folder_allocator import MAX_IMAGES_PER_FOLDER, FolderAllocator
from ...exceptions import BulkDeleteError, NotFoundError, StorageError
from ...services.media.codec import EXTENSIONS, JPEG, TYPE_NAMES
from ...services.media.color import average_color
from ...services.media.identifier import Identifier, IdentifierGenerator
from ...services.media.variant_pipeline import RenditionSpec, VariantPipeline

logger = logging.getLogger(__name__)


@dataclass
class ImageService:
    """Save, read and delete images, keeping disk and database in step.

    Metadata writes happen in one transaction on ``session``. Files are
    staged on disk during that transaction and renamed into place after it
    commits; staged files are discarded on rollback. Shard directories and
    deletions already performed on disk are not undone by a rollback.
    """
    session: Session
    image_repo: ImageRepository
    shard_repo: ShardRepository
    storage_repo: StorageRepository
    codec: ImageCodec
    id_generator: IdentifierGenerator = field(default_factory=IdentifierGenerator)
    capacity: int = MAX_IMAGES_PER_FOLDER
    output_format: str = JPEG

    def __post_init__(self) -> None:
        self.pipeline = VariantPipeline(self.codec, self.output_format)
        self.allocator = FolderAllocator(self.shard_repo, self.storage_repo, self.capacity)
        self.extension = EXTENSIONS[self.output_format]

    def save(self, buf: bytes, specs: Sequence[RenditionSpec]) -> ImageRecord:
        started = time.time()
        result = self.pipeline.run(buf, specs)
        default = result.default

        staged: List[str] = []
        try:
            shard_id = self.allocator.allocate(default.size)
            image_id, created_at = self.id_generator.new()
            name = image_id.hex

            staged.append(self.storage_repo.stage(shard_id, f"{name}.{self.extension}", default.data))
            copies = []
            for rendition in result.copies:
                copy = rendition.to_copy()
                staged.append(self.storage_repo.stage(shard_id, copy.filename(name, self.extension), rendition.data))
                copies.append(copy)

            color = average_color(self.codec.decode_pixels(default.data))

            self.image_repo.insert(NewImage(
                id=image_id,
                shard_id=shard_id,
                type=TYPE_NAMES[self.output_format],
                width=default.width,
                height=default.height,
                max_width=default.spec.max_width,
                max_height=default.spec.max_height,
                size=default.size,
                uploaded_size=len(buf),
                average_color=color,
                copies=copies,
                created_at=created_at,
            ))
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            for path in staged:
                self.storage_repo.discard(path)
            if isinstance(e, (OSError, SQLAlchemyError)):
                logger.error(f"Error saving image: {e}")
                raise StorageError(f"failed to save image: {e}") from e
            raise

        try:
            for path in staged:
                self.storage_repo.promote(path)
        except OSError as e:
            # The record is committed; its files need reconciling by hand.
            logger.error(f"Image {name} committed but its files could not be moved into place: {e}")
            raise StorageError(f"failed to store files of image {name}: {e}") from e

        logger.info(f"Took {time.time() - started:.3f}s to process {name} ({len(copies)} copies)")
        return self.get(image_id)

    def get(self, image_id: Identifier) -> ImageRecord:
        """Return the image, deleted or not."""
        try:
            record = self.image_repo.get(image_id)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to read image {image_id}: {e}") from e
        if record is None:
            raise NotFoundError(image_id.hex)
        record.generate_urls(self.extension)
        return record

    def delete(self, image_id: Identifier) -> ImageRecord:
        """Soft delete the image and remove its files. Idempotent.

        The default rendition is archived first when an archive directory is
        configured.
        """
        record = self.get(image_id)
        if record.is_deleted:
            return record

        name = image_id.hex
        try:
            self.image_repo.mark_deleted(image_id, datetime.utcnow())
            if self.storage_repo.archive(record.shard_id, f"{name}.{self.extension}"):
                logger.info(f"Archived image {name}")
            removed = self.storage_repo.delete_by_prefix(record.shard_id, name)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            if isinstance(e, (OSError, SQLAlchemyError)):
                logger.error(f"Error deleting image {name}: {e}")
                raise StorageError(f"failed to delete image {name}: {e}") from e
            raise

        logger.info(f"Deleted image {name} ({removed} files removed)")
        return self.get(image_id)

    def bulk_delete(self, image_ids: Iterable[Identifier]) -> List[ImageRecord]:
        """Delete images one by one, stopping at the first failure.

        Not atomic: images deleted before the failure stay deleted, and the
        raised BulkDeleteError lists them.
        """
        deleted: List[ImageRecord] = []
        for image_id in image_ids:
            try:
                deleted.append(self.delete(image_id))
            except Exception as e:
                raise BulkDeleteError([r.id.hex for r in deleted], image_id.hex, e) from e
        return deleted


def create_image_service(
    session: Session,
    storage_repo: Optional[StorageRepository] = None,
    codec: Optional[ImageCodec] = None,
    id_generator: Optional[IdentifierGenerator] = None,
    capacity: Optional[int] = None,
) -> ImageService:
    from ...core.config import settings
    from ...infrastructure.persistence.sqlalchemy.repositories.image_repository_sql import SqlImageRepository
    from ...infrastructure.persistence.sqlalchemy.repositories.shard_repository_sql import SqlShardRepository
    from ...infrastructure.storage.local_storage import LocalStorageRepository
    from ...services.media.codec import PillowCodec

    return ImageService(
        session=session,
        image_repo=SqlImageRepository(session),
        shard_repo=SqlShardRepository(session),
        storage_repo=storage_repo or LocalStorageRepository(),
        codec=codec or PillowCodec(),
        id_generator=id_generator or IdentifierGenerator(),
        capacity=capacity if capacity is not None else settings.MAX_IMAGES_PER_FOLDER,
    )
