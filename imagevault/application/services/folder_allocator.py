import logging
from dataclasses import dataclass

from ..ports.shard_repo import ShardRepository
from ..ports.storage_repo import StorageRepository
from ...exceptions import StorageError

logger = logging.getLogger(__name__)

# Maximum number of default images (copies are not counted) per shard folder.
MAX_IMAGES_PER_FOLDER = 4000


@dataclass
class FolderAllocator:
    """Routes a new image into the latest shard, opening a new one when full.

    Must run inside the transaction that inserts the image: allocating also
    counts the image in its shard, and the count only goes up while the
    shard is below capacity. The shard directory is created on disk
    immediately and is not removed if that transaction rolls back.
    """
    shard_repo: ShardRepository
    storage_repo: StorageRepository
    capacity: int = MAX_IMAGES_PER_FOLDER

    def allocate(self, size: int) -> int:
        shard = self.shard_repo.latest_for_update()
        if shard is not None and shard.image_count < self.capacity:
            if self.shard_repo.add_image(shard.id, size, self.capacity):
                return shard.id
            # Another transaction took the last slot after we read the count.
            logger.info(f"Shard {shard.id} filled up concurrently")

        shard = self.shard_repo.create()
        self.storage_repo.make_shard_dir(shard.id)
        logger.info(f"Opened shard {shard.id}")
        if not self.shard_repo.add_image(shard.id, size, self.capacity):
            raise StorageError(f"shard {shard.id} cannot hold any image (capacity {self.capacity})")
        return shard.id
