from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class ShardRecord:
    id: int
    image_count: int
    total_size: int
    created_at: datetime


class ShardRepository(Protocol):
    def latest_for_update(self) -> Optional[ShardRecord]:
        """Highest-numbered shard, locked until the transaction ends."""
        ...

    def create(self) -> ShardRecord:
        ...

    def add_image(self, shard_id: int, size: int, capacity: int) -> bool:
        """Count one more image in the shard unless it already holds capacity.

        Returns False when the shard is full and nothing was changed.
        """
        ...
