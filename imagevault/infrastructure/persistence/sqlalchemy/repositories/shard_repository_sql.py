from typing import Optional
from sqlalchemy import update
from sqlmodel import Session, select

from .....db.models import Shard
from .....application.ports.shard_repo import ShardRepository, ShardRecord


class SqlShardRepository(ShardRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, s: Shard) -> ShardRecord:
        return ShardRecord(
            id=s.id,
            image_count=s.image_count,
            total_size=s.total_size,
            created_at=s.created_at,
        )

    def latest_for_update(self) -> Optional[ShardRecord]:
        # FOR UPDATE is dropped on SQLite; add_image re-checks capacity there.
        row = self.session.exec(
            select(Shard)
            .order_by(Shard.id.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        return self._to_record(row) if row else None

    def create(self) -> ShardRecord:
        shard = Shard()
        self.session.add(shard)
        self.session.flush()
        return self._to_record(shard)

    def add_image(self, shard_id: int, size: int, capacity: int) -> bool:
        result = self.session.execute(
            update(Shard)
            .where(Shard.id == shard_id, Shard.image_count < capacity)
            .values(image_count=Shard.image_count + 1, total_size=Shard.total_size + size)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
