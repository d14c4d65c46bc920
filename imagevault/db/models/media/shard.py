# imagevault/db/models/media/shard.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
from sqlalchemy import BigInteger, Column, DateTime

class Shard(SQLModel, table=True):
    __tablename__ = "shards"
    id: Optional[int] = Field(default=None, primary_key=True)
    # Default renditions only, copies are not counted
    image_count: int = Field(default=0)
    total_size: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    # Naive UTC
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
