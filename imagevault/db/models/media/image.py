# imagevault/db/models/media/image.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
from sqlalchemy import Column, DateTime, LargeBinary, Text

class Image(SQLModel, table=True):
    __tablename__ = "images"
    id: bytes = Field(sa_column=Column(LargeBinary(12), primary_key=True))
    shard_id: int = Field(foreign_key="shards.id", index=True)
    type: str = Field(max_length=24)
    width: int
    height: int
    # Bounds requested for the default rendition
    max_width: int
    max_height: int
    size: int
    uploaded_size: int
    average_color: str = Field(max_length=32)
    # JSON list of copies, see ImageCopy.to_dict
    copies: Optional[str] = Field(default=None, sa_column=Column(Text))
    # Naive UTC, like deleted_at
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
    is_deleted: bool = Field(default=False)
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
