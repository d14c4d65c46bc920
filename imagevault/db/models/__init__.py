# Models package (re-export table models for stable imports)
from .media.shard import Shard
from .media.image import Image

__all__ = [
    "Shard",
    "Image",
]
