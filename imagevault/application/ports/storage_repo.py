from typing import Protocol


class StorageRepository(Protocol):
    def make_shard_dir(self, shard_id: int) -> str:
        ...

    def stage(self, shard_id: int, filename: str, data: bytes) -> str:
        """Write data under a temporary name and return the staged path."""
        ...

    def promote(self, staged_path: str) -> str:
        """Move a staged file to its final name."""
        ...

    def discard(self, staged_path: str) -> None:
        ...

    def path_for(self, shard_id: int, filename: str) -> str:
        ...

    def archive(self, shard_id: int, filename: str) -> bool:
        """Copy a stored file into the archive directory. False when archiving is off."""
        ...

    def delete_by_prefix(self, shard_id: int, prefix: str) -> int:
        ...
