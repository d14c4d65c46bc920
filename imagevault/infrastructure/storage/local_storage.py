import logging
import os
import secrets
from typing import Optional

from ...core.config import settings
from ...application.ports.storage_repo import StorageRepository

logger = logging.getLogger(__name__)

STAGED_SUFFIX = ".staged"


class LocalStorageRepository(StorageRepository):
    """Sharded image files under the uploads directory.

    New files are first written under a hidden staging name in their shard
    directory and renamed into place once the metadata is committed.
    """

    def __init__(self, upload_dir: Optional[str] = None, deleted_dir: Optional[str] = None) -> None:
        self.upload_dir = upload_dir if upload_dir is not None else settings.UPLOAD_DIR
        self.deleted_dir = deleted_dir if deleted_dir is not None else settings.DELETED_DIR

    def shard_dir(self, shard_id: int) -> str:
        return os.path.join(self.upload_dir, str(shard_id))

    def path_for(self, shard_id: int, filename: str) -> str:
        return os.path.join(self.shard_dir(shard_id), filename)

    def make_shard_dir(self, shard_id: int) -> str:
        path = self.shard_dir(shard_id)
        os.makedirs(path, exist_ok=True)
        logger.info(f"Created shard directory {path}")
        return path

    def stage(self, shard_id: int, filename: str, data: bytes) -> str:
        staged = f".{filename}.{secrets.token_hex(4)}{STAGED_SUFFIX}"
        path = self.path_for(shard_id, staged)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def promote(self, staged_path: str) -> str:
        directory, name = os.path.split(staged_path)
        if not (name.startswith(".") and name.endswith(STAGED_SUFFIX)):
            raise ValueError(f"not a staged file: {staged_path}")
        final_name = name[1:-len(STAGED_SUFFIX)].rsplit(".", 1)[0]
        final_path = os.path.join(directory, final_name)
        os.replace(staged_path, final_path)
        return final_path

    def discard(self, staged_path: str) -> None:
        try:
            os.remove(staged_path)
        except FileNotFoundError:
            pass

    def read(self, shard_id: int, filename: str) -> bytes:
        with open(self.path_for(shard_id, filename), "rb") as f:
            return f.read()

    def archive(self, shard_id: int, filename: str) -> bool:
        if not self.deleted_dir:
            return False
        try:
            data = self.read(shard_id, filename)
        except FileNotFoundError:
            logger.warning(f"Nothing to archive, {self.path_for(shard_id, filename)} is missing")
            return False
        os.makedirs(self.deleted_dir, exist_ok=True)
        with open(os.path.join(self.deleted_dir, filename), "wb") as f:
            f.write(data)
        return True

    def delete_by_prefix(self, shard_id: int, prefix: str) -> int:
        """Remove files in the shard directory whose names start with prefix,
        along with files of that prefix left behind in staging.

        Returns the number of files removed. On error, files removed up to
        that point stay removed.
        """
        directory = self.shard_dir(shard_id)
        staged_prefix = f".{prefix}"
        removed = 0
        for name in os.listdir(directory):
            if name.startswith(prefix) or (name.startswith(staged_prefix) and name.endswith(STAGED_SUFFIX)):
                os.remove(os.path.join(directory, name))
                removed += 1
        return removed
