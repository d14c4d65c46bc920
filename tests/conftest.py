import io
import random

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from imagevault.application.services.image_service import create_image_service
from imagevault.database import create_db_and_tables
from imagevault.infrastructure.storage.local_storage import LocalStorageRepository
from imagevault.services.media.identifier import IdentifierGenerator


def make_image(width, height, color=(255, 0, 0), fmt="PNG") -> bytes:
    img = Image.new("RGB", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class FakePixels:
    def __init__(self, width=1, height=1, color=(0, 64, 192)):
        self.size = (width, height)
        self.color = color

    def getpixel(self, xy):
        return self.color


class FakeCodec:
    """Pretends every upload is a width x height image; renditions encode their size."""

    def __init__(self, width, height):
        self.width = width
        self.height = height
        self.resized = []

    def get_size(self, data):
        return self.width, self.height

    def convert_format(self, data, target_format):
        return data

    def resize_and_crop(self, data, width, height):
        self.resized.append((width, height))
        return f"jpeg:{width}x{height}".encode()

    def decode_pixels(self, data):
        return FakePixels()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalStorageRepository(
        upload_dir=str(tmp_path / "uploads"),
        deleted_dir=str(tmp_path / "deleted"),
    )


@pytest.fixture
def make_service(session, storage):
    def _make(codec=None, capacity=None, storage_repo=None):
        return create_image_service(
            session,
            storage_repo=storage_repo or storage,
            codec=codec,
            id_generator=IdentifierGenerator(rng=random.Random(7)),
            capacity=capacity,
        )
    return _make
