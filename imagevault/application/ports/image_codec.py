from typing import Protocol, Tuple


class PixelGrid(Protocol):
    size: Tuple[int, int]

    def getpixel(self, xy: Tuple[int, int]):
        ...


class ImageCodec(Protocol):
    def get_size(self, data: bytes) -> Tuple[int, int]:
        ...

    def convert_format(self, data: bytes, target_format: str) -> bytes:
        ...

    def resize_and_crop(self, data: bytes, width: int, height: int) -> bytes:
        ...

    def decode_pixels(self, data: bytes) -> PixelGrid:
        ...
