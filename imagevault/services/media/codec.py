import io
import logging
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ...exceptions import ImageCodecError, UnsupportedFormatError

logger = logging.getLogger(__name__)

JPEG = "JPEG"
EXTENSIONS = {JPEG: "jpg"}
TYPE_NAMES = {JPEG: "jpeg"}


class PillowCodec:
    """Decode, convert and resize images with Pillow."""

    def __init__(self, quality: int = 85):
        self.quality = quality

    def _open(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
            return img
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            logger.warning(f"Could not decode image: {e}")
            raise UnsupportedFormatError() from e

    def _encode(self, img: Image.Image, target_format: str = JPEG) -> bytes:
        if img.mode != "RGB":
            img = img.convert("RGB")
        output = io.BytesIO()
        img.save(output, format=target_format, quality=self.quality, optimize=True)
        return output.getvalue()

    def get_size(self, data: bytes) -> Tuple[int, int]:
        try:
            with Image.open(io.BytesIO(data)) as img:
                return img.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise UnsupportedFormatError() from e

    def convert_format(self, data: bytes, target_format: str) -> bytes:
        with self._open(data) as img:
            if img.format == target_format:
                return data
            try:
                return self._encode(img, target_format)
            except (OSError, ValueError, KeyError) as e:
                raise UnsupportedFormatError(f"cannot convert image to {target_format}") from e

    def resize_and_crop(self, data: bytes, width: int, height: int) -> bytes:
        if width < 1 or height < 1:
            raise ImageCodecError(f"cannot resize image to {width}x{height}")
        with self._open(data) as img:
            if img.mode in ('RGBA', 'LA', 'P'):
                img = img.convert('RGB')
            try:
                fitted = ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS)
                return self._encode(fitted)
            except (OSError, ValueError) as e:
                raise ImageCodecError(f"cannot resize image to {width}x{height}: {e}") from e

    def decode_pixels(self, data: bytes) -> Image.Image:
        with self._open(data) as img:
            return img.convert("RGB")
