from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from ...exceptions import InvalidImageFitError


class ImageFit(str, Enum):
    # Fits the image inside the box without enlarging or cropping it.
    CONTAIN = "contain"
    # Covers the box exactly; the image may be shrunk, enlarged or cropped.
    COVER = "cover"

    @classmethod
    def parse(cls, value) -> "ImageFit":
        if isinstance(value, ImageFit):
            return value
        if value is None or value == "":
            return DEFAULT_FIT
        try:
            return cls(value)
        except ValueError:
            raise InvalidImageFitError(str(value)) from None


DEFAULT_FIT = ImageFit.CONTAIN


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    def __str__(self) -> str:
        """Returns "400" for a 400x400 box and "400x600" otherwise."""
        if self.width == self.height:
            return str(self.width)
        return f"{self.width}x{self.height}"

    @classmethod
    def parse(cls, text: str) -> "ImageSize":
        width, sep, height = text.partition("x")
        if not sep:
            n = _parse_dimension(width, text)
            return cls(n, n)
        return cls(_parse_dimension(width, text), _parse_dimension(height, text))


def _parse_dimension(part: str, text: str) -> int:
    if not (part.isascii() and part.isdigit()):
        raise ValueError(f"invalid image size: {text!r}")
    return int(part)


def contain_fit(src_w: int, src_h: int, bound_w: int, bound_h: int) -> Tuple[int, int]:
    """Fit src_w x src_h inside bound_w x bound_h without upscaling.

    Results are truncated toward zero; rendition dedup compares these exact
    values, so the float arithmetic must not change.
    """
    x, y = float(src_w), float(src_h)
    if src_w > bound_w:
        scale = float(bound_w) / float(src_w)
        x = scale * float(src_w)
        y = scale * float(src_h)
    if y > float(bound_h):
        scale = float(bound_h) / y
        x = scale * x
        y = scale * y
    return int(x), int(y)


def cover_fit(src_w: int, src_h: int, bound_w: int, bound_h: int) -> Tuple[int, int]:
    # Cropping to fill is done by the resize step.
    return bound_w, bound_h


def fit_dimensions(fit: ImageFit, src_w: int, src_h: int, bound_w: int, bound_h: int) -> Tuple[int, int]:
    if fit == ImageFit.COVER:
        return cover_fit(src_w, src_h, bound_w, bound_h)
    if fit == ImageFit.CONTAIN:
        return contain_fit(src_w, src_h, bound_w, bound_h)
    raise InvalidImageFitError(str(fit))
