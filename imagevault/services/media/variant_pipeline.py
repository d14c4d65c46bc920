"""Produce the default rendition and the deduplicated copies of an upload."""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Set, Tuple

from ...application.ports.image_codec import ImageCodec
from ...application.ports.image_repo import ImageCopy
from ...exceptions import EmptyImageError, NoDefaultRenditionError, ValidationError
from .codec import JPEG
from .geometry import ImageFit, contain_fit, fit_dimensions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenditionSpec:
    max_width: int
    max_height: int
    fit: ImageFit = ImageFit.CONTAIN
    # There is one default rendition per image. If several specs are marked
    # default the first one wins and the others are ignored.
    is_default: bool = False


@dataclass
class Rendition:
    spec: RenditionSpec
    width: int
    height: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_copy(self) -> ImageCopy:
        return ImageCopy(
            width=self.width,
            height=self.height,
            max_width=self.spec.max_width,
            max_height=self.spec.max_height,
            fit=self.spec.fit,
            size=self.size,
        )


@dataclass
class PipelineResult:
    source_width: int
    source_height: int
    default: Rendition
    copies: List[Rendition] = field(default_factory=list)


def validate_specs(specs: Sequence[RenditionSpec]) -> Tuple[RenditionSpec, List[RenditionSpec]]:
    """Split specs into the default and the remaining copies, in order."""
    default = None
    for spec in specs:
        if spec.max_width <= 0 or spec.max_height <= 0:
            raise ValidationError(
                f"invalid rendition bounds {spec.max_width}x{spec.max_height}"
            )
        if spec.is_default and default is None:
            default = spec
    if default is None:
        raise NoDefaultRenditionError()
    return default, [s for s in specs if not s.is_default]


class VariantPipeline:
    def __init__(self, codec: ImageCodec, output_format: str = JPEG):
        self.codec = codec
        self.output_format = output_format

    def run(self, buf: bytes, specs: Sequence[RenditionSpec]) -> PipelineResult:
        if not buf:
            raise EmptyImageError()
        default_spec, copy_specs = validate_specs(specs)

        source_width, source_height = self.codec.get_size(buf)
        source = self.codec.convert_format(buf, self.output_format)

        default = self._render(source, source_width, source_height, default_spec)
        result = PipelineResult(source_width, source_height, default)

        # Realized sizes per fit. Contain copies are compared by the
        # dimensions they resolve to, cover copies by their bounds.
        contain_sizes: Set[Tuple[int, int]] = set()
        cover_sizes: Set[Tuple[int, int]] = set()
        self._register(default, contain_sizes, cover_sizes)

        for spec in copy_specs:
            if spec.fit == ImageFit.CONTAIN:
                size = contain_fit(source_width, source_height, spec.max_width, spec.max_height)
                if size in contain_sizes:
                    logger.debug(f"Skipping contain copy {spec.max_width}x{spec.max_height}, {size} already stored")
                    continue
            elif (spec.max_width, spec.max_height) in cover_sizes:
                logger.debug(f"Skipping duplicate cover copy {spec.max_width}x{spec.max_height}")
                continue

            rendition = self._render(source, source_width, source_height, spec)
            result.copies.append(rendition)
            self._register(rendition, contain_sizes, cover_sizes)

        return result

    def _render(self, source: bytes, source_width: int, source_height: int, spec: RenditionSpec) -> Rendition:
        w, h = fit_dimensions(spec.fit, source_width, source_height, spec.max_width, spec.max_height)
        data = self.codec.resize_and_crop(source, w, h)
        return Rendition(spec=spec, width=w, height=h, data=data)

    @staticmethod
    def _register(rendition: Rendition, contain_sizes: Set[Tuple[int, int]], cover_sizes: Set[Tuple[int, int]]) -> None:
        size = (rendition.width, rendition.height)
        if rendition.spec.fit == ImageFit.CONTAIN:
            contain_sizes.add(size)
        else:
            cover_sizes.add(size)
