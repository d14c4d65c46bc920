import json
import math
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class RGB:
    r: int = 0
    g: int = 0
    b: int = 0

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, text: str) -> "RGB":
        data = json.loads(text)
        return cls(r=int(data["r"]), g=int(data["g"]), b=int(data["b"]))


def average_color(pixels) -> RGB:
    """Representative color of a decoded image, sampling at most ~10000 pixels.

    pixels needs a ``size`` of (width, height) and ``getpixel((x, y))``
    returning an RGB(A) tuple, such as a Pillow image in RGB mode.

    Each sample is blended into the running value as ``(acc + v) / 2``, which
    weights recent samples most. Stored colors depend on this recurrence so
    it is kept as is rather than replaced with a true mean. The result is
    each channel's share of ``r + g + b`` scaled to 0..255.
    """
    width, height = pixels.size
    xstep = max(1, math.ceil(width / 100))
    ystep = max(1, math.ceil(height / 100))

    r = g = b = 0.0
    for x in range(0, width, xstep):
        for y in range(0, height, ystep):
            pr, pg, pb = pixels.getpixel((x, y))[:3]
            r = (r + pr) / 2
            g = (g + pg) / 2
            b = (b + pb) / 2

    total = r + g + b
    if total <= 0:
        return RGB(0, 0, 0)
    return RGB(
        r=math.floor(r / total * 255.0),
        g=math.floor(g / total * 255.0),
        b=math.floor(b / total * 255.0),
    )
