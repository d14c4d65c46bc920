"""Time-ordered 96-bit identifiers.

An identifier is 12 bytes: the big-endian UTC time in nanoseconds since the
epoch (8 bytes) followed by 4 random bytes. It is the primary key of an image
and the filename stem of every file stored for it.

Identifiers created in the same nanosecond are ordered only by their random
suffix, so ordering by identifier is approximate creation order.
"""
import random
import struct
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

ID_SIZE = 12
HEX_SIZE = ID_SIZE * 2

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class IdentifierFormatError(ValueError):
    pass


class Identifier:
    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if not isinstance(raw, (bytes, bytearray)) or len(raw) != ID_SIZE:
            raise IdentifierFormatError(f"identifier must be {ID_SIZE} bytes")
        self._raw = bytes(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Identifier":
        return cls(raw)

    @classmethod
    def from_hex(cls, text: str) -> "Identifier":
        if not isinstance(text, str) or len(text) != HEX_SIZE:
            raise IdentifierFormatError(f"identifier must be {HEX_SIZE} hex characters")
        if not _HEX_DIGITS.issuperset(text):
            raise IdentifierFormatError(f"identifier {text!r} contains non-hex characters")
        return cls(bytes.fromhex(text))

    @property
    def hex(self) -> str:
        return self._raw.hex()

    @property
    def timestamp_ns(self) -> int:
        return struct.unpack(">Q", self._raw[:8])[0]

    def __bytes__(self) -> bytes:
        return self._raw

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"Identifier({self.hex!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Identifier):
            return NotImplemented
        return self._raw == other._raw

    def __lt__(self, other: "Identifier") -> bool:
        if not isinstance(other, Identifier):
            return NotImplemented
        return self._raw < other._raw

    def __hash__(self) -> int:
        return hash(self._raw)


class NullIdentifier:
    """An identifier that may be null, for optional persisted references."""

    __slots__ = ("identifier", "valid")

    def __init__(self, identifier: Optional[Identifier] = None):
        self.identifier = identifier
        self.valid = identifier is not None

    @classmethod
    def from_db(cls, value: Optional[bytes]) -> "NullIdentifier":
        if value is None:
            return cls()
        return cls(Identifier.from_bytes(value))

    def to_db(self) -> Optional[bytes]:
        return bytes(self.identifier) if self.valid else None

    @classmethod
    def from_json(cls, value: Optional[str]) -> "NullIdentifier":
        if value is None:
            return cls()
        return cls(Identifier.from_hex(value))

    def to_json(self) -> Optional[str]:
        return self.identifier.hex if self.valid else None

    def __eq__(self, other) -> bool:
        if not isinstance(other, NullIdentifier):
            return NotImplemented
        return self.valid == other.valid and self.identifier == other.identifier

    def __repr__(self) -> str:
        return f"NullIdentifier({self.to_json()!r})"


def ns_to_datetime(ns: int) -> datetime:
    """Naive UTC datetime, microsecond precision."""
    seconds, rem = divmod(ns, 1_000_000_000)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=rem // 1000)


class IdentifierGenerator:
    """Creates identifiers from an owned random source and clock."""

    def __init__(self, rng: Optional[random.Random] = None, clock: Callable[[], int] = time.time_ns):
        self.rng = rng or random.Random()
        self.clock = clock

    def new(self) -> Tuple[Identifier, datetime]:
        now = self.clock()
        raw = struct.pack(">QI", now, self.rng.getrandbits(32))
        return Identifier(raw), ns_to_datetime(now)
