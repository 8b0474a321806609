import io
import random
import struct
import zlib
from datetime import UTC, datetime, timedelta

from PIL import Image


class FixedClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


def make_png(width: int = 64, height: int = 48, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    """Encode a solid-colour PNG in memory."""
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


def _png_chunk(chunk_type: bytes, body: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + body)
    return struct.pack(">I", len(body)) + chunk_type + body + struct.pack(">I", crc)


def make_broken_png(width: int = 64, height: int = 48) -> bytes:
    """
    PNG with a valid header whose pixel data breaks off into a garbled chunk.

    Opening it succeeds; decoding raises SyntaxError ("broken PNG file").
    """
    noise = random.Random(0).randbytes(width * height * 3)
    out = io.BytesIO()
    Image.frombytes("RGB", (width, height), noise).save(out, format="PNG")
    data = out.getvalue()

    chunks: list[tuple[bytes, bytes]] = []
    pos = 8
    while pos < len(data):
        (length,) = struct.unpack(">I", data[pos : pos + 4])
        chunks.append((data[pos + 4 : pos + 8], data[pos + 8 : pos + 8 + length]))
        pos += 12 + length

    idat = b"".join(body for kind, body in chunks if kind == b"IDAT")
    half = len(idat) // 2

    parts = [data[:8]]
    for kind, body in chunks:
        if kind == b"IDAT":
            continue
        if kind == b"IEND":
            parts.append(_png_chunk(b"IDAT", idat[:half]))
            parts.append(_png_chunk(b"\xfc\xd9\xd2g", idat[half:]))
        parts.append(_png_chunk(kind, body))
    return b"".join(parts)
