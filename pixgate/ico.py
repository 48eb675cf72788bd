"""ICO container helpers: wrapping PNG data and repairing embedded BMP headers."""

from __future__ import annotations

import struct

_ICONDIR = bytes([0, 0, 1, 0, 1, 0])
_MAX_DIMENSION = 256
_DATA_OFFSET = 22


class IcoError(Exception):
    """Raised for images that cannot be stored in or read from an ICO."""


def encode_ico(png_data: bytes, width: int, height: int, has_alpha: bool) -> bytes:
    """Wrap one PNG image into a single-entry ICO file."""
    if width > _MAX_DIMENSION or height > _MAX_DIMENSION:
        raise IcoError("Image dimensions is too big. Max dimension size for ICO is 256")

    entry = struct.pack(
        "<BBBBHHII",
        width % 256,
        height % 256,
        0,
        0,
        1,
        32 if has_alpha else 24,
        len(png_data) & 0xFFFFFFFF,
        _DATA_OFFSET,
    )
    return _ICONDIR + entry + bytes(png_data)


def fix_bmp_header(data: bytes) -> bytes:
    """Turn a BMP stored inside an ICO into a standalone BMP file.

    ICO entries omit the file header and store twice the real height.
    """
    if len(data) < 36:
        raise IcoError("BMP data inside ICO is too short")

    file_size = (14 + len(data)) & 0xFFFFFFFF
    (bit_count,) = struct.unpack_from("<H", data, 14)
    (color_used,) = struct.unpack_from("<I", data, 32)

    if color_used == 0 and bit_count <= 8:
        pix_offset = 14 + 40 + 4 * (1 << bit_count)
    else:
        pix_offset = 14 + 40 + 4 * color_used

    (height,) = struct.unpack_from("<I", data, 8)

    return b"".join(
        [
            b"BM",
            struct.pack("<III", file_size, 0, pix_offset & 0xFFFFFFFF),
            data[:8],
            struct.pack("<I", height // 2),
            data[12:],
        ]
    )