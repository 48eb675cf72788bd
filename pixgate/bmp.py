"""BMP decoding into raw pixels and 24-bit BMP encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, List, Optional

_FILE_HEADER_LEN = 14
_INFO_HEADER_LEN = 40
_V4_INFO_HEADER_LEN = 108
_V5_INFO_HEADER_LEN = 124
_SUPPORTED_INFO_LENS = (_INFO_HEADER_LEN, _V4_INFO_HEADER_LEN, _V5_INFO_HEADER_LEN)

_HEADER_FORMAT = "<2sI2H4I2H6I"
_PIXELS_PER_METER = 2835


class BmpError(Exception):
    """Raised for malformed or unsupported BMP data."""


def _unsupported() -> BmpError:
    return BmpError("unsupported BMP image")


@dataclass
class Bitmap:
    """Raw 8-bit pixels, rows top to bottom, bands interleaved (RGB or RGBA)."""

    width: int
    height: int
    bands: int
    data: bytes
    palette_bit_depth: Optional[int] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("bitmap dimensions must be positive")
        if self.bands < 1:
            raise ValueError("bitmap must have at least one band")
        self.data = bytes(self.data)
        if len(self.data) != self.width * self.height * self.bands:
            raise ValueError("pixel data size does not match bitmap dimensions")


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def read_exact(self, size: int) -> bytes:
        chunk = self._data[self._pos:self._pos + size]
        if len(chunk) < size:
            raise BmpError("unexpected end of file")
        self._pos += size
        return chunk

    def seek(self, pos: int) -> None:
        self._pos = pos


def _rows(height: int, top_down: bool) -> Iterable[int]:
    return range(height) if top_down else range(height - 1, -1, -1)


def _lookup(palette: List[bytes], index: int) -> bytes:
    try:
        return palette[index]
    except IndexError:
        raise BmpError("palette index out of range") from None


def _palette_bit_depth(colors: int) -> int:
    if colors > 16:
        return 8
    if colors > 4:
        return 4
    if colors > 2:
        return 2
    return 0


def _decode_paletted(
    reader: _Reader, width: int, height: int, bpp: int, palette: List[bytes], top_down: bool
) -> Bitmap:
    per_byte = 8 // bpp
    row_len = ((width + per_byte - 1) // per_byte + 3) & ~3
    mask = (1 << bpp) - 1
    stride = width * 3
    out = bytearray(stride * height)

    for y in _rows(height, top_down):
        row = reader.read_exact(row_len)
        base = y * stride
        for x in range(width):
            shift = 8 - bpp * (x % per_byte + 1)
            index = (row[x // per_byte] >> shift) & mask
            offset = base + x * 3
            out[offset:offset + 3] = _lookup(palette, index)

    return Bitmap(width, height, 3, out, _palette_bit_depth(len(palette)))


def _decode_rle(
    reader: _Reader, width: int, height: int, bpp: int, palette: List[bytes]
) -> Bitmap:
    per_byte = 8 // bpp
    mask = (1 << bpp) - 1
    out = bytearray(width * height * 3)

    def put(x: int, y: int, index: int) -> None:
        offset = (y * width + x) * 3
        out[offset:offset + 3] = _lookup(palette, index)

    x, y = 0, height - 1

    while True:
        first, second = reader.read_exact(2)

        if first == 0:
            if second == 0:
                x, y = 0, y - 1
                if y < 0:
                    break
            elif second == 1:
                break
            elif second == 2:
                dx, dy = reader.read_exact(2)
                x = min(x + dx, width)
                y -= dy
                if y < 0:
                    break
            else:
                count = second
                size = ((count + per_byte - 1) // per_byte + 1) & ~1
                chunk = reader.read_exact(size)
                count = min(count, width - x)
                if count > 0:
                    for i in range(count):
                        shift = 8 - bpp * (i % per_byte + 1)
                        put(x + i, y, (chunk[i // per_byte] >> shift) & mask)
                    x += count
        else:
            count = min(first, width - x)
            if count > 0:
                for i in range(count):
                    shift = 8 - bpp * (i % per_byte + 1)
                    put(x + i, y, (second >> shift) & mask)
                x += count

    return Bitmap(width, height, 3, out, _palette_bit_depth(len(palette)))


def _decode_rgb(
    reader: _Reader, width: int, height: int, bands: int, top_down: bool, no_alpha: bool
) -> Bitmap:
    if bands not in (3, 4):
        raise _unsupported()

    img_bands = 4 if bands == 4 and not no_alpha else 3
    row_len = (bands * width + 3) & ~3
    stride = width * img_bands
    out = bytearray(stride * height)

    for y in _rows(height, top_down):
        pixels = reader.read_exact(row_len)[:bands * width]
        base = y * stride
        end = base + stride
        # Stored as BGR(A); emit RGB(A).
        out[base:end:img_bands] = pixels[2::bands]
        out[base + 1:end:img_bands] = pixels[1::bands]
        out[base + 2:end:img_bands] = pixels[0::bands]
        if img_bands == 4:
            out[base + 3:end:img_bands] = pixels[3::bands]

    return Bitmap(width, height, img_bands, out)


def _decode_rgb16(
    reader: _Reader, width: int, height: int, top_down: bool, bmp565: bool
) -> Bitmap:
    row_len = (2 * width + 3) & ~3
    stride = width * 3
    out = bytearray(stride * height)

    for y in _rows(height, top_down):
        row = reader.read_exact(row_len)[:2 * width]
        offset = y * stride
        for (pixel,) in struct.iter_unpack("<H", row):
            if bmp565:
                red = (((pixel & 0xF800) >> 11) << 3) & 0xFF
                green = (((pixel & 0x7E0) >> 5) << 2) & 0xFF
            else:
                red = (((pixel & 0x7C00) >> 10) << 3) & 0xFF
                green = (((pixel & 0x3E0) >> 5) << 3) & 0xFF
            blue = ((pixel & 0x1F) << 3) & 0xFF
            out[offset:offset + 3] = bytes((red, green, blue))
            offset += 3

    return Bitmap(width, height, 3, out)


def decode_bmp(data: bytes, no_alpha: bool = True) -> Bitmap:
    """Decode a BMP file.

    Only a file header followed by a BITMAPINFOHEADER (or its V4/V5
    extensions) is supported. ``no_alpha`` tells whether the fourth byte of
    32-bit pixels should be ignored when the header carries no alpha mask.
    """
    reader = _Reader(data)

    head = bytearray(reader.read_exact(_FILE_HEADER_LEN + 4))
    if head[:2] != b"BM":
        raise BmpError("not a BMP image")

    offset, info_len = struct.unpack_from("<II", head, 10)
    if info_len not in _SUPPORTED_INFO_LENS:
        raise _unsupported()

    head += reader.read_exact(info_len - 4)

    width, height = struct.unpack_from("<ii", head, 18)
    top_down = False
    if height < 0:
        height, top_down = -height, True
    if width <= 0 or height <= 0:
        raise _unsupported()

    planes, bpp, compression = struct.unpack_from("<HHI", head, 26)
    if planes != 1:
        raise _unsupported()

    rle = False
    bmp565 = False

    if compression == 0:
        pass
    elif (compression == 1 and bpp == 8) or (compression == 2 and bpp == 4):
        rle = True
    elif compression == 3:
        if info_len == _INFO_HEADER_LEN:
            # Colour masks follow the basic info header; it has no alpha mask.
            head += reader.read_exact(12)
            head += bytes(4)

        rmask, gmask, bmask, amask = struct.unpack_from("<IIII", head, 54)

        if bpp == 16 and (rmask, gmask, bmask) == (0xF800, 0x7E0, 0x1F):
            bmp565 = True
        elif bpp == 16 and (rmask, gmask, bmask) == (0x7C00, 0x3E0, 0x1F):
            pass
        elif bpp == 32 and (rmask, gmask, bmask, amask) == (0xFF0000, 0xFF00, 0xFF, 0xFF000000):
            pass
        else:
            raise _unsupported()
    else:
        raise _unsupported()

    palette: List[bytes] = []
    if bpp <= 8:
        (colors,) = struct.unpack_from("<I", head, 46)
        if colors == 0:
            colors = 1 << bpp
        if colors > 256:
            raise _unsupported()
        raw = reader.read_exact(colors * 4)
        # Entries are BGR plus one padding byte.
        palette = [bytes((blue_green_red[2], blue_green_red[1], blue_green_red[0]))
                   for blue_green_red in (raw[i:i + 4] for i in range(0, len(raw), 4))]

    reader.seek(offset)

    if rle:
        return _decode_rle(reader, width, height, bpp, palette)

    if bpp in (1, 2, 4, 8):
        return _decode_paletted(reader, width, height, bpp, palette, top_down)
    if bpp == 16:
        return _decode_rgb16(reader, width, height, top_down, bmp565)
    if bpp == 24:
        return _decode_rgb(reader, width, height, 3, top_down, True)
    if bpp == 32:
        if info_len >= 70:
            (alpha_mask,) = struct.unpack_from("<I", head, 66)
            no_alpha = alpha_mask == 0
        return _decode_rgb(reader, width, height, 4, top_down, no_alpha)

    raise _unsupported()


def encode_bmp(image: Bitmap) -> bytes:
    """Encode an RGB or RGBA bitmap as an uncompressed 24-bit BMP.

    Alpha is dropped after premultiplying it into the colour channels.
    """
    bands = image.bands
    if bands not in (3, 4):
        raise BmpError("only RGB and RGBA images can be saved as BMP")

    width, height = image.width, image.height
    line_size = (width * 3 + 3) & ~3
    image_size = height * line_size
    header_size = _FILE_HEADER_LEN + _INFO_HEADER_LEN

    out = bytearray(
        struct.pack(
            _HEADER_FORMAT,
            b"BM",
            header_size + image_size,
            0,
            0,
            header_size,
            _INFO_HEADER_LEN,
            width,
            height,
            1,
            24,
            0,
            image_size,
            _PIXELS_PER_METER,
            _PIXELS_PER_METER,
            0,
            0,
        )
    )

    stride = width * bands
    padding = bytes(line_size - width * 3)

    for y in range(height - 1, -1, -1):
        row = image.data[y * stride:(y + 1) * stride]
        line = bytearray(width * 3)
        line[0::3] = row[2::bands]
        line[1::3] = row[1::bands]
        line[2::3] = row[0::bands]

        if bands == 4:
            for x, alpha in enumerate(row[3::4]):
                if alpha < 255:
                    start = x * 3
                    line[start:start + 3] = bytes(
                        channel * alpha // 255 for channel in line[start:start + 3]
                    )

        out += line
        out += padding

    return bytes(out)