import struct

import pytest

from pixgate.ico import IcoError, encode_ico, fix_bmp_header

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _info_header(width: int, height: int, bpp: int, colors: int) -> bytes:
    return struct.pack("<IiiHHIIiiII", 40, width, height, 1, bpp, 0, 0, 2835, 2835, colors, 0)


def test_encode_ico_layout():
    payload = PNG_SIGNATURE + b"rest"
    out = encode_ico(payload, 16, 8, True)
    assert out[:6] == bytes([0, 0, 1, 0, 1, 0])
    width, height, colors, reserved, planes, bpp, size, offset = struct.unpack_from(
        "<BBBBHHII", out, 6
    )
    assert (width, height, colors, reserved, planes) == (16, 8, 0, 0, 1)
    assert bpp == 32
    assert size == len(payload)
    assert offset == 22
    assert out[offset:] == payload


def test_encode_ico_without_alpha_uses_24_bits():
    out = encode_ico(PNG_SIGNATURE, 4, 4, False)
    assert struct.unpack_from("<H", out, 12)[0] == 24


def test_encode_ico_full_size_wraps_to_zero():
    out = encode_ico(PNG_SIGNATURE, 256, 256, True)
    assert out[6] == 0
    assert out[7] == 0


@pytest.mark.parametrize("width, height", [(257, 10), (10, 257)])
def test_encode_ico_too_big(width, height):
    with pytest.raises(IcoError):
        encode_ico(PNG_SIGNATURE, width, height, True)


def test_fix_bmp_header_structure():
    pixels = bytes(range(64))
    entry = _info_header(16, 32, 32, 0) + pixels
    out = fix_bmp_header(entry)

    assert out[:2] == b"BM"
    assert len(out) == len(entry) + 14
    assert struct.unpack_from("<I", out, 2)[0] == len(out)
    assert struct.unpack_from("<I", out, 6)[0] == 0
    assert out[14:22] == entry[:8]
    assert struct.unpack_from("<I", out, 22)[0] == 16
    assert out[26:] == entry[12:]


def test_fix_bmp_header_offset_truecolor():
    out = fix_bmp_header(_info_header(4, 8, 32, 0))
    assert struct.unpack_from("<I", out, 10)[0] == 54


def test_fix_bmp_header_offset_full_palette():
    out = fix_bmp_header(_info_header(4, 8, 8, 0))
    assert struct.unpack_from("<I", out, 10)[0] == 1078


def test_fix_bmp_header_offset_follows_used_colors():
    two = fix_bmp_header(_info_header(4, 8, 1, 2))
    three = fix_bmp_header(_info_header(4, 8, 1, 3))
    diff = struct.unpack_from("<I", three, 10)[0] - struct.unpack_from("<I", two, 10)[0]
    assert diff == 4


def test_fix_bmp_header_too_short():
    with pytest.raises(IcoError):
        fix_bmp_header(b"\x28\x00\x00\x00")