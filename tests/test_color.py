import pytest

from pixgate.color import Color, color_from_hex


def test_long_form():
    assert color_from_hex("1a2B3c") == Color(0x1A, 0x2B, 0x3C)


def test_short_form_expands_digits():
    assert color_from_hex("abc") == color_from_hex("aabbcc")
    assert color_from_hex("fff") == Color(255, 255, 255)


def test_black():
    assert color_from_hex("000") == Color(0, 0, 0)


@pytest.mark.parametrize("value", ["", "ff", "ffff", "ggg", "12345g", "#fff", "fff\n", "1234567"])
def test_invalid(value):
    with pytest.raises(ValueError, match="Invalid hex color"):
        color_from_hex(value)


def test_default_is_black():
    assert Color() == color_from_hex("000000")