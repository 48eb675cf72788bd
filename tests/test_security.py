import io
import re

import pytest

from pixgate.security import (
    LimitedReader,
    ProxyError,
    SecurityOptions,
    check_dimensions,
    check_file_size,
    check_security_options_allowed,
    limit_file_size,
    verify_signature,
    verify_source_network,
    verify_source_url,
)


def _verify(signature, size=32, extra_pair=False):
    signing = [b"test-key"]
    salting = [b"test-salt"]
    if extra_pair:
        signing.append(b"test-key2")
        salting.append(b"test-salt2")
    return verify_signature(signature, "asd", signing, salting, size)


def _opts(resolution=100, file_size=0, frames=1, frame_resolution=0):
    return SecurityOptions(resolution, file_size, frames, frame_resolution)


def test_verify_signature():
    assert _verify("dtLwhdnPPiu_epMl1LrzheLpvHas-4mwvY6L3Z8WwlY") is None


def test_verify_signature_truncated():
    assert _verify("dtLwhdnPPis", size=8) is None


def test_verify_signature_invalid():
    with pytest.raises(ProxyError) as info:
        _verify("dtLwhdnPPis")
    assert info.value.status_code == 403
    assert info.value.message == "Invalid signature"


def test_verify_signature_multiple_pairs():
    assert _verify("dtLwhdnPPiu_epMl1LrzheLpvHas-4mwvY6L3Z8WwlY", extra_pair=True) is None
    assert _verify("jbDffNPt1-XBgDccsaE-XJB9lx8JIJqdeYIZKgOqZpg", extra_pair=True) is None
    with pytest.raises(ProxyError):
        _verify("dtLwhdnPPis", extra_pair=True)


def test_verify_signature_bad_encoding():
    with pytest.raises(ProxyError) as info:
        _verify("not*base64!")
    assert info.value.message == "Invalid signature encoding"


def test_verify_signature_rejects_padding():
    with pytest.raises(ProxyError) as info:
        _verify("dtLwhdnPPis=")
    assert info.value.message == "Invalid signature encoding"


def test_verify_signature_without_keys_accepts_anything():
    assert verify_signature("whatever", "asd", [], [], 32) is None


def test_check_file_size():
    check_file_size(10, _opts(file_size=10))
    check_file_size(10**9, _opts(file_size=0))
    with pytest.raises(ProxyError) as info:
        check_file_size(11, _opts(file_size=10))
    assert info.value.status_code == 422
    assert info.value.message == "Source image file is too big"


def test_limit_file_size_passthrough_without_limit():
    stream = io.BytesIO(b"abc")
    assert limit_file_size(stream, _opts(file_size=0)) is stream


def test_limited_reader_reads_smaller_stream():
    reader = limit_file_size(io.BytesIO(b"abcdef"), _opts(file_size=10))
    assert isinstance(reader, LimitedReader)
    assert reader.read() == b"abcdef"


def test_limited_reader_partial_reads():
    reader = LimitedReader(io.BytesIO(b"abcdef"), 4)
    assert reader.read(3) == b"abc"
    assert reader.read(3) == b"d"
    with pytest.raises(ProxyError):
        reader.read(1)


def test_limited_reader_fails_on_oversized_stream():
    reader = LimitedReader(io.BytesIO(b"abcdef"), 3)
    with pytest.raises(ProxyError) as info:
        reader.read()
    assert info.value.status_code == 422


def test_check_dimensions_still_image():
    check_dimensions(10, 10, 1, _opts(resolution=100))
    with pytest.raises(ProxyError) as info:
        check_dimensions(10, 11, 1, _opts(resolution=100))
    assert info.value.message == "Source image resolution is too big"


def test_check_dimensions_zero_frames_counted_as_one():
    check_dimensions(10, 10, 0, _opts(resolution=100))
    with pytest.raises(ProxyError):
        check_dimensions(11, 10, 0, _opts(resolution=100))


def test_check_dimensions_animation_total():
    with pytest.raises(ProxyError) as info:
        check_dimensions(10, 10, 2, _opts(resolution=100))
    assert info.value.message == "Source image resolution is too big"


def test_check_dimensions_animation_frame_limit():
    check_dimensions(10, 10, 5, _opts(resolution=100, frame_resolution=100))
    with pytest.raises(ProxyError) as info:
        check_dimensions(10, 11, 5, _opts(resolution=10**9, frame_resolution=100))
    assert info.value.message == "Source image frame resolution is too big"


def test_security_options_allowed():
    check_security_options_allowed(True)
    with pytest.raises(ProxyError) as info:
        check_security_options_allowed(False)
    assert info.value.status_code == 403
    assert info.value.public_message == "Invalid URL"


def test_verify_source_url():
    allowed = [re.compile(r"^local://"), re.compile(r"^http://images\.dev/")]
    verify_source_url("http://images.dev/lorem/ipsum.jpg", allowed)
    verify_source_url("anything://goes", [])
    with pytest.raises(ProxyError) as info:
        verify_source_url("s3://images/lorem/ipsum.jpg", allowed)
    assert info.value.status_code == 404
    assert info.value.message == "Source URL is not allowed: s3://images/lorem/ipsum.jpg"


@pytest.mark.parametrize(
    "addr", ["127.0.0.1:80", "[::1]:443", "127.1.2.3", "::ffff:127.0.0.1"]
)
def test_loopback(addr):
    verify_source_network(addr, True, False, False)
    with pytest.raises(PermissionError):
        verify_source_network(addr, False, True, True)


@pytest.mark.parametrize("addr", ["169.254.1.1:80", "[fe80::1]:80", "224.0.0.5", "ff02::1"])
def test_link_local(addr):
    verify_source_network(addr, False, True, False)
    with pytest.raises(PermissionError):
        verify_source_network(addr, True, False, True)


@pytest.mark.parametrize("addr", ["10.1.2.3:80", "172.16.0.1", "192.168.1.1:8080", "[fd00::1]:80"])
def test_private(addr):
    verify_source_network(addr, False, False, True)
    with pytest.raises(PermissionError):
        verify_source_network(addr, True, True, False)


def test_public_address_always_allowed():
    assert verify_source_network("203.0.113.5:443", False, False, False) is None


@pytest.mark.parametrize("addr", ["example.com:80", "not-an-ip", "fe80::1%eth0"])
def test_invalid_address(addr):
    with pytest.raises(ValueError, match="invalid source address"):
        verify_source_network(addr, True, True, True)