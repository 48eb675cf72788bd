"""Request security checks: signatures, size limits and allowed sources."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import ipaddress
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Pattern, Sequence, Union


class ProxyError(Exception):
    """An error carrying an HTTP status and a message safe to show clients."""

    def __init__(
        self,
        status_code: int,
        message: str,
        public_message: str,
        unexpected: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.public_message = public_message
        self.unexpected = unexpected


@dataclass(frozen=True)
class SecurityOptions:
    """Limits applied to source images."""

    max_src_resolution: int
    max_src_file_size: int
    max_animation_frames: int
    max_animation_frame_resolution: int


def _file_too_big() -> ProxyError:
    return ProxyError(422, "Source image file is too big", "Invalid source image")


class LimitedReader:
    """Wraps a binary stream and fails once more than the limit is read."""

    def __init__(self, stream: BinaryIO, limit: int) -> None:
        self._stream = stream
        self._left = limit

    def _read_some(self, size: int) -> bytes:
        if self._left <= 0:
            raise _file_too_big()
        if size < 0 or size > self._left:
            size = self._left
        data = self._stream.read(size)
        self._left -= len(data)
        return data

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything when ``size`` is negative."""
        if size >= 0:
            return self._read_some(size)
        chunks = []
        while True:
            chunk = self._read_some(-1)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)


def _as_bytes(value: Union[bytes, str]) -> bytes:
    return value.encode() if isinstance(value, str) else bytes(value)


def _signature_for(path: str, key: bytes, salt: bytes, signature_size: int) -> bytes:
    mac = hmac.new(key, digestmod=hashlib.sha256)
    mac.update(salt)
    mac.update(path.encode())
    digest = mac.digest()
    return digest[:signature_size] if signature_size < 32 else digest


def _decode_raw_urlsafe(signature: str) -> bytes:
    if "=" in signature:
        raise ValueError("padding is not allowed")
    standard = signature.replace("-", "+").replace("_", "/")
    padded = standard + "=" * (-len(standard) % 4)
    return base64.b64decode(padded, validate=True)


def verify_signature(
    signature: str,
    path: str,
    keys: Sequence[Union[bytes, str]],
    salts: Sequence[Union[bytes, str]],
    signature_size: int,
) -> None:
    """Check an URL-safe base64 HMAC-SHA256 signature of ``path``.

    Without keys or salts every signature is accepted.
    """
    if not keys or not salts:
        return

    try:
        message_mac = _decode_raw_urlsafe(signature)
    except (ValueError, binascii.Error):
        raise ProxyError(403, "Invalid signature encoding", "Forbidden") from None

    for key, salt in zip(keys, salts):
        expected = _signature_for(path, _as_bytes(key), _as_bytes(salt), signature_size)
        if hmac.compare_digest(message_mac, expected):
            return

    raise ProxyError(403, "Invalid signature", "Forbidden")


def check_file_size(size: int, opts: SecurityOptions) -> None:
    """Reject a source file larger than the configured maximum."""
    if opts.max_src_file_size > 0 and size > opts.max_src_file_size:
        raise _file_too_big()


def limit_file_size(stream: BinaryIO, opts: SecurityOptions):
    """Wrap ``stream`` so reading past the size limit fails."""
    if opts.max_src_file_size > 0:
        return LimitedReader(stream, opts.max_src_file_size)
    return stream


def check_dimensions(width: int, height: int, frames: int, opts: SecurityOptions) -> None:
    """Reject images whose resolution exceeds the configured limits."""
    frames = max(frames, 1)

    if frames > 1 and opts.max_animation_frame_resolution > 0:
        if width * height > opts.max_animation_frame_resolution:
            raise ProxyError(
                422, "Source image frame resolution is too big", "Invalid source image"
            )
    elif width * height * frames > opts.max_src_resolution:
        raise ProxyError(422, "Source image resolution is too big", "Invalid source image")


def check_security_options_allowed(allowed: bool) -> None:
    """Fail unless per-request security options are permitted."""
    if not allowed:
        raise ProxyError(403, "Security processing options are not allowed", "Invalid URL")


def verify_source_url(image_url: str, allowed_sources: Iterable[Pattern[str]]) -> None:
    """Require ``image_url`` to match one of the allowed patterns, if any are set."""
    patterns = list(allowed_sources)
    if not patterns:
        return
    if any(pattern.search(image_url) for pattern in patterns):
        return
    raise ProxyError(404, f"Source URL is not allowed: {image_url}", "Invalid source")


_PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "fc00::/7")
)
_LINK_LOCAL_MULTICAST_V4 = ipaddress.ip_network("224.0.0.0/24")


def _split_host(addr: str) -> str:
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0 or addr[end + 1:end + 2] != ":":
            raise ValueError("missing port in address")
        return addr[1:end]
    host, sep, _port = addr.rpartition(":")
    if not sep or ":" in host:
        raise ValueError("invalid host and port")
    return host


def _is_link_local_multicast(ip) -> bool:
    if ip.version == 4:
        return ip in _LINK_LOCAL_MULTICAST_V4
    packed = ip.packed
    return packed[0] == 0xFF and packed[1] & 0x0F == 0x02


def verify_source_network(
    addr: str,
    allow_loopback: bool,
    allow_link_local: bool,
    allow_private: bool,
) -> None:
    """Check that a resolved source address belongs to an allowed network."""
    try:
        host = _split_host(addr)
    except ValueError:
        host = addr

    if "%" in host:
        raise ValueError("invalid source address")
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        raise ValueError("invalid source address") from None

    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    if not allow_loopback and ip.is_loopback:
        raise PermissionError("source address is not allowed")

    if not allow_link_local and (ip.is_link_local or _is_link_local_multicast(ip)):
        raise PermissionError("source address is not allowed")

    if not allow_private and any(ip in net for net in _PRIVATE_NETWORKS):
        raise PermissionError("source address is not allowed")