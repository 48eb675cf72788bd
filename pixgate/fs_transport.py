"""Serving source images from a local directory as HTTP-like responses."""

from __future__ import annotations

import base64
import email.utils
import hashlib
import mimetypes
import os
import posixpath
import stat
from typing import Mapping, Optional, Tuple

from pixgate.notmodified import Response, not_modified_response

_SNIFF_LEN = 512

_SIGNATURES = (
    (b"BM", "image/bmp"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
)
_BINARY_BYTES = frozenset(list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B))
                          + list(range(0x1C, 0x20)))


def _header(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ""


def _sniff(head: bytes) -> str:
    for signature, mimetype in _SIGNATURES:
        if head.startswith(signature):
            return mimetype
    if head[:4] == b"RIFF" and head[8:14] == b"WEBPVP":
        return "image/webp"
    if head.lstrip(b"\t\n\x0c\r ").startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    if any(byte in _BINARY_BYTES for byte in head):
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


def _detect_content_type(head: bytes, name: str) -> str:
    mimetype = _sniff(head) if len(head) == _SNIFF_LEN else ""
    if not mimetype or mimetype.startswith(("text/plain", "application/octet-stream")):
        guessed = mimetypes.guess_type(name)[0]
        if guessed:
            mimetype = guessed
    return mimetype


def _parse_range(value: str) -> Optional[Tuple[int, Optional[int]]]:
    """Parse a single ``bytes=start-[end]`` range; None when there is none."""
    if not value:
        return None
    unit, sep, spec = value.partition("=")
    if unit.strip() != "bytes" or not sep or "," in spec:
        raise ValueError(f"invalid range: {value}")
    first, dash, last = spec.strip().partition("-")
    if not dash or not first.isdigit():
        raise ValueError(f"invalid range: {value}")
    start = int(first)
    if not last:
        return start, None
    if not last.isdigit():
        raise ValueError(f"invalid range: {value}")
    end = int(last)
    if end < start:
        raise ValueError(f"invalid range: {value}")
    return start, end


def _text_response(status: int, message: str) -> Response:
    body = message.encode()
    return Response(status, {}, len(body), body)


def build_etag(path: str, stat_result: os.stat_result) -> str:
    """A quoted ETag derived from the path, size and modification time."""
    tag = f"{path}__{stat_result.st_size}__{stat_result.st_mtime_ns}"
    digest = hashlib.md5(tag.encode()).digest()
    encoded = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return f'"{encoded}"'


class FileSystemTransport:
    """Answers requests for files under a root directory."""

    def __init__(
        self,
        root: str,
        etag_enabled: bool = False,
        last_modified_enabled: bool = False,
    ) -> None:
        self.root = root
        self.etag_enabled = etag_enabled
        self.last_modified_enabled = last_modified_enabled

    def _resolve(self, path: str) -> str:
        cleaned = posixpath.normpath("/" + path).lstrip("/")
        return os.path.join(self.root, *cleaned.split("/")) if cleaned else self.root

    def round_trip(self, path: str, headers: Optional[Mapping[str, str]] = None) -> Response:
        """Serve ``path`` honouring Range and conditional request headers."""
        headers = headers or {}
        full_path = self._resolve(path)

        try:
            info = os.stat(full_path)
        except FileNotFoundError:
            return _text_response(404, f"{path} doesn't exist")

        if stat.S_ISDIR(info.st_mode):
            return _text_response(404, f"{path} is directory")

        response_headers = {}

        with open(full_path, "rb") as f:
            mimetype = _detect_content_type(f.read(_SNIFF_LEN), os.path.basename(full_path))
            if mimetype:
                response_headers["Content-Type"] = mimetype

            try:
                byte_range = _parse_range(_header(headers, "Range"))
            except ValueError:
                return _text_response(416, "Invalid range")

            status_code = 200
            size = info.st_size
            start = 0

            if byte_range is not None:
                start, end = byte_range
                if end is None:
                    end = info.st_size - 1
                status_code = 206
                size = end - start + 1
                response_headers["Content-Range"] = f"bytes {start}-{end}/{info.st_size}"
            else:
                if self.etag_enabled:
                    response_headers["ETag"] = build_etag(path, info)
                if self.last_modified_enabled:
                    response_headers["Last-Modified"] = email.utils.formatdate(
                        info.st_mtime, usegmt=True
                    )

            not_modified = not_modified_response(
                headers, response_headers, self.etag_enabled, self.last_modified_enabled
            )
            if not_modified is not None:
                return not_modified

            f.seek(start)
            body = f.read(max(size, 0))

        response_headers["Accept-Ranges"] = "bytes"
        response_headers["Content-Length"] = str(size)

        return Response(status_code, response_headers, size, body)