"""Conditional-request checks that produce 304 Not Modified responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

_HTTP_TIME_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"


@dataclass
class Response:
    """A minimal HTTP response."""

    status_code: int
    headers: dict = field(default_factory=dict)
    content_length: int = 0
    body: bytes = b""


def _header(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ""


def _parse_http_time(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, _HTTP_TIME_FORMAT)
    except ValueError:
        return None


def not_modified_response(
    request_headers: Mapping[str, str],
    response_headers: Mapping[str, str],
    etag_enabled: bool,
    last_modified_enabled: bool,
) -> Optional[Response]:
    """Return a 304 response when the request's conditions say the client is current."""
    if etag_enabled:
        etag = _header(response_headers, "ETag")
        if_none_match = _header(request_headers, "If-None-Match")
        if if_none_match and if_none_match == etag:
            return Response(304, dict(response_headers))

    if last_modified_enabled:
        last_modified_raw = _header(response_headers, "Last-Modified")
        if not last_modified_raw:
            return None
        if_modified_since_raw = _header(request_headers, "If-Modified-Since")
        if not if_modified_since_raw:
            return None
        last_modified = _parse_http_time(last_modified_raw)
        if last_modified is None:
            return None
        if_modified_since = _parse_http_time(if_modified_since_raw)
        if if_modified_since is None:
            return None
        if if_modified_since >= last_modified:
            return Response(304, dict(response_headers))

    return None