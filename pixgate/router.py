"""A prefix-matching request router with request IDs, client-IP handling and timing."""

from __future__ import annotations

import logging
import re
import secrets
import string
import threading
import time
import traceback
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote

from pixgate.security import ProxyError

logger = logging.getLogger(__name__)

X_REQUEST_ID_HEADER = "X-Request-ID"
SERVER_NAME = "pixgate"

_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9_\-]+")
_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
_ID_LENGTH = 21


@dataclass
class Request:
    """An incoming HTTP request together with its timing state."""

    method: str
    uri: str
    headers: Dict[str, str] = field(default_factory=dict)
    remote_addr: str = ""
    started_at: Optional[float] = None
    deadline: Optional[float] = None
    _cancelled: threading.Event = field(
        default_factory=threading.Event, repr=False, compare=False
    )

    @property
    def path(self) -> str:
        """The decoded path part of the request URI."""
        return unquote(self.uri.split("?", 1)[0])

    def header(self, name: str) -> str:
        """Case-insensitive header lookup; empty when absent."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return ""

    def cancel(self) -> None:
        """Mark the request as cancelled by the client."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def elapsed(self) -> float:
        """Seconds since the router started handling the request."""
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at


@dataclass
class Response:
    """An outgoing HTTP response."""

    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


RouteHandler = Callable[[str, Request], Response]


@dataclass(frozen=True)
class _Route:
    method: str
    prefix: str
    handler: RouteHandler
    exact: bool

    def matches(self, request: Request) -> bool:
        if self.method != request.method:
            return False
        if self.exact:
            return request.path == self.prefix
        return request.path.startswith(self.prefix)


def _new_request_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def _split_host_port(addr: str) -> Tuple[str, str]:
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {addr}")
        if addr[end + 1:end + 2] != ":":
            raise ValueError(f"missing port in address {addr}")
        return addr[1:end], addr[end + 2:]
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr}")
    if ":" in host:
        raise ValueError(f"too many colons in address {addr}")
    return host, port


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _client_ip(request: Request) -> str:
    try:
        return _split_host_port(request.remote_addr)[0]
    except ValueError:
        return ""


def _format_duration(seconds: float) -> str:
    if seconds <= 0:
        return "0s"
    if seconds < 1e-6:
        return f"{seconds * 1e9:g}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:g}µs"
    if seconds < 1:
        return f"{seconds * 1e3:g}ms"
    return f"{seconds:g}s"


def replace_remote_addr(request: Request, ip: str) -> None:
    """Replace the request's client host, keeping its port (80 if unknown)."""
    try:
        _, port = _split_host_port(request.remote_addr)
    except ValueError:
        port = "80"
    request.remote_addr = _join_host_port(ip.strip(), port)


def log_request(req_id: str, request: Request) -> None:
    """Log the start of a request."""
    fields = {
        "request_id": req_id,
        "method": request.method,
        "client_ip": _client_ip(request),
    }
    logger.info("Started %s", request.uri, extra={"fields": fields})


def log_response(
    req_id: str,
    request: Request,
    status: int,
    error: Optional[BaseException],
    *args: Mapping[str, object],
) -> None:
    """Log the completion of a request at a level chosen by its status."""
    if status >= 500:
        level = logging.ERROR
    elif status >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    fields: Dict[str, object] = {
        "request_id": req_id,
        "method": request.method,
        "status": status,
        "client_ip": _client_ip(request),
    }

    if error is not None:
        fields["error"] = error
        if error.__traceback__ is not None:
            stack = "".join(traceback.format_tb(error.__traceback__))
            if stack:
                fields["stack"] = stack

    for extra in args:
        fields.update(extra)

    logger.log(
        level,
        "Completed in %s %s",
        _format_duration(request.elapsed()),
        request.uri,
        extra={"fields": fields},
    )


def check_timeout(request: Request) -> None:
    """Raise if the request was cancelled or has run past its deadline."""
    if request.cancelled:
        elapsed = _format_duration(request.elapsed())
        raise ProxyError(499, f"Request was cancelled after {elapsed}", "Cancelled")
    if request.deadline is not None and time.monotonic() >= request.deadline:
        elapsed = _format_duration(request.elapsed())
        raise ProxyError(503, f"Request was timed out after {elapsed}", "Timeout")


class Router:
    """Dispatches requests to the first route whose method and prefix match."""

    def __init__(self, prefix: str = "", write_timeout: float = 10.0) -> None:
        self.prefix = prefix
        self.write_timeout = write_timeout
        self.routes: List[_Route] = []

    def add(self, method: str, prefix: str, handler: RouteHandler, exact: bool) -> None:
        """Register a handler for ``method`` and a path prefix (or exact path)."""
        self.routes.append(_Route(method, self.prefix + prefix, handler, exact))

    def get(self, prefix: str, handler: RouteHandler, exact: bool) -> None:
        self.add("GET", prefix, handler, exact)

    def options(self, prefix: str, handler: RouteHandler, exact: bool) -> None:
        self.add("OPTIONS", prefix, handler, exact)

    def head(self, prefix: str, handler: RouteHandler, exact: bool) -> None:
        self.add("HEAD", prefix, handler, exact)

    def serve(self, request: Request) -> Response:
        """Handle ``request`` and return the response."""
        now = time.monotonic()
        request.started_at = now
        request.deadline = now + self.write_timeout

        req_id = request.header(X_REQUEST_ID_HEADER)
        if not req_id or not _REQUEST_ID_RE.fullmatch(req_id):
            req_id = _new_request_id()

        base_headers = {"Server": SERVER_NAME, X_REQUEST_ID_HEADER: req_id}

        cf_ip = request.header("CF-Connecting-IP")
        forwarded = request.header("X-Forwarded-For")
        real_ip = request.header("X-Real-IP")
        if cf_ip:
            replace_remote_addr(request, cf_ip)
        elif forwarded:
            index = forwarded.find(",")
            if index > 0:
                forwarded = forwarded[:index]
            replace_remote_addr(request, forwarded)
        elif real_ip:
            replace_remote_addr(request, real_ip)

        log_request(req_id, request)

        for route in self.routes:
            if route.matches(request):
                response = route.handler(req_id, request)
                response.headers = {**base_headers, **response.headers}
                return response

        logger.warning("Route for %s is not defined", request.path)
        return Response(404, base_headers)