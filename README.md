# pixgate

Building blocks for an image proxy server, written in plain Python with no
third-party runtime dependencies.

## Modules

- `pixgate.security`
  - `verify_signature(signature, path, keys, salts, signature_size)` checks an
    URL-safe, unpadded base64 HMAC-SHA256 signature of a path against each
    key/salt pair. Signatures are truncated to `signature_size` bytes when that
    is below 32. When no keys or salts are configured, every signature passes.
  - `verify_source_url(image_url, allowed_sources)` takes compiled regular
    expressions. It passes when the list is empty or when one of them matches.
  - `verify_source_network(addr, allow_loopback, allow_link_local, allow_private)`
    checks an IP address, with or without a port. It raises `ValueError` for
    an address that is not an IP and `PermissionError` for one in a network
    that is not allowed.
  - `SecurityOptions`, `check_file_size`, `limit_file_size` (returns a
    `LimitedReader` when a limit is set), `check_dimensions` and
    `check_security_options_allowed` enforce size, resolution and
    animation-frame limits.
  - The other checks raise `ProxyError` on failure. It carries `status_code`,
    `message`, `public_message` and `unexpected`.
- `pixgate.bmp`
  - `decode_bmp(data, no_alpha=True)` returns a `Bitmap`: width, height, bands
    and interleaved RGB/RGBA bytes. It handles 1/2/4/8-bit paletted images,
    RLE8/RLE4, 16-bit (555 and 565), 24-bit and 32-bit images.
  - `encode_bmp(bitmap)` writes an uncompressed 24-bit BMP. Alpha is
    premultiplied into the colour channels. Failures raise `BmpError`.
- `pixgate.ico`
  - `encode_ico(png_data, width, height, has_alpha)` wraps PNG data in a
    single-entry ICO file. The limit is 256×256.
  - `fix_bmp_header(data)` turns a bitmap stored inside an ICO into a
    standalone BMP. Failures raise `IcoError`.
- `pixgate.router` — a `Router` that dispatches a `Request` to the first
  route whose method and path prefix (or exact path) match.
  - Register routes with `add`, `get`, `options` and `head`.
  - `serve` returns a `Response` carrying `Server` and `X-Request-ID` headers.
    It takes the client IP from `CF-Connecting-IP`, `X-Forwarded-For` or
    `X-Real-IP`. It answers 404 when no route matches.
  - `check_timeout(request)` raises `ProxyError` with status 499 for a
    cancelled request and 503 for one past its deadline.
  - `log_request` and `log_response` log through the standard `logging` module.
- `pixgate.fs_transport` — `FileSystemTransport(root, etag_enabled,
  last_modified_enabled)`. Its `round_trip(path, headers)` serves files under
  `root` and answers:
  - 404 for missing files and directories;
  - 206 for a single `bytes=` range;
  - 416 for a malformed range;
  - 304 for matching `If-None-Match` / `If-Modified-Since` headers.

  `build_etag` computes the ETag it uses.
- `pixgate.notmodified` — `not_modified_response(request_headers,
  response_headers, etag_enabled, last_modified_enabled)` returns a 304
  `Response` or `None`.
- `pixgate.headers` — helpers driven by `HeaderSettings`:
  - `vary_value` builds the `Vary` value;
  - `cache_control_headers` builds `Cache-Control`/`Expires` from a forced
    expiry, passed-through origin headers or the configured TTL;
  - `last_modified_header` and `canonical_header` build those headers.
- `pixgate.structdiff` — `diff(a, b)` lists the public fields of two
  dataclass instances that differ, recursing into nested dataclasses. The
  result is `Entries`, which renders as `name: value; ...` text or through
  `to_json()`.
- `pixgate.color` — `Color` and `color_from_hex("fff")` /
  `color_from_hex("ffffff")`. An invalid value raises `ValueError`.
- `pixgate.reuseport` — `listen(network, address, reuseport)` opens a
  listening TCP socket for `tcp`, `tcp4` or `tcp6`, with `SO_REUSEPORT` where
  the platform has it.

## What it does not do

pixgate is a set of parts, not a running proxy. It has:

- no command and no network server that ties the router to a socket;
- no image resizing or other processing;
- no downloading from remote or cloud storage;
- no SVG handling;
- no limit on concurrent requests.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from pixgate.color import color_from_hex
from pixgate.security import ProxyError, verify_signature

print(color_from_hex("f80"))  # Color(r=255, g=136, b=0)

keys = [b"secret"]
salts = [b"secret"]

try:
    verify_signature("placeholder", "/rs:fill:4:4/plain/local:///test1.png", keys, salts, 32)
except ProxyError as err:
    print(err.status_code, err)  # 403 Invalid signature
```