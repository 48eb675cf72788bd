"""Response header values for processed images."""

from __future__ import annotations

import email.utils
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class HeaderSettings:
    """Configuration that shapes caching and related response headers."""

    enable_webp_detection: bool = False
    enforce_webp: bool = False
    enable_avif_detection: bool = False
    enforce_avif: bool = False
    enable_client_hints: bool = False
    cache_control_passthrough: bool = False
    ttl: int = 31536000
    fallback_image_ttl: int = 0
    last_modified_enabled: bool = False
    set_canonical_header: bool = False


def vary_value(settings: HeaderSettings) -> str:
    """The Vary header value implied by the settings; empty when none."""
    vary = []
    if (
        settings.enable_webp_detection
        or settings.enforce_webp
        or settings.enable_avif_detection
        or settings.enforce_avif
    ):
        vary.append("Accept")
    if settings.enable_client_hints:
        vary.extend(["Sec-CH-DPR", "DPR", "Sec-CH-Width", "Width"])
    return ", ".join(vary)


def cache_control_headers(
    settings: HeaderSettings,
    force: Optional[datetime],
    origin_headers: Optional[Mapping[str, str]],
) -> Dict[str, str]:
    """Cache-Control and Expires headers for a response.

    ``force`` pins the expiry time; otherwise origin headers are passed
    through when enabled, falling back to the configured TTL.
    """
    if force is not None:
        if force.tzinfo is None:
            force = force.replace(tzinfo=timezone.utc)
        max_age = int(force.timestamp() - time.time())
        return {
            "Cache-Control": f"max-age={max_age}, public",
            "Expires": email.utils.format_datetime(force.astimezone(timezone.utc), usegmt=True),
        }

    cache_control = ""
    expires = ""

    if settings.cache_control_passthrough and origin_headers is not None:
        cache_control = origin_headers.get("Cache-Control", "")
        expires = origin_headers.get("Expires", "")

    if not cache_control and not expires:
        ttl = settings.ttl
        if (
            origin_headers is not None
            and "Fallback-Image" in origin_headers
            and settings.fallback_image_ttl > 0
        ):
            ttl = settings.fallback_image_ttl
        cache_control = f"max-age={ttl}, public"
        expires = email.utils.formatdate(time.time() + ttl, usegmt=True)

    headers = {}
    if cache_control:
        headers["Cache-Control"] = cache_control
    if expires:
        headers["Expires"] = expires
    return headers


def last_modified_header(
    settings: HeaderSettings, origin_headers: Optional[Mapping[str, str]]
) -> Dict[str, str]:
    """Pass the origin's Last-Modified through when enabled."""
    if settings.last_modified_enabled and origin_headers:
        value = origin_headers.get("Last-Modified", "")
        if value:
            return {"Last-Modified": value}
    return {}


def canonical_header(settings: HeaderSettings, origin_url: str) -> Dict[str, str]:
    """A canonical Link header pointing at an HTTP(S) origin URL, when enabled."""
    if settings.set_canonical_header and origin_url.startswith(("https://", "http://")):
        return {"Link": f'<{origin_url}>; rel="canonical"'}
    return {}