"""Building blocks for an image proxy: security checks, BMP/ICO codecs, routing and HTTP helpers."""

__version__ = "3.18.1"