[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pixgate"
version = "3.18.1"
description = "Building blocks for an image proxy: request signing, source checks, BMP/ICO codecs, routing and conditional responses"
requires-python = ">=3.10"
dependencies = []
keywords = ["image", "proxy", "bmp", "ico", "hmac", "signature", "http", "etag"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pixgate"]

[tool.pytest.ini_options]
addopts = "-ra"
