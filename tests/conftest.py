# ABOUTME: Shared pytest fixtures for Shelfscan tests.
# ABOUTME: Provides sample shelf images (raw and as data URLs) for testing.

import base64
from pathlib import Path

import pytest

from shelfscan.recognition.provider import ScanImage

# Smallest valid JPEG header bytes; no test decodes the pixels.
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def scan_image() -> ScanImage:
    """A tiny JPEG payload standing in for a shelf photo."""
    return ScanImage(data=JPEG_BYTES, mime_type="image/jpeg")


@pytest.fixture
def image_data_url() -> str:
    """The sample JPEG encoded as a base64 data URL."""
    return "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode("ascii")


@pytest.fixture
def shelf_photo(tmp_path: Path) -> Path:
    """The sample JPEG written to disk."""
    path = tmp_path / "shelf.jpg"
    path.write_bytes(JPEG_BYTES)
    return path
