"""
Test Configuration
==================

Pytest fixtures and test configuration for the liveview client.
"""

import io
import json
from unittest.mock import MagicMock

import pytest
import requests

from sony_liveview.config import Settings
from sony_liveview.stream.decoder import PAYLOAD_TYPE_FRAME_INFO, encode_frame


# Smallest JPEG-looking body; the decoder never interprets it
SAMPLE_JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 12 + b"\xff\xd9"


def make_stream_response(data: bytes, status_code: int = 200) -> MagicMock:
    """Fake streaming requests.Response whose raw body is `data`."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.raw = io.BytesIO(data)
    return response


def make_json_response(body, status_code: int = 200) -> MagicMock:
    """Fake requests.Response carrying a JSON (or raw bytes) body."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = body if isinstance(body, bytes) else json.dumps(body).encode()
    return response


@pytest.fixture
def sample_jpeg():
    """Provide a small JPEG-like payload body."""
    return SAMPLE_JPEG


@pytest.fixture
def image_stream(sample_jpeg):
    """Provide a stream of image, frame info, image payloads."""
    return b"".join([
        encode_frame(sample_jpeg, sequence_number=1, timestamp=100),
        encode_frame(bytes(16), payload_type=PAYLOAD_TYPE_FRAME_INFO, sequence_number=2),
        encode_frame(sample_jpeg[::-1], sequence_number=3, timestamp=200, padding_size=4),
    ])


@pytest.fixture
def fast_settings():
    """Provide settings with zero reconnect delay."""
    return Settings.model_validate({
        "reconnect": {"backoff_ms": 0, "max_backoff_ms": 0, "max_attempts": 0},
    })


@pytest.fixture
def mock_http():
    """Provide a mocked requests.Session that accepts every command."""
    http = MagicMock(spec=requests.Session)
    http.post.return_value = make_json_response({"result": [0], "id": 1})
    return http
