"""
Liveview Frame Decoder
======================

Parser for the binary liveview stream.

Wire format (big-endian throughout):

    Common header (8 bytes)
    +------+---------+-----------------+-------------------+
    | 0xFF | type    | sequence number | timestamp         |
    | 1 B  | 1 B     | 2 B             | 4 B               |
    +------+---------+-----------------+-------------------+

    Payload header (128 bytes)
    +-------------------+-----------+---------+------------+
    | 24 35 68 79       | size      | padding | reserved   |
    | 4 B               | 3 B       | 1 B     | 120 B      |
    +-------------------+-----------+---------+------------+

    Payload body
        type 0x01: `size` bytes of JPEG data
        type 0x02: 16 bytes of frame information (discarded)
    followed by `padding` bytes (discarded)

Design Rules:
    - Every read requires the exact byte count; anything less is fatal
      for the connection (no resynchronization is attempted)
    - Headers are returned as fresh objects, nothing is cached here
    - Frame information payloads yield None ("no frame, try again")
    - Unknown payload types are an error since their length is unknown

Example:
    from sony_liveview.stream.decoder import fetch_frame

    frame = fetch_frame(session.source)
    if frame is not None:
        show(frame.data)
"""

import logging
from typing import Optional, Protocol

import requests
import urllib3

from sony_liveview.errors import (
    FramingError,
    StreamReadError,
    UnknownPayloadTypeError,
)
from sony_liveview.stream.frame import CommonHeader, LiveviewFrame, PayloadHeader


logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

COMMON_HEADER_START_BYTE = 0xFF
PAYLOAD_HEADER_START_CODE = bytes([0x24, 0x35, 0x68, 0x79])

PAYLOAD_TYPE_IMAGE = 0x01
PAYLOAD_TYPE_FRAME_INFO = 0x02

SEQUENCE_NUMBER_SIZE = 2
TIMESTAMP_SIZE = 4
PAYLOAD_SIZE_FIELD_SIZE = 3
RESERVED_SIZE = 120
FRAME_INFO_SIZE = 16

MAX_PAYLOAD_SIZE = 0xFFFFFF
MAX_PADDING_SIZE = 0xFF

# Read failures surfaced by file objects, urllib3 raw bodies and requests
_READ_ERRORS = (
    OSError,
    ValueError,
    urllib3.exceptions.HTTPError,
    requests.RequestException,
)


class ByteSource(Protocol):
    """Anything with a blocking read(n)."""

    def read(self, size: int) -> bytes:
        ...


# =============================================================================
# Reading
# =============================================================================

def read_exact(source: ByteSource, size: int) -> bytes:
    """
    Read exactly `size` bytes from source.

    Args:
        source: Byte source to read from
        size: Number of bytes required

    Returns:
        Exactly `size` bytes

    Raises:
        StreamReadError: On end of stream or any read failure
    """
    if size == 0:
        return b""

    chunks = []
    received = 0
    while received < size:
        try:
            chunk = source.read(size - received)
        except _READ_ERRORS as e:
            raise StreamReadError(
                f"Read failed after {received} of {size} bytes: {e}",
                expected=size,
                received=received,
            ) from e

        if not chunk:
            raise StreamReadError(
                f"Unexpected end of stream after {received} of {size} bytes",
                expected=size,
                received=received,
            )
        chunks.append(chunk)
        received += len(chunk)

    return b"".join(chunks)


def read_common_header(source: ByteSource) -> CommonHeader:
    """
    Read the 8-byte common header.

    Raises:
        FramingError: If the start byte is not 0xFF
        StreamReadError: On short read
    """
    start = read_exact(source, 1)[0]
    if start != COMMON_HEADER_START_BYTE:
        raise FramingError(
            f"Expected common header start byte 0x{COMMON_HEADER_START_BYTE:02x}, "
            f"got 0x{start:02x}"
        )

    payload_type = read_exact(source, 1)[0]
    sequence_number = int.from_bytes(read_exact(source, SEQUENCE_NUMBER_SIZE), "big")
    timestamp = int.from_bytes(read_exact(source, TIMESTAMP_SIZE), "big")

    return CommonHeader(
        payload_type=payload_type,
        sequence_number=sequence_number,
        timestamp=timestamp,
    )


def read_payload_header(source: ByteSource) -> PayloadHeader:
    """
    Read the 128-byte payload header, skipping the reserved region.

    Raises:
        FramingError: If the start code is not 24 35 68 79
        StreamReadError: On short read
    """
    start_code = read_exact(source, len(PAYLOAD_HEADER_START_CODE))
    if start_code != PAYLOAD_HEADER_START_CODE:
        raise FramingError(
            f"Payload start code {start_code.hex(' ')} different from "
            f"{PAYLOAD_HEADER_START_CODE.hex(' ')}"
        )

    payload_size = int.from_bytes(read_exact(source, PAYLOAD_SIZE_FIELD_SIZE), "big")
    padding_size = read_exact(source, 1)[0]
    read_exact(source, RESERVED_SIZE)

    return PayloadHeader(payload_size=payload_size, padding_size=padding_size)


def read_payload(source: ByteSource, header: CommonHeader) -> Optional[LiveviewFrame]:
    """
    Read the payload header, body and padding for a common header.

    Args:
        source: Byte source positioned right after the common header
        header: Common header already read for this payload

    Returns:
        LiveviewFrame for image payloads, None for frame information

    Raises:
        FramingError: If the payload start code does not match
        UnknownPayloadTypeError: If the payload type is not 0x01 or 0x02
        StreamReadError: On short read
    """
    payload_header = read_payload_header(source)

    frame: Optional[LiveviewFrame] = None
    if header.payload_type == PAYLOAD_TYPE_IMAGE:
        data = read_exact(source, payload_header.payload_size)
        frame = LiveviewFrame(header=header, data=data)
    elif header.payload_type == PAYLOAD_TYPE_FRAME_INFO:
        read_exact(source, FRAME_INFO_SIZE)
    else:
        raise UnknownPayloadTypeError(header.payload_type)

    if payload_header.padding_size:
        read_exact(source, payload_header.padding_size)

    return frame


def fetch_frame(source: ByteSource) -> Optional[LiveviewFrame]:
    """
    Decode the next payload from the stream.

    Returns:
        LiveviewFrame for an image, None if the payload carried frame
        information only. The source is left at the next common header.
    """
    header = read_common_header(source)
    frame = read_payload(source, header)

    if frame is None:
        logger.debug(f"Skipped frame information payload {header.sequence_number}")

    return frame


# =============================================================================
# Encoding
# =============================================================================

def encode_frame(
    body: bytes,
    payload_type: int = PAYLOAD_TYPE_IMAGE,
    sequence_number: int = 0,
    timestamp: int = 0,
    padding_size: int = 0,
    payload_size: Optional[int] = None,
) -> bytes:
    """
    Build one wire unit, e.g. to simulate a camera.

    Args:
        body: Payload body (JPEG data, or 16 bytes of frame information)
        payload_type: Payload type byte
        sequence_number: 16-bit sequence number
        timestamp: 32-bit timestamp
        padding_size: Number of zero padding bytes appended
        payload_size: Declared size; defaults to len(body)

    Returns:
        Encoded bytes
    """
    if payload_size is None:
        payload_size = len(body)
    if not 0 <= payload_size <= MAX_PAYLOAD_SIZE:
        raise ValueError(f"payload_size must fit in 24 bits, got {payload_size}")
    if not 0 <= padding_size <= MAX_PADDING_SIZE:
        raise ValueError(f"padding_size must fit in 8 bits, got {padding_size}")

    return b"".join([
        bytes([COMMON_HEADER_START_BYTE, payload_type]),
        sequence_number.to_bytes(SEQUENCE_NUMBER_SIZE, "big"),
        timestamp.to_bytes(TIMESTAMP_SIZE, "big"),
        PAYLOAD_HEADER_START_CODE,
        payload_size.to_bytes(PAYLOAD_SIZE_FIELD_SIZE, "big"),
        bytes([padding_size]),
        bytes(RESERVED_SIZE),
        body,
        bytes(padding_size),
    ])
