"""
Liveview Frame Data Model
=========================

Typed headers and frames produced by the liveview decoder.

Design Rules:
    - Every decode call builds fresh instances (no shared header state)
    - Instances are immutable
    - Does NOT decode JPEG data
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommonHeader:
    """
    Common header preceding every payload in the stream.

    Attributes:
        payload_type: 0x01 for JPEG images, 0x02 for frame information
        sequence_number: 16-bit counter assigned by the camera
        timestamp: 32-bit camera timestamp (milliseconds)
    """

    payload_type: int
    sequence_number: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class PayloadHeader:
    """
    Payload header following the common header.

    The start code and the reserved region are validated and skipped
    by the decoder and are not kept.

    Attributes:
        payload_size: Body size in bytes (24-bit unsigned)
        padding_size: Padding bytes trailing the body
    """

    payload_size: int
    padding_size: int


@dataclass(frozen=True, slots=True)
class LiveviewFrame:
    """
    A decoded image payload.

    Attributes:
        header: Common header the image arrived with
        data: Raw JPEG bytes, exactly payload_size long
    """

    header: CommonHeader
    data: bytes

    @property
    def sequence_number(self) -> int:
        return self.header.sequence_number

    @property
    def timestamp(self) -> int:
        return self.header.timestamp

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"LiveviewFrame(sequence_number={self.header.sequence_number}, "
            f"timestamp={self.header.timestamp}, "
            f"size={len(self.data)})"
        )
