"""
Stream Module
=============

Liveview stream transport and decoding.

This module provides the streaming side of the client:
    - StreamSession: owns the HTTP response carrying the stream
    - fetch_frame: decodes one payload from a byte source
    - CommonHeader / PayloadHeader / LiveviewFrame: decoded data
    - ReconnectBackoff: delay schedule between reconnects

Example:
    from sony_liveview.stream import StreamSession, fetch_frame

    session = StreamSession("http://192.168.122.1:8080")
    source = session.connect()
    while True:
        frame = fetch_frame(source)
        if frame is not None:
            handle(frame.data)
"""

from sony_liveview.stream.frame import CommonHeader, LiveviewFrame, PayloadHeader
from sony_liveview.stream.decoder import (
    encode_frame,
    fetch_frame,
    read_common_header,
    read_payload,
)
from sony_liveview.stream.session import StreamSession
from sony_liveview.stream.backoff import ReconnectBackoff


__all__ = [
    "CommonHeader",
    "PayloadHeader",
    "LiveviewFrame",
    "encode_frame",
    "fetch_frame",
    "read_common_header",
    "read_payload",
    "StreamSession",
    "ReconnectBackoff",
]
