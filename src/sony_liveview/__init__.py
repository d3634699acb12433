"""
Sony Liveview
=============

Client for the Sony Camera Remote API liveview stream.

The camera is switched into liveview mode with JSON control commands,
then streams an unbounded HTTP body of framed JPEG payloads which this
package decodes one frame at a time.

Components:
    - control: JSON control commands (startRecMode, startLiveview, ...)
    - stream: stream session, frame decoder and reconnect backoff
    - client: lifecycle facade and reconnecting fetch loop
    - viewer: OpenCV display for the decoded frames

Example:
    from sony_liveview import LiveviewClient

    client = LiveviewClient.start("http://192.168.122.1:8080")
    client.connect()
    frame = client.fetch_frame()
    client.stop()
"""

__version__ = "0.1.0"

from sony_liveview.client import ClientState, LiveviewClient
from sony_liveview.stream.frame import LiveviewFrame

__all__ = [
    "__version__",
    "ClientState",
    "LiveviewClient",
    "LiveviewFrame",
]
