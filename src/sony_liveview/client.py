"""
Liveview Client
===============

Facade tying the control channel, stream session and decoder together.

Lifecycle:
    IDLE --start--> READY --connect--> STREAMING
    STREAMING --decode error--> READY (connect again)
    any --stop--> STOPPED (terminal)

Example:
    from sony_liveview.client import LiveviewClient

    with LiveviewClient.start("http://192.168.122.1:8080") as client:
        client.run(lambda frame: show(frame.data))

Design Rules:
    - Exactly one reader per stream session
    - A decode error always drops the connection it happened on
    - stop() may be called from another thread; the blocked read then
      fails and run() returns normally
"""

import logging
import threading
from enum import Enum
from typing import Callable, Iterator, Optional

import requests

from sony_liveview.config import Settings, settings as default_settings
from sony_liveview.control import ControlChannel
from sony_liveview.errors import (
    ClientStateError,
    ControlCommandError,
    LiveviewError,
    ReconnectExhaustedError,
    StreamDecodeError,
)
from sony_liveview.stream.backoff import ReconnectBackoff
from sony_liveview.stream.decoder import fetch_frame
from sony_liveview.stream.frame import LiveviewFrame
from sony_liveview.stream.session import StreamSession


logger = logging.getLogger(__name__)


class ClientState(str, Enum):
    """Lifecycle state of a LiveviewClient."""

    IDLE = "IDLE"
    READY = "READY"
    STREAMING = "STREAMING"
    STOPPED = "STOPPED"


class ClientMetrics:
    """Metrics for LiveviewClient observability."""

    __slots__ = (
        "frames_decoded",
        "frame_info_skipped",
        "reconnect_count",
        "decode_errors",
        "sequence_gaps",
        "last_sequence_number",
        "last_timestamp",
    )

    def __init__(self) -> None:
        self.frames_decoded: int = 0
        self.frame_info_skipped: int = 0
        self.reconnect_count: int = 0
        self.decode_errors: int = 0
        self.sequence_gaps: int = 0
        self.last_sequence_number: int = -1
        self.last_timestamp: int = -1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_decoded": self.frames_decoded,
            "frame_info_skipped": self.frame_info_skipped,
            "reconnect_count": self.reconnect_count,
            "decode_errors": self.decode_errors,
            "sequence_gaps": self.sequence_gaps,
            "last_sequence_number": self.last_sequence_number,
            "last_timestamp": self.last_timestamp,
        }


class LiveviewClient:
    """
    Liveview protocol client.

    Attributes:
        url: Camera base URL
        control: Control channel used for commands
        session: Stream session owning the live connection
        backoff: Reconnect delay schedule used by run()
        metrics: Operational metrics
    """

    def __init__(
        self,
        url: str,
        settings: Optional[Settings] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize a client without contacting the camera.

        Args:
            url: Camera base URL, e.g. http://192.168.122.1:8080
            settings: Settings to use; defaults to the global settings
            http: Shared requests session (mainly for tests)
        """
        settings = settings or default_settings

        self.url = url.rstrip("/")
        self.control = ControlChannel(
            self.url,
            http=http,
            timeout=settings.camera.control_timeout_seconds,
            validate_responses=settings.camera.validate_responses,
        )
        self.session = StreamSession(
            self.url,
            http=http,
            connect_timeout=settings.stream.connect_timeout_seconds,
            read_timeout=settings.stream.read_timeout_seconds,
        )
        self.backoff = ReconnectBackoff.from_config(settings.reconnect)
        self.metrics = ClientMetrics()

        self._state = ClientState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()

    @classmethod
    def start(
        cls,
        url: str,
        settings: Optional[Settings] = None,
        http: Optional[requests.Session] = None,
    ) -> "LiveviewClient":
        """
        Create a client and put the camera into liveview mode.

        Raises:
            ControlCommandError: If startRecMode or startLiveview fails
        """
        client = cls(url, settings=settings, http=http)
        client.open()
        return client

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._state == ClientState.STOPPED or self._stop_event.is_set()

    def open(self) -> None:
        """Send startRecMode then startLiveview."""
        if self._state != ClientState.IDLE:
            raise ClientStateError(f"Cannot start client in state {self._state.value}")

        self.control.start_rec_mode()
        self.control.start_liveview()
        if not self._transition(ClientState.READY):
            raise ClientStateError("Client stopped while starting")

    def connect(self) -> None:
        """
        Open (or reopen) the liveview stream.

        Raises:
            ClientStateError: If the client was not started or is stopped
            StreamConnectError: If the stream cannot be opened
        """
        if self._state == ClientState.IDLE:
            raise ClientStateError("Client must be started before connecting")
        if self.stopped:
            raise ClientStateError("Client is stopped")

        self._transition(ClientState.READY)
        self.session.connect()

        # stop() may have run on another thread during the blocking GET
        if not self._transition(ClientState.STREAMING):
            self.session.close()
            raise ClientStateError("Client stopped while connecting")

        # Sequence tracking starts over on every connection
        self.metrics.last_sequence_number = -1
        self.metrics.last_timestamp = -1

    def fetch_frame(self) -> Optional[LiveviewFrame]:
        """
        Decode the next payload of the current stream.

        Returns:
            LiveviewFrame for an image, None for frame information

        Raises:
            ClientStateError: If not connected
            StreamDecodeError: On framing, read or payload type errors;
                the connection is closed and connect() must be called again
        """
        source = self.session.source
        if self._state != ClientState.STREAMING or source is None:
            raise ClientStateError("Client is not connected")

        try:
            frame = fetch_frame(source)
        except StreamDecodeError:
            self.metrics.decode_errors += 1
            self._drop_connection()
            raise

        self._record(frame)
        return frame

    def frames(self) -> Iterator[LiveviewFrame]:
        """Yield image frames from the current connection until it fails."""
        while True:
            frame = self.fetch_frame()
            if frame is not None:
                yield frame

    def run(
        self,
        on_frame: Callable[[LiveviewFrame], None],
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Fetch loop: connect, decode, reconnect with backoff.

        Runs until stop() is called or stop_event is set.

        Args:
            on_frame: Called with every decoded image frame
            stop_event: Optional external event that ends the loop

        Raises:
            ClientStateError: If the client was never started
            ReconnectExhaustedError: If the reconnect policy gives up
        """
        if self._state == ClientState.IDLE:
            raise ClientStateError("Client must be started before running")
        if stop_event is not None:
            self._stop_event = stop_event

        attempt = 0
        last_error: Optional[BaseException] = None

        logger.info(f"Liveview fetch loop starting for {self.url}")

        while not self.stopped:
            try:
                self.connect()
                while not self.stopped:
                    frame = self.fetch_frame()
                    if frame is not None:
                        attempt = 0
                        on_frame(frame)
            except LiveviewError as e:
                if self.stopped:
                    break
                last_error = e
                logger.error(f"Liveview stream error: {e}")
            except Exception:
                if self.stopped:
                    # Connection torn down under a blocked read
                    break
                raise

            self._drop_connection()
            if self.stopped:
                break

            attempt += 1
            if self.backoff.exhausted(attempt):
                logger.error(
                    f"Max reconnect attempts ({self.backoff.max_attempts}) exceeded"
                )
                raise ReconnectExhaustedError(self.backoff.max_attempts, last_error)

            self.metrics.reconnect_count += 1
            delay = self.backoff.delay(attempt)
            logger.info(f"Updating stream in {delay:.1f}s (attempt {attempt})")

            if self._stop_event.wait(timeout=delay):
                break

        logger.info("Liveview fetch loop stopped")

    def stop(self) -> None:
        """
        Stop liveview and release all connections.

        The stopLiveview command is best-effort: failures are logged
        and shutdown continues.
        """
        with self._state_lock:
            if self._state == ClientState.STOPPED:
                return
            was_started = self._state != ClientState.IDLE
            self._state = ClientState.STOPPED
        self._stop_event.set()

        if was_started:
            try:
                self.control.stop_liveview()
            except ControlCommandError as e:
                logger.error(f"Failed to stop liveview: {e}")

        self.session.shutdown()
        self.control.close()

    def _drop_connection(self) -> None:
        """Close the current stream and fall back to READY."""
        self.session.close()
        with self._state_lock:
            if self._state == ClientState.STREAMING:
                self._state = ClientState.READY

    def _transition(self, state: ClientState) -> bool:
        """Move to `state` unless stopped. Returns False if stopped."""
        with self._state_lock:
            if self._state == ClientState.STOPPED:
                return False
            self._state = state
            return True

    def _record(self, frame: Optional[LiveviewFrame]) -> None:
        """Update metrics for a decoded payload."""
        if frame is None:
            self.metrics.frame_info_skipped += 1
            return

        self.metrics.frames_decoded += 1

        last = self.metrics.last_sequence_number
        if last >= 0:
            expected = (last + 1) & 0xFFFF
            if frame.sequence_number != expected:
                self.metrics.sequence_gaps += 1
                logger.warning(
                    f"Sequence gap: got {frame.sequence_number}, expected {expected}"
                )

        self.metrics.last_sequence_number = frame.sequence_number
        self.metrics.last_timestamp = frame.timestamp

    def __enter__(self) -> "LiveviewClient":
        return self

    def __exit__(self, *args) -> None:
        self.stop()
