"""
Liveview Client Tests
=====================

Tests for the client lifecycle, state machine and fetch loop.
"""

import io
import logging
import threading

import pytest
import requests

from conftest import make_stream_response
from sony_liveview.client import ClientState, LiveviewClient
from sony_liveview.config import Settings
from sony_liveview.errors import (
    ClientStateError,
    ControlCommandError,
    FramingError,
    ReconnectExhaustedError,
    StreamReadError,
)
from sony_liveview.stream.decoder import PAYLOAD_TYPE_FRAME_INFO, encode_frame


def posted_methods(http):
    return [call.kwargs["json"]["method"] for call in http.post.call_args_list]


class SignallingSource:
    """Byte source that sets an event once its data is used up."""

    def __init__(self, data: bytes, event: threading.Event) -> None:
        self._buffer = io.BytesIO(data)
        self._size = len(data)
        self._event = event

    def read(self, size: int) -> bytes:
        chunk = self._buffer.read(size)
        if self._buffer.tell() == self._size:
            self._event.set()
        return chunk


class BlockingSource:
    """Byte source that blocks when drained until it is closed."""

    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)
        self._closed = threading.Event()

    def read(self, size: int) -> bytes:
        chunk = self._buffer.read(size)
        if chunk:
            return chunk
        self._closed.wait(timeout=5.0)
        raise OSError("stream closed")

    def close(self) -> None:
        self._closed.set()


class TestLifecycle:
    """Tests for start/connect/stop transitions."""

    def test_start_sends_commands(self, mock_http, fast_settings):
        """Verify start() enables rec mode then liveview."""
        client = LiveviewClient.start("http://camera:8080/", settings=fast_settings, http=mock_http)

        assert posted_methods(mock_http) == ["startRecMode", "startLiveview"]
        assert client.state == ClientState.READY
        assert client.url == "http://camera:8080"

    def test_start_aborts_on_rec_mode_failure(self, mock_http, fast_settings):
        """Verify a failing startRecMode aborts before startLiveview."""
        mock_http.post.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(ControlCommandError):
            LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        assert mock_http.post.call_count == 1

    def test_connect_requires_start(self, mock_http, fast_settings):
        """Verify connect() is rejected before start()."""
        client = LiveviewClient("http://camera:8080", settings=fast_settings, http=mock_http)

        with pytest.raises(ClientStateError):
            client.connect()

    def test_fetch_requires_connection(self, mock_http, fast_settings):
        """Verify fetch_frame() is rejected without a stream."""
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)

        with pytest.raises(ClientStateError):
            client.fetch_frame()

    def test_stop_sends_stop_and_closes(self, mock_http, fast_settings, image_stream):
        """Verify stop() sends stopLiveview and releases the stream."""
        response = make_stream_response(image_stream)
        mock_http.get.return_value = response
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        client.connect()

        client.stop()

        assert posted_methods(mock_http)[-1] == "stopLiveview"
        response.close.assert_called_once()
        assert client.state == ClientState.STOPPED
        with pytest.raises(ClientStateError):
            client.connect()

    def test_stop_tolerates_control_failure(self, mock_http, fast_settings, image_stream):
        """Verify a failing stopLiveview does not block shutdown."""
        response = make_stream_response(image_stream)
        mock_http.get.return_value = response
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        client.connect()
        mock_http.post.side_effect = requests.Timeout("timed out")

        client.stop()

        response.close.assert_called_once()
        assert client.state == ClientState.STOPPED

    def test_stop_is_idempotent(self, mock_http, fast_settings):
        """Verify a second stop() sends nothing."""
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)

        client.stop()
        client.stop()

        assert posted_methods(mock_http).count("stopLiveview") == 1

    def test_stop_before_start_sends_nothing(self, mock_http, fast_settings):
        """Verify stopping an unstarted client skips stopLiveview."""
        client = LiveviewClient("http://camera:8080", settings=fast_settings, http=mock_http)
        client.stop()
        mock_http.post.assert_not_called()

    def test_stop_during_connect_stays_stopped(self, mock_http, fast_settings, image_stream):
        """Verify a stop() racing the stream GET is not overwritten."""
        response = make_stream_response(image_stream)
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)

        def get_while_stopping(*args, **kwargs):
            client.stop()
            return response

        mock_http.get.side_effect = get_while_stopping

        with pytest.raises(ClientStateError):
            client.connect()

        assert client.state == ClientState.STOPPED
        assert client.session.source is None
        response.close.assert_called_once()

        client.stop()
        assert posted_methods(mock_http).count("stopLiveview") == 1

    def test_context_manager_stops(self, mock_http, fast_settings):
        """Verify leaving the with-block stops the client."""
        with LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http) as client:
            pass
        assert client.state == ClientState.STOPPED


class TestFetch:
    """Tests for frame fetching and metrics."""

    def test_fetch_frames(self, mock_http, fast_settings, image_stream, sample_jpeg):
        """Verify images are returned and frame info is skipped."""
        mock_http.get.return_value = make_stream_response(image_stream)
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        client.connect()

        assert client.state == ClientState.STREAMING
        assert client.fetch_frame().data == sample_jpeg
        assert client.fetch_frame() is None
        assert client.fetch_frame().data == sample_jpeg[::-1]

        metrics = client.metrics.to_dict()
        assert metrics["frames_decoded"] == 2
        assert metrics["frame_info_skipped"] == 1
        assert metrics["sequence_gaps"] == 1
        assert metrics["last_sequence_number"] == 3
        assert metrics["last_timestamp"] == 200

    def test_sequence_gap_logged_as_warning(self, mock_http, fast_settings, image_stream, caplog):
        """Verify sequence gaps are reported at warning level."""
        mock_http.get.return_value = make_stream_response(image_stream)
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        client.connect()

        with caplog.at_level(logging.WARNING, logger="sony_liveview.client"):
            for _ in range(3):
                client.fetch_frame()

        assert any("Sequence gap" in record.message for record in caplog.records)

    def test_frames_generator_skips_frame_info(self, mock_http, fast_settings, image_stream):
        """Verify frames() yields only image payloads."""
        mock_http.get.return_value = make_stream_response(image_stream)
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        client.connect()

        received = []
        with pytest.raises(StreamReadError):
            for frame in client.frames():
                received.append(frame.sequence_number)

        assert received == [1, 3]

    def test_decode_error_drops_connection(self, mock_http, fast_settings):
        """Verify a framing error closes the stream and returns to READY."""
        response = make_stream_response(b"\x00garbage")
        mock_http.get.return_value = response
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        client.connect()

        with pytest.raises(FramingError):
            client.fetch_frame()

        assert client.state == ClientState.READY
        assert client.metrics.decode_errors == 1
        response.close.assert_called_once()

    def test_reconnect_after_read_error(self, mock_http, fast_settings, sample_jpeg):
        """Verify a fresh connection decodes cleanly after a short read."""
        truncated = encode_frame(sample_jpeg, sequence_number=10)[:50]
        fresh = encode_frame(sample_jpeg, sequence_number=500)
        mock_http.get.side_effect = [
            make_stream_response(truncated),
            make_stream_response(fresh),
        ]
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)

        client.connect()
        with pytest.raises(StreamReadError):
            client.fetch_frame()

        client.connect()
        frame = client.fetch_frame()

        assert frame.data == sample_jpeg
        assert frame.sequence_number == 500
        assert client.metrics.sequence_gaps == 0


class TestRun:
    """Tests for the reconnecting fetch loop."""

    def test_run_reconnects_and_stops(self, mock_http, fast_settings, sample_jpeg):
        """Verify run() reconnects after end of stream and exits on stop()."""
        mock_http.get.side_effect = [
            make_stream_response(encode_frame(sample_jpeg, sequence_number=1)),
            make_stream_response(encode_frame(sample_jpeg, sequence_number=2)),
        ]
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)
        received = []

        def on_frame(frame):
            received.append(frame.sequence_number)
            if len(received) == 2:
                client.stop()

        client.run(on_frame)

        assert received == [1, 2]
        assert client.metrics.reconnect_count == 1
        assert client.state == ClientState.STOPPED

    def test_stop_event_after_frame_info_is_clean_exit(self, mock_http):
        """Verify a stop between payloads does not count as a reconnect."""
        settings = Settings.model_validate({
            "reconnect": {"backoff_ms": 0, "max_backoff_ms": 0, "max_attempts": 1},
        })
        stop_event = threading.Event()
        info = encode_frame(bytes(16), payload_type=PAYLOAD_TYPE_FRAME_INFO)
        response = make_stream_response(b"")
        response.raw = SignallingSource(info, stop_event)
        mock_http.get.side_effect = [requests.ConnectionError("refused"), response]
        client = LiveviewClient.start("http://camera:8080", settings=settings, http=mock_http)

        client.run(lambda frame: None, stop_event=stop_event)

        assert mock_http.get.call_count == 2
        assert client.metrics.reconnect_count == 1
        assert client.metrics.frame_info_skipped == 1
        response.close.assert_called_once()

    def test_stop_unblocks_in_flight_read(self, mock_http, fast_settings, sample_jpeg):
        """Verify stop() from another thread ends a blocked run() normally."""
        source = BlockingSource(encode_frame(sample_jpeg, sequence_number=1))
        response = make_stream_response(b"")
        response.raw = source
        response.close.side_effect = source.close
        mock_http.get.return_value = response
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)

        first_frame = threading.Event()
        errors = []

        def fetch_loop():
            try:
                client.run(lambda frame: first_frame.set())
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=fetch_loop, daemon=True)
        thread.start()
        assert first_frame.wait(timeout=5.0)

        client.stop()
        thread.join(timeout=5.0)

        assert not thread.is_alive()
        assert errors == []
        assert client.state == ClientState.STOPPED
        assert client.metrics.reconnect_count == 0
        assert mock_http.get.call_count == 1

    def test_run_gives_up_after_max_attempts(self, mock_http):
        """Verify run() raises once the reconnect limit is exceeded."""
        settings = Settings.model_validate({
            "reconnect": {"backoff_ms": 0, "max_backoff_ms": 0, "max_attempts": 2},
        })
        mock_http.get.side_effect = requests.ConnectionError("refused")
        client = LiveviewClient.start("http://camera:8080", settings=settings, http=mock_http)

        with pytest.raises(ReconnectExhaustedError) as exc_info:
            client.run(lambda frame: None)

        assert mock_http.get.call_count == 3
        assert exc_info.value.attempts == 2
        assert client.metrics.reconnect_count == 2

    def test_run_honors_stop_event(self, mock_http, fast_settings):
        """Verify a pre-set stop event prevents any connection."""
        stop_event = threading.Event()
        stop_event.set()
        client = LiveviewClient.start("http://camera:8080", settings=fast_settings, http=mock_http)

        client.run(lambda frame: None, stop_event=stop_event)

        mock_http.get.assert_not_called()

    def test_run_requires_start(self, mock_http, fast_settings):
        """Verify run() is rejected before start()."""
        client = LiveviewClient("http://camera:8080", settings=fast_settings, http=mock_http)

        with pytest.raises(ClientStateError):
            client.run(lambda frame: None)
