"""
Liveview Viewer
===============

OpenCV window showing the camera's liveview stream.

Architecture:
    Thread 1 (daemon) : LiveviewClient.run() fetch loop
    Main thread       : cv2.imshow render loop

Usage:  sony-liveview http://192.168.122.1:8080
Controls: q/ESC quit
"""

import argparse
import logging
import sys
import threading
from typing import Optional

import cv2
import numpy as np
from pydantic import ValidationError

from sony_liveview.client import LiveviewClient
from sony_liveview.config import Settings, load_config, setup_logging
from sony_liveview.errors import LiveviewError
from sony_liveview.stream.frame import LiveviewFrame


logger = logging.getLogger(__name__)


_KEY_ESCAPE = 27


def decode_jpeg(data: bytes) -> Optional[np.ndarray]:
    """Decode JPEG bytes to a BGR image, or None if undecodable."""
    if not data:
        return None
    arr = np.frombuffer(data, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def blank_image(width: int, height: int) -> np.ndarray:
    """Black BGR image shown until the first frame arrives."""
    return np.zeros((height, width, 3), dtype=np.uint8)


class LatestFrame:
    """Thread-safe holder for the most recent frame."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[LiveviewFrame] = None

    def put(self, frame: LiveviewFrame) -> None:
        with self._lock:
            self._frame = frame

    def take(self) -> Optional[LiveviewFrame]:
        with self._lock:
            frame, self._frame = self._frame, None
        return frame


class LiveviewViewer:
    """
    Displays frames from a started LiveviewClient.

    Image size is taken from each decoded JPEG; the client never
    reports dimensions.
    """

    def __init__(self, client: LiveviewClient, settings: Settings) -> None:
        self.client = client
        self.window_title = settings.viewer.window_title
        self.poll_interval_ms = settings.viewer.poll_interval_ms
        self.placeholder = blank_image(
            settings.viewer.placeholder_width,
            settings.viewer.placeholder_height,
        )

        self.latest = LatestFrame()
        self.frame_size: Optional[tuple] = None
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def _fetch_loop(self) -> None:
        try:
            self.client.run(self.latest.put)
        except LiveviewError as e:
            self.error = e
            logger.error(f"Fetch loop terminated: {e}")

    def show(self, frame: LiveviewFrame) -> bool:
        """Render one frame. Returns False if the JPEG could not be decoded."""
        image = decode_jpeg(frame.data)
        if image is None:
            logger.warning(f"Failed to decode JPEG for frame {frame.sequence_number}")
            return False

        height, width = image.shape[:2]
        if self.frame_size != (width, height):
            self.frame_size = (width, height)
            logger.info(f"Liveview frame size: {width}x{height}")

        cv2.imshow(self.window_title, image)
        return True

    def run(self) -> int:
        """Run until the user quits or the fetch loop ends. Returns exit code."""
        self._thread = threading.Thread(target=self._fetch_loop, daemon=True)
        self._thread.start()

        cv2.namedWindow(self.window_title, cv2.WINDOW_AUTOSIZE)
        cv2.imshow(self.window_title, self.placeholder)
        try:
            while self._thread.is_alive():
                frame = self.latest.take()
                if frame is not None:
                    self.show(frame)

                key = cv2.waitKey(self.poll_interval_ms) & 0xFF
                if key in (ord("q"), _KEY_ESCAPE):
                    break
                if cv2.getWindowProperty(self.window_title, cv2.WND_PROP_VISIBLE) < 1:
                    break
        finally:
            self.client.stop()
            self._thread.join(timeout=5.0)
            cv2.destroyAllWindows()

        return 1 if self.error is not None else 0


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sony-liveview",
        description="Show the liveview stream of a Sony camera",
    )
    parser.add_argument(
        "url",
        nargs="?",
        default=None,
        help="Camera API base URL, e.g. http://192.168.122.1:8080",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--log-level", default=None, help="Override log level")
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_config(args.config)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    if args.log_level:
        settings.logging.level = args.log_level
    setup_logging(settings)

    url = args.url or settings.camera.url

    try:
        client = LiveviewClient.start(url, settings=settings)
    except LiveviewError as e:
        logger.error(f"{e}")
        return 1

    return LiveviewViewer(client, settings).run()


if __name__ == "__main__":
    sys.exit(main())
