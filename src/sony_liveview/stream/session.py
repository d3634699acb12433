"""
Stream Session
==============

Owns the long-lived HTTP response carrying the liveview stream.

Design Rules:
    - One session per TCP connection; reconnecting builds a new response
      and a new byte source, nothing is carried over
    - connect() closes any previous response first
    - close() is idempotent and safe to call from another thread; an
      in-flight read then fails and propagates to the fetch loop
"""

import logging
from typing import Optional

import requests

from sony_liveview.errors import StreamConnectError
from sony_liveview.stream.decoder import ByteSource


logger = logging.getLogger(__name__)


LIVEVIEW_STREAM_PATH = "/liveview/liveviewstream"


class StreamSession:
    """
    HTTP GET session on the liveview streaming endpoint.

    Attributes:
        base_url: Camera base URL, without trailing slash
        connect_timeout: Seconds to wait for the TCP connection
        read_timeout: Seconds a single read may block (None = forever)

    Example:
        session = StreamSession("http://192.168.122.1:8080")
        source = session.connect()
        frame = fetch_frame(source)
        session.close()
    """

    def __init__(
        self,
        base_url: str,
        http: Optional[requests.Session] = None,
        connect_timeout: float = 5.0,
        read_timeout: Optional[float] = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

        self._owns_http = http is None
        self._http = http or requests.Session()
        self._response: Optional[requests.Response] = None

    @property
    def url(self) -> str:
        """Streaming endpoint URL."""
        return self.base_url + LIVEVIEW_STREAM_PATH

    @property
    def connected(self) -> bool:
        """Whether a response is currently open."""
        return self._response is not None

    @property
    def source(self) -> Optional[ByteSource]:
        """Byte source of the open response, or None."""
        if self._response is None:
            return None
        return self._response.raw

    def connect(self) -> ByteSource:
        """
        Open the liveview stream.

        Returns:
            Byte source bound to the new response body

        Raises:
            StreamConnectError: If the request fails or returns an error status
        """
        self.close()

        try:
            response = self._http.get(
                self.url,
                stream=True,
                timeout=(self.connect_timeout, self.read_timeout),
            )
        except requests.RequestException as e:
            raise StreamConnectError(f"Failed to open {self.url}: {e}") from e

        if not response.ok:
            response.close()
            raise StreamConnectError(
                f"Liveview stream returned HTTP {response.status_code}"
            )

        self._response = response
        logger.info(f"Connected to liveview stream: {self.url}")
        return response.raw

    def close(self) -> None:
        """Release the underlying connection."""
        response, self._response = self._response, None
        if response is None:
            return

        try:
            response.close()
        except (OSError, requests.RequestException) as e:
            logger.debug(f"Error while closing liveview stream: {e}")
        logger.info("Liveview stream closed")

    def shutdown(self) -> None:
        """Close the stream and any HTTP session owned by this object."""
        self.close()
        if self._owns_http:
            self._http.close()
