"""
Control Channel
===============

Sends JSON control commands to the camera's /sony/camera endpoint.

Commands used by the liveview client:
    - startRecMode: enable remote capture
    - startLiveview / stopLiveview: toggle the stream

By default the response body is not inspected, matching the camera
API's loose semantics. With validate_responses enabled, HTTP error
statuses, non-JSON bodies and responses carrying an "error" member
are raised as ControlCommandError.
"""

import logging
from typing import Optional

import requests
from pydantic import ValidationError

from sony_liveview.errors import ControlCommandError
from sony_liveview.models.command import CommandRequest, CommandResponse


logger = logging.getLogger(__name__)


CAMERA_SERVICE_PATH = "/sony/camera"


class ControlChannel:
    """
    Fire-and-forget command sender.

    Attributes:
        base_url: Camera base URL, without trailing slash
        timeout: Seconds to wait for each command round-trip
        validate_responses: Whether to check the response body

    Example:
        control = ControlChannel("http://192.168.122.1:8080")
        control.start_rec_mode()
        control.start_liveview()
    """

    def __init__(
        self,
        base_url: str,
        http: Optional[requests.Session] = None,
        timeout: float = 5.0,
        validate_responses: bool = False,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.validate_responses = validate_responses

        self._owns_http = http is None
        self._http = http or requests.Session()

    @property
    def url(self) -> str:
        """Control endpoint URL."""
        return self.base_url + CAMERA_SERVICE_PATH

    def send_command(self, method: str) -> Optional[CommandResponse]:
        """
        POST a command to the camera.

        Args:
            method: API method name, e.g. "startLiveview"

        Returns:
            Parsed response when validation is enabled, else None

        Raises:
            ControlCommandError: If the request fails (or, with
                validation enabled, the camera reports an error)
        """
        request = CommandRequest(method=method)

        try:
            response = self._http.post(
                self.url,
                json=request.model_dump(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ControlCommandError(method, str(e)) from e

        try:
            if not self.validate_responses:
                return None
            return self._validate(method, response)
        finally:
            response.close()

    def _validate(self, method: str, response: requests.Response) -> CommandResponse:
        """Check status and body of a command response."""
        if not response.ok:
            raise ControlCommandError(method, f"HTTP {response.status_code}")

        try:
            parsed = CommandResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ControlCommandError(method, f"invalid response body: {e}") from e

        if not parsed.ok:
            raise ControlCommandError(
                method,
                f"camera error {parsed.error_code}: {parsed.error_message}",
            )
        return parsed

    def start_rec_mode(self) -> Optional[CommandResponse]:
        """Enable remote capture mode."""
        return self.send_command("startRecMode")

    def start_liveview(self) -> Optional[CommandResponse]:
        """Start the liveview stream."""
        result = self.send_command("startLiveview")
        logger.info("Start liveview")
        return result

    def stop_liveview(self) -> Optional[CommandResponse]:
        """Stop the liveview stream."""
        result = self.send_command("stopLiveview")
        logger.info("Stop liveview")
        return result

    def close(self) -> None:
        """Release the HTTP session if this channel created it."""
        if self._owns_http:
            self._http.close()
