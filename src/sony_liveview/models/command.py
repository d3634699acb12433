"""
Control Command Schema
======================

Pydantic models for the camera's JSON control API.

Request Contract:
    {
        "method": "startLiveview",
        "params": [],
        "id": 1,
        "version": "1.0"
    }

Response Contract (one of):
    {"result": [...], "id": 1}
    {"error": [<code>, "<message>"], "id": 1}
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class CommandRequest(BaseModel):
    """Schema for a control command sent to /sony/camera."""

    method: str = Field(..., min_length=1, description="API method name")
    params: List[Any] = Field(default_factory=list, description="Positional parameters")
    id: int = Field(default=1, description="Request identifier")
    version: str = Field(default="1.0", description="API version")


class CommandResponse(BaseModel):
    """
    Schema for a control command response.

    Attributes:
        result: Result list on success
        error: [code, message] on failure
        id: Echoed request identifier
    """

    result: Optional[List[Any]] = Field(default=None, description="Result on success")
    error: Optional[List[Any]] = Field(default=None, description="[code, message] on failure")
    id: Optional[int] = Field(default=None, description="Echoed request identifier")

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> Optional[int]:
        if not self.error:
            return None
        code = self.error[0]
        return code if isinstance(code, int) else None

    @property
    def error_message(self) -> str:
        if not self.error:
            return ""
        return " ".join(str(part) for part in self.error[1:]) or "unknown error"
