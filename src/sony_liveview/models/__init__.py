"""
Data Models
===========

Pydantic models for the camera control API.

Models:
    - CommandRequest: JSON body posted to /sony/camera
    - CommandResponse: JSON body returned by the camera
"""

from sony_liveview.models.command import CommandRequest, CommandResponse

__all__ = [
    "CommandRequest",
    "CommandResponse",
]
