"""
Custom exceptions for the Meeting Recorder.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class MeetingRecorderException(Exception):
    """Base exception for Meeting Recorder errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        """Error kind as reported in the run summary."""
        return type(self).__name__


class ConfigurationError(MeetingRecorderException):
    """Raised when configuration is invalid."""
    pass


class FilesystemError(MeetingRecorderException):
    """Raised when the recordings directory cannot be created."""
    pass


class MeetingJoinError(MeetingRecorderException):
    """Raised when joining a meeting fails."""
    pass


class JoinTimeoutError(MeetingJoinError):
    """The join form did not appear within the timeout."""
    pass


class JoinNavigationError(MeetingJoinError):
    """Navigation to the join page or into the meeting view failed."""
    pass


class CaptureStartError(MeetingRecorderException):
    """Raised when the capture process cannot be launched."""
    pass


class CaptureStopWarning(MeetingRecorderException):
    """The capture process did not stop cleanly. Non-fatal."""
    pass


class UploadError(MeetingRecorderException):
    """Raised when archiving the recording to S3 fails."""
    pass


class SessionCancelled(MeetingRecorderException):
    """The run was aborted before recording started."""
    pass


# HTTP Exceptions for the control API
class HTTPConflict(HTTPException):
    """409 Conflict"""
    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class HTTPInternalServerError(HTTPException):
    """500 Internal Server Error"""
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
