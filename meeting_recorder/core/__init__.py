"""
Core module exports.
"""

from .exceptions import (
    MeetingRecorderException,
    ConfigurationError,
    FilesystemError,
    MeetingJoinError,
    JoinTimeoutError,
    JoinNavigationError,
    CaptureStartError,
    CaptureStopWarning,
    UploadError,
    SessionCancelled,
)

__all__ = [
    "MeetingRecorderException",
    "ConfigurationError",
    "FilesystemError",
    "MeetingJoinError",
    "JoinTimeoutError",
    "JoinNavigationError",
    "CaptureStartError",
    "CaptureStopWarning",
    "UploadError",
    "SessionCancelled",
]
