"""
Meeting Recorder Package.
Joins a Zoom meeting, records the screen and audio, and archives the
recording to S3.
"""

__version__ = "1.0.0"

from .models import (
    CaptureHandle,
    CaptureSource,
    RunSummary,
    SessionConfig,
    SessionState,
    UploadResult,
)

__all__ = [
    "__version__",
    "CaptureHandle",
    "CaptureSource",
    "RunSummary",
    "SessionConfig",
    "SessionState",
    "UploadResult",
]
