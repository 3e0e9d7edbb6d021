"""
Configuration module for the Meeting Recorder.
"""

from .settings import (
    Settings,
    ZoomSettings,
    RecordingSettings,
    AwsSettings,
    ControlServerSettings,
    load_settings,
)
from .logger import get_logger, setup_logging

__all__ = [
    "Settings",
    "ZoomSettings",
    "RecordingSettings",
    "AwsSettings",
    "ControlServerSettings",
    "load_settings",
    "get_logger",
    "setup_logging",
]
