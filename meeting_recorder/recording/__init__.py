"""
Recording Module

Screen and audio capture through an external FFmpeg process.
"""

from .capture_process import FFmpegCaptureManager

__all__ = ["FFmpegCaptureManager"]
