"""
Meeting handling: joining the meeting and orchestrating the recording run.
"""

from .duration_timer import DurationTimer
from .session_orchestrator import SessionOrchestrator
from .zoom_joiner import JoinedSession, ZoomJoinDriver, ZOOM_SELECTORS

__all__ = [
    "DurationTimer",
    "SessionOrchestrator",
    "JoinedSession",
    "ZoomJoinDriver",
    "ZOOM_SELECTORS",
]
