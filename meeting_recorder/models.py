"""
Data models for a recording run.
"""

import re
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Deque, List, Optional
from urllib.parse import urlparse

from meeting_recorder.core.exceptions import ConfigurationError

DEFAULT_DURATION_MINUTES = 60


class SessionState(str, Enum):
    """Lifecycle states of one orchestrated session."""
    IDLE = "idle"
    JOINING = "joining"
    JOINED = "joined"
    RECORDING = "recording"
    STOPPING = "stopping"
    UPLOADING = "uploading"
    DONE = "done"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.ABORTED)


class CaptureState(str, Enum):
    """State of the capture subprocess."""
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable configuration for one run.

    Built once at startup and handed to the orchestrator; components never
    read the environment themselves.
    """
    session_id: str
    passcode: str
    join_url: str
    bucket_name: str
    output_dir: Path
    duration_minutes: Optional[float] = DEFAULT_DURATION_MINUTES
    file_extension: str = "mp4"

    def __post_init__(self) -> None:
        if not self.session_id or not self.session_id.strip():
            raise ConfigurationError("Session identifier must not be empty")

        if self.duration_minutes is None:
            object.__setattr__(self, "duration_minutes", DEFAULT_DURATION_MINUTES)
        if self.duration_minutes <= 0:
            raise ConfigurationError(
                f"Session duration must be positive, got {self.duration_minutes}",
                details={"duration_minutes": self.duration_minutes},
            )

        parsed = urlparse(self.join_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Join URL is not a valid http(s) URL: {self.join_url!r}",
                details={"join_url": self.join_url},
            )

        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "file_extension", self.file_extension.lstrip(".") or "mp4")

    @property
    def duration_seconds(self) -> float:
        return float(self.duration_minutes) * 60

    def to_dict(self) -> dict:
        """Convert to dictionary for logging. The passcode is never included."""
        return {
            "session_id": self.session_id,
            "join_url": self.join_url,
            "bucket_name": self.bucket_name,
            "output_dir": str(self.output_dir),
            "duration_minutes": self.duration_minutes,
            "file_extension": self.file_extension,
        }


@dataclass(frozen=True)
class CaptureSource:
    """Fixed display and audio input the encoder reads from."""
    display: str = ":0.0"
    video_size: str = "1366x768"
    audio_input: str = "default"


def sanitize_session_id(session_id: str) -> str:
    """
    Sanitize a session identifier for use in a file name.

    Keeps alphanumerics, dashes, underscores and dots.
    """
    sanitized = re.sub(r"[^a-zA-Z0-9\-_.]+", "_", session_id).strip("_")
    return sanitized[:100] or "unknown"


def build_capture_path(directory: Path, session_id: str, started_at_ms: int, extension: str = "mp4") -> Path:
    """
    Build the capture file path for a run.

    Format: {directory}/{session_id}-{started_at_ms}.{extension}
    """
    return Path(directory) / f"{sanitize_session_id(session_id)}-{started_at_ms}.{extension.lstrip('.')}"


@dataclass
class CaptureHandle:
    """
    A running capture subprocess.

    Holds the exact child process that was spawned so that stopping it never
    touches any other process.
    """
    output_path: Path
    process: Any = field(repr=False)
    pid: Optional[int]
    started_at_ms: int
    state: CaptureState = CaptureState.RUNNING
    returncode: Optional[int] = None
    stderr_tail: Deque[str] = field(default_factory=lambda: deque(maxlen=20), repr=False)

    @property
    def is_running(self) -> bool:
        return self.state == CaptureState.RUNNING

    def mark_stopped(self, returncode: Optional[int]) -> None:
        self.state = CaptureState.STOPPED
        self.returncode = returncode


@dataclass
class UploadResult:
    """Outcome of archiving one file."""
    local_path: Path
    bucket: str
    key: str
    location: Optional[str]
    success: bool
    attempts: int = 1
    size_bytes: int = 0

    def to_dict(self) -> dict:
        return {
            "local_path": str(self.local_path),
            "bucket": self.bucket,
            "key": self.key,
            "location": self.location,
            "success": self.success,
            "attempts": self.attempts,
            "size_bytes": self.size_bytes,
        }


@dataclass
class StateTransition:
    """One entry of the orchestrator's state history."""
    state: SessionState
    at: float

    def to_dict(self) -> dict:
        return {"state": self.state.value, "at": self.at}


@dataclass
class RunSummary:
    """
    Structured summary emitted at the end of every run.
    """
    session_id: str
    final_state: SessionState
    started_at: float
    finished_at: float
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    output_path: Optional[Path] = None
    remote_location: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    cancelled: bool = False
    abort_reason: Optional[str] = None
    transitions: List[StateTransition] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.final_state == SessionState.DONE

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "final_state": self.final_state.value,
            "succeeded": self.succeeded,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "output_path": str(self.output_path) if self.output_path else None,
            "remote_location": self.remote_location,
            "warnings": list(self.warnings),
            "cancelled": self.cancelled,
            "abort_reason": self.abort_reason,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": round(self.finished_at - self.started_at, 3),
            "transitions": [t.to_dict() for t in self.transitions],
        }
