"""
Shared fakes for the recorder tests.
"""

import asyncio
from pathlib import Path

import pytest

from meeting_recorder.meeting_handler import DurationTimer, SessionOrchestrator
from meeting_recorder.models import CaptureHandle, SessionConfig, UploadResult


class FakeClock:
    """Wall clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


async def sleep_forever(seconds: float) -> None:
    await asyncio.Event().wait()


class FakeSession:
    def __init__(self):
        self.close_count = 0

    async def close(self) -> None:
        self.close_count += 1


class FakeJoinDriver:
    def __init__(self, error: Exception = None):
        self.error = error
        self.joins = []
        self.sessions = []

    async def join(self, url, session_id, passcode):
        self.joins.append((url, session_id, passcode))
        if self.error is not None:
            raise self.error
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeCaptureManager:
    def __init__(self, start_error: Exception = None, stop_error: Exception = None,
                 stop_result=None, write_file: bool = True):
        self.start_error = start_error
        self.stop_error = stop_error
        self.stop_result = stop_result
        self.write_file = write_file
        self.started = []
        self.stop_calls = []

    async def start(self, output_path, source=None):
        if self.start_error is not None:
            raise self.start_error
        output_path = Path(output_path)
        self.started.append(output_path)
        if self.write_file:
            output_path.write_bytes(b"fake mp4 data")
        return CaptureHandle(output_path=output_path, process=None, pid=4242, started_at_ms=0)

    async def stop(self, handle):
        self.stop_calls.append(handle)
        handle.mark_stopped(0)
        if self.stop_error is not None:
            raise self.stop_error
        return self.stop_result


class FakeUploader:
    def __init__(self, error: Exception = None, success: bool = True):
        self.error = error
        self.success = success
        self.uploaded = []

    def upload(self, local_path):
        path = Path(local_path)
        self.uploaded.append(path)
        if self.error is not None:
            raise self.error
        return UploadResult(
            local_path=path,
            bucket="recordings-bucket",
            key=path.name,
            location=f"s3://recordings-bucket/{path.name}" if self.success else None,
            success=self.success,
        )


@pytest.fixture
def session_config(tmp_path):
    return SessionConfig(
        session_id="123456789",
        passcode="secret",
        join_url="https://zoom.us/wc/join/123456789",
        bucket_name="recordings-bucket",
        output_dir=tmp_path / "recordings",
        duration_minutes=1,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_orchestrator(session_config, clock):
    """Build an orchestrator with fakes; any collaborator can be overridden."""

    def _make(config=None, join_driver=None, capture_manager=None, uploader=None, sleep=None):
        return SessionOrchestrator(
            config=config or session_config,
            join_driver=join_driver or FakeJoinDriver(),
            capture_manager=capture_manager or FakeCaptureManager(),
            uploader=uploader or FakeUploader(),
            timer=DurationTimer(sleep=sleep or clock.sleep),
            clock=clock.time,
        )

    return _make
