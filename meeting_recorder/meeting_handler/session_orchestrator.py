"""
Session Orchestrator

Runs one recording session end to end:

    idle -> joining -> joined -> recording -> stopping -> uploading -> done

with `aborted` reachable from every non-terminal state. Whatever happens,
the browser session acquired while joining is released exactly once and a
running capture process is never left behind.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, List, Optional

from meeting_recorder.config import get_logger
from meeting_recorder.core.exceptions import (
    CaptureStopWarning,
    FilesystemError,
    MeetingRecorderException,
    SessionCancelled,
    UploadError,
)
from meeting_recorder.models import (
    CaptureHandle,
    RunSummary,
    SessionConfig,
    SessionState,
    StateTransition,
    UploadResult,
    build_capture_path,
)
from .duration_timer import DurationTimer


logger = get_logger("orchestrator")


ALLOWED_TRANSITIONS = {
    SessionState.IDLE: {SessionState.JOINING, SessionState.ABORTED},
    SessionState.JOINING: {SessionState.JOINED, SessionState.ABORTED},
    SessionState.JOINED: {SessionState.RECORDING, SessionState.ABORTED},
    SessionState.RECORDING: {SessionState.STOPPING, SessionState.ABORTED},
    SessionState.STOPPING: {SessionState.UPLOADING, SessionState.ABORTED},
    SessionState.UPLOADING: {SessionState.DONE, SessionState.ABORTED},
    SessionState.DONE: set(),
    SessionState.ABORTED: set(),
}


class SessionOrchestrator:
    """
    Coordinates join, capture, timed teardown and upload for one session.

    Collaborators:
    - join_driver: `await join(url, session_id, passcode)` -> session with `await close()`
    - capture_manager: `await start(path)` -> CaptureHandle, `await stop(handle)`
    - uploader: `upload(path)` -> UploadResult (blocking, run in a worker thread)

    All mutable run state lives here and is touched only from the task
    running `run()`; `request_abort()` and `get_status()` are safe to call
    from other tasks on the same loop.
    """

    def __init__(
        self,
        config: SessionConfig,
        join_driver,
        capture_manager,
        uploader,
        timer: Optional[DurationTimer] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._join_driver = join_driver
        self._capture_manager = capture_manager
        self._uploader = uploader
        self._timer = timer or DurationTimer()
        self._clock = clock

        self._state = SessionState.IDLE
        self.history: List[StateTransition] = [StateTransition(SessionState.IDLE, clock())]

        self._abort_event = asyncio.Event()
        self._abort_reason: Optional[str] = None

        # Resources owned for the lifetime of the run
        self._session = None
        self._capture: Optional[CaptureHandle] = None

        self._upload_result: Optional[UploadResult] = None
        self._error: Optional[BaseException] = None
        self._warnings: List[str] = []
        self._run_started = False
        self._started_at: Optional[float] = None
        self._finished_at: Optional[float] = None
        self._recording_started_at: Optional[float] = None
        self._cut_short = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def capture_handle(self) -> Optional[CaptureHandle]:
        return self._capture

    @property
    def abort_requested(self) -> bool:
        return self._abort_event.is_set()

    def request_abort(self, reason: str = "operator request") -> bool:
        """
        Ask the run to wrap up early.

        While recording, the wait ends immediately and the run continues
        with stop and upload. Before recording starts, the run is aborted
        once the join step returns.

        Returns:
            False if the run already reached a terminal state
        """
        if self._state.is_terminal:
            logger.warning(f"Abort requested ({reason}) but run already finished as '{self._state.value}'")
            return False

        if not self._abort_event.is_set():
            self._abort_reason = reason
            logger.warning(f"Abort requested ({reason}) in state '{self._state.value}'")
            self._abort_event.set()
        return True

    async def run(self) -> RunSummary:
        """
        Execute the whole session lifecycle.

        Returns:
            RunSummary describing the final state. Errors are reported in
            the summary, not raised; only task cancellation propagates.
        """
        if self._run_started:
            raise RuntimeError("SessionOrchestrator.run() can only be called once")
        self._run_started = True
        self._started_at = self._clock()

        logger.info(f"Starting recording run: {self.config.to_dict()}")

        try:
            self._prepare_output_dir()
            await self._join()
            self._check_abort_before_recording()
            await self._start_capture()
            await self._record()
            await self._stop_capture()
            await self._upload()
        except MeetingRecorderException as e:
            self._fail(e)
        except asyncio.CancelledError:
            self._fail(SessionCancelled("Run task was cancelled"))
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in state '{self._state.value}': {e}")
            self._fail(e)
        finally:
            await self._teardown()
            self._finish()

        return self.summary()

    # --- Lifecycle steps ---

    def _prepare_output_dir(self) -> None:
        try:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Cannot create recordings directory {self.config.output_dir}: {e}",
                details={"output_dir": str(self.config.output_dir)},
            ) from e

    async def _join(self) -> None:
        self._transition(SessionState.JOINING)
        self._session = await self._join_driver.join(
            self.config.join_url,
            self.config.session_id,
            self.config.passcode,
        )
        self._transition(SessionState.JOINED)

    def _check_abort_before_recording(self) -> None:
        if self._abort_event.is_set():
            raise SessionCancelled(
                f"Run aborted before recording started: {self._abort_reason}",
                details={"reason": self._abort_reason},
            )

    async def _start_capture(self) -> None:
        started_at_ms = int(self._clock() * 1000)
        output_path = build_capture_path(
            self.config.output_dir,
            self.config.session_id,
            started_at_ms,
            self.config.file_extension,
        )
        self._capture = await self._capture_manager.start(output_path)
        self._transition(SessionState.RECORDING)
        self._recording_started_at = self._clock()

    async def _record(self) -> None:
        seconds = self.config.duration_seconds
        logger.info(f"Recording for {self.config.duration_minutes:g} minutes...")

        expired = await self._timer.wait(seconds, self._abort_event)
        if expired:
            logger.info("Recording duration reached")
        else:
            self._cut_short = True
            logger.warning(f"Recording cut short: {self._abort_reason}")

        self._transition(SessionState.STOPPING)

    async def _stop_capture(self) -> None:
        logger.info("Ending recording...")
        try:
            stopped = await self._capture_manager.stop(self._capture)
            if stopped is False:
                self._warn("Capture manager reported that stop failed")
        except CaptureStopWarning as w:
            self._warn(f"Capture did not stop cleanly: {w.message}")
        except Exception as e:
            self._warn(f"Error stopping capture: {e}")

        self._transition(SessionState.UPLOADING)

    async def _upload(self) -> None:
        path = self._capture.output_path
        result = await asyncio.to_thread(self._uploader.upload, path)
        self._upload_result = result
        if not result.success:
            raise UploadError(f"Upload of {path} reported failure", details=result.to_dict())

    # --- Teardown ---

    async def _teardown(self) -> None:
        """Stop a still-running capture, then release the browser session."""
        if self._capture is not None and self._capture.is_running:
            logger.info("Stopping capture left running by an aborted run...")
            try:
                await self._capture_manager.stop(self._capture)
            except Exception as e:
                self._warn(f"Error stopping capture during teardown: {e}")

        await self._release_session()

    async def _release_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return

        try:
            await session.close()
            logger.info("Browser closed")
        except Exception as e:
            logger.warning(f"Error releasing browser session: {e}")

    def _finish(self) -> None:
        self._transition(SessionState.ABORTED if self._error is not None else SessionState.DONE)
        self._finished_at = self._clock()

        if self._state == SessionState.DONE:
            logger.info(f"✅ Run complete. Recording archived to {self._upload_result.location}")
        else:
            logger.error(f"❌ Run aborted: {self._error_kind()}: {self._error}")

    # --- State helpers ---

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid state transition: {self._state.value} -> {new_state.value}")

        logger.info(f"State: {self._state.value} -> {new_state.value}")
        self._state = new_state
        self.history.append(StateTransition(new_state, self._clock()))

    def _fail(self, error: BaseException) -> None:
        if self._error is None:
            self._error = error
        logger.error(f"Run failed in state '{self._state.value}': {error}")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._warnings.append(message)

    def _error_kind(self) -> Optional[str]:
        if self._error is None:
            return None
        if isinstance(self._error, MeetingRecorderException):
            return self._error.kind
        return type(self._error).__name__

    # --- Reporting ---

    def summary(self) -> RunSummary:
        """Build the structured run summary."""
        return RunSummary(
            session_id=self.config.session_id,
            final_state=self._state,
            started_at=self._started_at if self._started_at is not None else self.history[0].at,
            finished_at=self._finished_at if self._finished_at is not None else self._clock(),
            error_kind=self._error_kind(),
            error_message=str(self._error) if self._error is not None else None,
            output_path=self._capture.output_path if self._capture else None,
            remote_location=self._upload_result.location if self._upload_result else None,
            warnings=list(self._warnings),
            cancelled=self._cut_short or isinstance(self._error, SessionCancelled),
            abort_reason=self._abort_reason,
            transitions=list(self.history),
        )

    def get_status(self) -> dict:
        """Get current run status."""
        elapsed = None
        remaining = None
        if self._recording_started_at is not None and self._state == SessionState.RECORDING:
            elapsed = self._clock() - self._recording_started_at
            remaining = max(0.0, self.config.duration_seconds - elapsed)

        return {
            "session_id": self.config.session_id,
            "state": self._state.value,
            "abort_requested": self._abort_event.is_set(),
            "abort_reason": self._abort_reason,
            "output_path": str(self._capture.output_path) if self._capture else None,
            "recording_elapsed_seconds": elapsed,
            "recording_remaining_seconds": remaining,
            "warnings": list(self._warnings),
        }
