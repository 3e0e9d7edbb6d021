"""
Screen + audio capture with an external FFmpeg process.

Grabs a fixed X11 display region and a PulseAudio input and encodes them to
a single file. The manager only knows about processes and paths; it has no
notion of meetings or sessions.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from meeting_recorder.config import get_logger
from meeting_recorder.core.exceptions import CaptureStartError, CaptureStopWarning
from meeting_recorder.models import CaptureHandle, CaptureSource

logger = get_logger("capture")


class FFmpegCaptureManager:
    """
    Start and stop FFmpeg capture processes.

    Every handle keeps a reference to the exact child process it was created
    for, and stop() only ever signals that process.
    """

    def __init__(
        self,
        binary: str = "ffmpeg",
        video_codec: str = "libx264",
        preset: str = "ultrafast",
        crf: int = 25,
        audio_codec: str = "aac",
        default_source: Optional[CaptureSource] = None,
        startup_grace_seconds: float = 1.0,
        stop_timeout_seconds: float = 10.0,
        spawn: Optional[Callable] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the capture manager.

        Args:
            binary: FFmpeg executable name or path
            video_codec: Video codec passed to -c:v
            preset: Encoder speed/quality preset
            crf: Constant rate factor
            audio_codec: Audio codec passed to -c:a
            default_source: Display/audio input used when start() gets none
            startup_grace_seconds: How long to wait before confirming the encoder survived startup
            stop_timeout_seconds: How long each stop step waits for the process to exit
            spawn: Replacement for asyncio.create_subprocess_exec
            clock: Wall clock in seconds, used for the handle start timestamp
        """
        self.binary = binary
        self.video_codec = video_codec
        self.preset = preset
        self.crf = crf
        self.audio_codec = audio_codec
        self.default_source = default_source or CaptureSource()
        self.startup_grace_seconds = startup_grace_seconds
        self.stop_timeout_seconds = stop_timeout_seconds
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._clock = clock

        # stderr reader per handle, keyed by id(handle)
        self._stderr_tasks: Dict[int, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, recording) -> "FFmpegCaptureManager":
        """Build a manager from RecordingSettings."""
        return cls(
            binary=recording.ffmpeg_binary,
            video_codec=recording.video_codec,
            preset=recording.preset,
            crf=recording.crf,
            audio_codec=recording.audio_codec,
            default_source=recording.source,
            startup_grace_seconds=recording.startup_grace_seconds,
            stop_timeout_seconds=recording.stop_timeout_seconds,
        )

    def build_args(self, output_path: Path, source: Optional[CaptureSource] = None) -> List[str]:
        """Build FFmpeg command arguments."""
        source = source or self.default_source
        return [
            "-y",
            "-hide_banner",
            "-nostats",
            "-loglevel", "warning",

            # Input: X11 screen grab
            "-f", "x11grab",
            "-video_size", source.video_size,
            "-i", source.display,

            # Input: PulseAudio
            "-f", "pulse",
            "-i", source.audio_input,

            # Encoding
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-c:a", self.audio_codec,
            "-strict", "-2",

            str(output_path),
        ]

    async def start(self, output_path: Path, source: Optional[CaptureSource] = None) -> CaptureHandle:
        """
        Launch a capture process writing to output_path.

        The file may not exist yet when this returns; the encoder needs a
        moment before it writes anything.

        Raises:
            CaptureStartError: If the process cannot be launched or dies during startup
        """
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureStartError(
                f"Cannot prepare capture output path {output_path}: {e}",
                details={"output_path": str(output_path)},
            ) from e

        args = self.build_args(output_path, source)
        logger.info(f"FFmpeg command: {self.binary} {' '.join(args)}")

        started_at_ms = int(self._clock() * 1000)
        try:
            process = await self._spawn(
                self.binary, *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CaptureStartError(
                f"{self.binary} command not found",
                details={"binary": self.binary},
            ) from e
        except OSError as e:
            raise CaptureStartError(
                f"Failed to start {self.binary}: {e}",
                details={"binary": self.binary},
            ) from e

        handle = CaptureHandle(
            output_path=output_path,
            process=process,
            pid=process.pid,
            started_at_ms=started_at_ms,
        )
        self._stderr_tasks[id(handle)] = asyncio.ensure_future(self._drain_stderr(handle))

        # Give the encoder a moment to fail on bad devices or arguments
        try:
            if self.startup_grace_seconds > 0:
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.startup_grace_seconds)
                except asyncio.TimeoutError:
                    pass
        except BaseException:
            # No handle reaches the caller, so the child must not outlive this call
            await self._discard(handle)
            raise

        if process.returncode is not None:
            await self._finish_stderr(handle)
            handle.mark_stopped(process.returncode)
            stderr = "\n".join(handle.stderr_tail)
            logger.error(f"FFmpeg exited immediately with code {process.returncode}: {stderr}")
            raise CaptureStartError(
                f"{self.binary} exited during startup with code {process.returncode}",
                details={"returncode": process.returncode, "stderr": stderr},
            )

        logger.info(f"✅ Capture started (pid={handle.pid}) -> {output_path}")
        return handle

    async def stop(self, handle: CaptureHandle) -> None:
        """
        Stop the capture process behind handle.

        Asks FFmpeg to finish ('q' on stdin) so the container is finalized,
        then escalates to SIGTERM and SIGKILL. Calling this on a stopped
        handle does nothing.

        Raises:
            CaptureStopWarning: If the process had to be signalled, had
                already died, or exited with a non-zero code. The handle is
                marked stopped regardless.
        """
        if not handle.is_running:
            logger.debug(f"Capture pid={handle.pid} already stopped")
            return

        process = handle.process
        problems: List[str] = []

        if process.returncode is not None:
            problems.append(f"capture process had already exited with code {process.returncode}")
        else:
            logger.info(f"Stopping capture (pid={handle.pid})...")
            if not await self._request_graceful_exit(process):
                logger.warning("FFmpeg didn't exit gracefully, terminating...")
                problems.append("capture process did not exit gracefully")
                if not await self._signal_and_wait(process, process.terminate, self.stop_timeout_seconds):
                    logger.warning("FFmpeg ignored SIGTERM, killing...")
                    problems.append("capture process had to be killed")
                    await self._signal_and_wait(process, process.kill, timeout=None)

        await self._finish_stderr(handle)
        handle.mark_stopped(process.returncode)

        if not problems and process.returncode not in (0, None):
            problems.append(f"capture process exited with code {process.returncode}")

        if problems:
            raise CaptureStopWarning(
                "; ".join(problems),
                details={
                    "pid": handle.pid,
                    "returncode": process.returncode,
                    "stderr": "\n".join(handle.stderr_tail),
                },
            )

        size_kb = handle.output_path.stat().st_size / 1024 if handle.output_path.exists() else 0
        logger.info(f"✅ Capture stopped (pid={handle.pid}). Size: {size_kb:.1f}KB")

    async def _request_graceful_exit(self, process) -> bool:
        """Send 'q' to FFmpeg and wait for it to exit."""
        try:
            if process.stdin is not None:
                process.stdin.write(b"q")
                await process.stdin.drain()
                process.stdin.close()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug(f"Could not write to FFmpeg stdin: {e}")

        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_timeout_seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _signal_and_wait(self, process, send: Callable[[], None], timeout: Optional[float]) -> bool:
        try:
            send()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _discard(self, handle: CaptureHandle) -> None:
        """Kill a process whose start was interrupted and forget its stderr reader."""
        process = handle.process
        task = self._stderr_tasks.pop(id(handle), None)
        if task is not None:
            task.cancel()

        if process.returncode is None:
            logger.warning(f"Capture start interrupted, killing pid={handle.pid}")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await asyncio.shield(process.wait())

        handle.mark_stopped(process.returncode)

    async def _drain_stderr(self, handle: CaptureHandle) -> None:
        """Keep reading the encoder's stderr so the pipe never fills up."""
        stream = handle.process.stderr
        if stream is None:
            return

        pending = b""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.replace(b"\r", b"\n").split(b"\n")
            for line in lines:
                text = line.decode("utf-8", errors="replace").strip()
                if text:
                    handle.stderr_tail.append(text)
                    logger.debug(f"ffmpeg: {text}")

        text = pending.decode("utf-8", errors="replace").strip()
        if text:
            handle.stderr_tail.append(text)

    async def _finish_stderr(self, handle: CaptureHandle) -> None:
        task = self._stderr_tasks.pop(id(handle), None)
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout=2.0)
        except asyncio.TimeoutError:
            task.cancel()
        except Exception as e:
            logger.debug(f"stderr reader ended with error: {e}")
