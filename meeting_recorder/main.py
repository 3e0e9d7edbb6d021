"""
Main Meeting Recorder Application.
Loads configuration once, wires the components and runs one recording session.
"""

import asyncio
import json
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from meeting_recorder.api import create_control_server
from meeting_recorder.config import Settings, get_logger, load_settings, setup_logging
from meeting_recorder.core.exceptions import ConfigurationError
from meeting_recorder.meeting_handler import SessionOrchestrator, ZoomJoinDriver
from meeting_recorder.models import RunSummary, sanitize_session_id
from meeting_recorder.recording import FFmpegCaptureManager
from meeting_recorder.storage import S3ArchiveUploader

EXIT_CONFIG_ERROR = 2

main_logger = get_logger("main")


def build_orchestrator(settings: Settings) -> SessionOrchestrator:
    """
    Build the orchestrator and its collaborators from settings.

    Raises:
        ConfigurationError: If the session configuration is incomplete or invalid
    """
    config = settings.to_session_config()
    return SessionOrchestrator(
        config=config,
        join_driver=ZoomJoinDriver.from_settings(settings.zoom),
        capture_manager=FFmpegCaptureManager.from_settings(settings.recording),
        uploader=S3ArchiveUploader.from_settings(settings.aws),
    )


def write_run_summary(summary: RunSummary, directory: Path) -> Optional[Path]:
    """
    Write the run summary JSON next to the recording.

    Returns:
        Path of the summary file, or None if it could not be written
    """
    stem = summary.output_path.stem if summary.output_path else sanitize_session_id(summary.session_id)
    path = Path(directory) / f"{stem}.summary.json"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(summary.to_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        main_logger.warning(f"Could not write run summary to {path}: {e}")
        return None

    main_logger.info(f"Run summary written to {path}")
    return path


SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(orchestrator: SessionOrchestrator) -> Dict[signal.Signals, Any]:
    """
    Turn SIGINT/SIGTERM into an abort request.

    Returns:
        Previous handler per signal that had to be replaced with
        signal.signal(); signals handled by the loop are not included
    """
    loop = asyncio.get_running_loop()
    replaced = {}
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, orchestrator.request_abort, f"received {sig.name}")
        except (NotImplementedError, RuntimeError):
            # Windows-safe signal handling
            replaced[sig] = signal.signal(
                sig,
                lambda s, f: loop.call_soon_threadsafe(
                    orchestrator.request_abort, f"received {signal.Signals(s).name}"
                ),
            )
    return replaced


def _remove_signal_handlers(replaced: Dict[signal.Signals, Any]) -> None:
    """Restore the default SIGINT/SIGTERM behaviour once the run is over."""
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        if sig in replaced:
            signal.signal(sig, replaced[sig])
        else:
            loop.remove_signal_handler(sig)


async def run_session(settings: Settings) -> RunSummary:
    """Run one recording session and report its summary."""
    orchestrator = build_orchestrator(settings)
    server = None
    server_task = None
    if settings.control.enabled:
        server = create_control_server(
            orchestrator,
            host=settings.control.host,
            port=settings.control.port,
            log_level=settings.log_level,
        )
        server_task = asyncio.create_task(server.serve())
        main_logger.info(f"Control API: http://{settings.control.host}:{settings.control.port}")

    replaced_handlers = _install_signal_handlers(orchestrator)
    try:
        summary = await orchestrator.run()
    finally:
        _remove_signal_handlers(replaced_handlers)
        if server is not None:
            server.should_exit = True
            try:
                await asyncio.wait_for(server_task, timeout=5.0)
            except asyncio.TimeoutError:
                main_logger.warning("Control API did not shut down in time")
            except Exception as e:
                main_logger.warning(f"Control API stopped with error: {e}")

    main_logger.info(f"Run summary: {json.dumps(summary.to_dict())}")
    if settings.write_summary:
        write_run_summary(summary, settings.recordings_dir)

    return summary


async def main() -> int:
    """
    Main entry point.

    Returns:
        Process exit status: 0 when the recording was archived, 1 when the
        run aborted, 2 on configuration errors
    """
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging(enable_file_logging=False)
        main_logger.error(f"❌ {e.message}")
        return EXIT_CONFIG_ERROR

    setup_logging(
        log_level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file_logging=settings.enable_file_logging,
    )

    main_logger.info("=" * 60)
    main_logger.info("MEETING RECORDER")
    main_logger.info(f"Starting at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    main_logger.info("=" * 60)

    try:
        summary = await run_session(settings)
    except ConfigurationError as e:
        main_logger.error(f"❌ {e.message}")
        return EXIT_CONFIG_ERROR

    return summary.exit_code


def run():
    """Run the Meeting Recorder (synchronous entry point)."""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
