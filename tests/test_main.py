"""Tests for the process entry point and run wiring."""

import asyncio
import json
import logging
import signal
from pathlib import Path

import pytest

from meeting_recorder.config import get_logger, load_settings, setup_logging
from meeting_recorder.main import (
    EXIT_CONFIG_ERROR,
    _install_signal_handlers,
    _remove_signal_handlers,
    build_orchestrator,
    main,
    write_run_summary,
)
from meeting_recorder.meeting_handler import ZoomJoinDriver
from meeting_recorder.models import RunSummary, SessionState
from meeting_recorder.recording import FFmpegCaptureManager
from meeting_recorder.storage import S3ArchiveUploader


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("ZOOM_MEETING_ID", "ZOOM_MEETING_URL", "ZOOM_MEETING_PASSWORD", "AWS_S3_BUCKET_NAME", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENABLE_FILE_LOGGING", "false")
    yield
    logging.getLogger("meeting_recorder").handlers.clear()


def test_main_returns_config_error_exit_code(clean_env):
    assert asyncio.run(main()) == EXIT_CONFIG_ERROR


def test_main_rejects_invalid_settings(clean_env, monkeypatch):
    monkeypatch.setenv("RECORDING_DURATION_MINUTES", "-1")

    assert asyncio.run(main()) == EXIT_CONFIG_ERROR


def test_build_orchestrator_wires_components(clean_env, monkeypatch):
    monkeypatch.setenv("ZOOM_MEETING_ID", "123456789")
    monkeypatch.setenv("ZOOM_MEETING_URL", "https://zoom.us/wc/join/123456789")
    monkeypatch.setenv("AWS_S3_BUCKET_NAME", "recordings-bucket")
    monkeypatch.setenv("RECORDING_FFMPEG_BINARY", "/usr/local/bin/ffmpeg")

    orchestrator = build_orchestrator(load_settings())

    assert orchestrator.state == SessionState.IDLE
    assert orchestrator.config.bucket_name == "recordings-bucket"
    assert isinstance(orchestrator._join_driver, ZoomJoinDriver)
    assert isinstance(orchestrator._capture_manager, FFmpegCaptureManager)
    assert orchestrator._capture_manager.binary == "/usr/local/bin/ffmpeg"
    assert isinstance(orchestrator._uploader, S3ArchiveUploader)
    assert orchestrator._uploader.bucket_name == "recordings-bucket"


def test_write_run_summary_next_to_recording(tmp_path):
    summary = RunSummary(
        session_id="123456789",
        final_state=SessionState.DONE,
        started_at=1.0,
        finished_at=61.0,
        output_path=tmp_path / "123456789-1700000000000.mp4",
        remote_location="s3://recordings-bucket/123456789-1700000000000.mp4",
    )

    path = write_run_summary(summary, tmp_path)

    assert path == tmp_path / "123456789-1700000000000.summary.json"
    data = json.loads(path.read_text())
    assert data["final_state"] == "done"
    assert data["remote_location"] == "s3://recordings-bucket/123456789-1700000000000.mp4"


def test_write_run_summary_without_recording_uses_session_id(tmp_path):
    summary = RunSummary(
        session_id="123 456",
        final_state=SessionState.ABORTED,
        started_at=1.0,
        finished_at=2.0,
        error_kind="JoinTimeoutError",
    )

    path = write_run_summary(summary, tmp_path / "recordings")

    assert path == tmp_path / "recordings" / "123_456.summary.json"
    assert json.loads(path.read_text())["error_kind"] == "JoinTimeoutError"


def test_setup_logging_writes_log_file(tmp_path):
    log_dir = tmp_path / "logs"
    try:
        setup_logging(log_level="DEBUG", log_dir=str(log_dir), enable_file_logging=True)
        get_logger("test").info("hello from the recorder")
        for handler in logging.getLogger("meeting_recorder").handlers:
            handler.flush()

        files = list(Path(log_dir).glob("meeting_recorder_*.log"))
        assert len(files) == 1
        content = files[0].read_text(encoding="utf-8")
        assert "hello from the recorder" in content
        assert "\033[" not in content
    finally:
        for handler in logging.getLogger("meeting_recorder").handlers:
            handler.close()
        logging.getLogger("meeting_recorder").handlers.clear()


def test_signal_handlers_abort_the_run_and_are_removed_afterwards(make_orchestrator):
    orchestrator = make_orchestrator()

    async def scenario():
        replaced = _install_signal_handlers(orchestrator)
        try:
            signal.raise_signal(signal.SIGTERM)
            for _ in range(50):
                if orchestrator.abort_requested:
                    break
                await asyncio.sleep(0.01)
        finally:
            _remove_signal_handlers(replaced)
        return replaced

    replaced = asyncio.run(scenario())

    assert replaced == {}
    assert orchestrator.abort_requested
    assert orchestrator.summary().abort_reason == "received SIGTERM"
    assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
    assert signal.getsignal(signal.SIGTERM) == signal.SIG_DFL
