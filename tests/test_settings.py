"""Tests for settings loading and the per-run configuration."""

from pathlib import Path

import pytest

from meeting_recorder.config import load_settings
from meeting_recorder.core.exceptions import ConfigurationError
from meeting_recorder.models import SessionConfig

REQUIRED_ENV = {
    "ZOOM_MEETING_ID": "123456789",
    "ZOOM_MEETING_PASSWORD": "secret",
    "ZOOM_MEETING_URL": "https://zoom.us/wc/join/123456789",
    "AWS_S3_BUCKET_NAME": "recordings-bucket",
}


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every test in an empty directory with no recorder variables set."""
    monkeypatch.chdir(tmp_path)
    for name in list(REQUIRED_ENV) + [
        "RECORDING_PATH", "RECORDING_DURATION_MINUTES", "RECORDING_CONTAINER",
        "AWS_REGION", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def required_env(monkeypatch):
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)


def test_defaults():
    settings = load_settings()

    assert settings.recording.duration_minutes == 60
    assert settings.recording.path == "recordings"
    assert settings.recording.source.display == ":0.0"
    assert settings.recording.source.video_size == "1366x768"
    assert settings.zoom.join_timeout_seconds == 30
    assert settings.aws.region == "us-east-1"
    assert settings.control.enabled is False
    assert settings.log_level == "INFO"


def test_session_config_from_environment(required_env, monkeypatch):
    monkeypatch.setenv("RECORDING_PATH", "/tmp/meetings")
    monkeypatch.setenv("RECORDING_DURATION_MINUTES", "15")

    config = load_settings().to_session_config()

    assert config.session_id == "123456789"
    assert config.passcode == "secret"
    assert config.join_url == "https://zoom.us/wc/join/123456789"
    assert config.bucket_name == "recordings-bucket"
    assert config.output_dir == Path("/tmp/meetings")
    assert config.duration_seconds == 900


def test_dotenv_file_is_read(tmp_path):
    (tmp_path / ".env").write_text(
        "ZOOM_MEETING_ID=555\n"
        "ZOOM_MEETING_URL=https://zoom.us/wc/join/555\n"
        "AWS_S3_BUCKET_NAME=dotenv-bucket\n"
    )

    config = load_settings().to_session_config()

    assert config.session_id == "555"
    assert config.bucket_name == "dotenv-bucket"


def test_missing_required_values_raise():
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings().to_session_config()

    assert exc_info.value.details["missing"] == [
        "ZOOM_MEETING_ID", "ZOOM_MEETING_URL", "AWS_S3_BUCKET_NAME",
    ]


def test_non_positive_duration_is_rejected(required_env, monkeypatch):
    monkeypatch.setenv("RECORDING_DURATION_MINUTES", "0")

    with pytest.raises(ConfigurationError):
        load_settings()


def test_invalid_log_level_is_rejected(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    with pytest.raises(ConfigurationError):
        load_settings()


def test_log_level_is_normalized(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert load_settings().log_level == "DEBUG"


class TestSessionConfig:
    def make(self, **overrides):
        values = dict(
            session_id="123456789",
            passcode="",
            join_url="https://zoom.us/wc/join/123456789",
            bucket_name="recordings-bucket",
            output_dir="recordings",
        )
        values.update(overrides)
        return SessionConfig(**values)

    def test_missing_duration_defaults_to_sixty_minutes(self):
        assert self.make(duration_minutes=None).duration_seconds == 3600

    @pytest.mark.parametrize("duration", [0, -5])
    def test_non_positive_duration_is_rejected(self, duration):
        with pytest.raises(ConfigurationError):
            self.make(duration_minutes=duration)

    @pytest.mark.parametrize("url", ["", "zoom.us/wc/join/1", "ftp://zoom.us/x", "https://"])
    def test_invalid_join_url_is_rejected(self, url):
        with pytest.raises(ConfigurationError):
            self.make(join_url=url)

    def test_empty_session_id_is_rejected(self):
        with pytest.raises(ConfigurationError):
            self.make(session_id="  ")

    def test_empty_passcode_is_allowed(self):
        assert self.make().passcode == ""

    def test_output_dir_and_extension_are_normalized(self):
        config = self.make(file_extension=".mkv")

        assert config.output_dir == Path("recordings")
        assert config.file_extension == "mkv"

    def test_to_dict_omits_passcode(self):
        assert "passcode" not in self.make(passcode="secret").to_dict()
